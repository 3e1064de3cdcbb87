"""
Permission engine for the LMS backend

Decides whether a principal may perform 'resource:action' and which data
scope (ALL, OWN, DENIED) the permission exposes.

Main components:
- keys: PermissionKey parsing
- filters: FilterType and FilterAggregator (most permissive rule wins)
- principal: Principal, RolePermissionRule and AuthorizationResult
- rules: RuleStore contract and the YAML backed in-memory store
- cache: optional rule cache keyed by role set and permission key
- engine: AuthorizationEngine (class level and instance level decisions)
- ownership: OwnershipResolver contract and registry
- resolvers: ownership resolvers for course, enrollment, review, user_profile
- context: request scoped filter context
- query_builders: scoping of queries by the context
- core: start-up wiring
"""

from .exceptions import (
    PermissionSystemError,
    InvalidPermissionFormat,
    InvalidFilterType,
    RoleClassExcluded,
    RuleLookupFailed,
    UnknownResourceType,
    OwnershipLookupFailed,
    ContextLeakGuard,
    FilterContextClosed,
    RuleConfigurationError,
)

from .keys import PermissionKey
from .filters import FilterType, FilterAggregator, filter_aggregator
from .principal import Principal, RolePermissionRule, AuthorizationResult, DenialReason
from .rules import RuleStore, InMemoryRuleStore
from .cache import CachedRuleStore
from .engine import AuthorizationEngine
from .ownership import OwnershipResolver, OwnershipRegistry, ownership_registry
from .context import (
    RequestFilterContext,
    FilterContextEntry,
    FilterContextState,
    request_filter_scope,
    current_filter,
)
from .query_builders import FilterScopeQueryBuilder
from .core import initialize_ownership_resolvers, build_authorization_engine

__all__ = [
    # Errors
    "PermissionSystemError",
    "InvalidPermissionFormat",
    "InvalidFilterType",
    "RoleClassExcluded",
    "RuleLookupFailed",
    "UnknownResourceType",
    "OwnershipLookupFailed",
    "ContextLeakGuard",
    "FilterContextClosed",
    "RuleConfigurationError",

    # Value types
    "PermissionKey",
    "FilterType",
    "FilterAggregator",
    "filter_aggregator",
    "Principal",
    "RolePermissionRule",
    "AuthorizationResult",
    "DenialReason",

    # Rules
    "RuleStore",
    "InMemoryRuleStore",
    "CachedRuleStore",

    # Decisions
    "AuthorizationEngine",
    "OwnershipResolver",
    "OwnershipRegistry",
    "ownership_registry",

    # Request context
    "RequestFilterContext",
    "FilterContextEntry",
    "FilterContextState",
    "request_filter_scope",
    "current_filter",
    "FilterScopeQueryBuilder",

    # Initialization
    "initialize_ownership_resolvers",
    "build_authorization_engine",
]
