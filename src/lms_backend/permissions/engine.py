"""
Authorization engine.

Two stages:

1. evaluate() decides on the class level whether a principal may perform
   'resource:action' and with which data scope (ALL, OWN or DENIED).
2. evaluate_for_resource() additionally checks ownership of a single
   resource instance when the scope is OWN.

The engine holds no mutable state and never writes the request filter
context; callers do that with the returned result.
"""

import logging
from typing import Callable, Iterable, List, Optional, Set, Union

from lms_backend.permissions.exceptions import (
    InvalidPermissionFormat,
    OwnershipLookupFailed,
    RoleClassExcluded,
    RuleLookupFailed,
    UnknownResourceType,
)
from lms_backend.permissions.filters import FilterAggregator, FilterType
from lms_backend.permissions.keys import PermissionKey
from lms_backend.permissions.ownership import OwnershipRegistry, ownership_registry
from lms_backend.permissions.principal import AuthorizationResult, DenialReason, Principal
from lms_backend.permissions.rules import RuleStore

logger = logging.getLogger(__name__)

PermissionKeyLike = Union[str, PermissionKey]


def default_role_class(role_id: str) -> str:
    return role_id.strip().upper()


class AuthorizationEngine:

    def __init__(
        self,
        rule_store: RuleStore,
        ownership: Optional[OwnershipRegistry] = None,
        excluded_role_classes: Iterable[str] = (),
        role_class_of: Callable[[str], str] = default_role_class,
        aggregator: FilterAggregator = FilterAggregator(),
    ):
        self.rule_store = rule_store
        self.ownership = ownership if ownership is not None else ownership_registry
        self.excluded_role_classes: Set[str] = {c.strip().upper() for c in excluded_role_classes if c.strip()}
        self.role_class_of = role_class_of
        self.aggregator = aggregator

    def eligible_roles(self, principal: Principal) -> List[str]:
        """Roles of the principal that are not excluded from this decision path"""
        return [
            role for role in principal.roles
            if self.role_class_of(role).upper() not in self.excluded_role_classes
        ]

    async def evaluate(self, principal: Principal, permission_key: PermissionKeyLike) -> AuthorizationResult:
        try:
            key = PermissionKey.parse(permission_key)
        except InvalidPermissionFormat as e:
            logger.debug(f"Rejecting malformed permission key for user {principal.user_id}: {e}")
            return AuthorizationResult.denied(
                DenialReason.MALFORMED_KEY, permission_key, error=InvalidPermissionFormat.__name__
            )

        if not principal.roles:
            logger.debug(f"User {principal.user_id} has no active roles, denying {key}")
            return AuthorizationResult.denied(DenialReason.NO_ROLES, key)

        role_ids = self.eligible_roles(principal)
        if not role_ids:
            logger.debug(f"All roles of user {principal.user_id} are excluded from {key}: {principal.roles}")
            return AuthorizationResult.denied(
                DenialReason.ROLE_CLASS_EXCLUDED, key, error=RoleClassExcluded.__name__
            )

        try:
            rules = await self.rule_store.fetch_active_rules(set(role_ids), key)
        except Exception as e:
            logger.error(f"Rule lookup for {key} failed for user {principal.user_id}: {e}", exc_info=True)
            return AuthorizationResult.denied(
                DenialReason.RULE_LOOKUP_FAILED, key, error=RuleLookupFailed.__name__
            )

        # stores may return more than asked for; only matching rules count
        matching = [rule for rule in rules if rule.matches(role_ids, key)]
        effective_filter = self.aggregator.aggregate_rules(matching)

        if effective_filter is FilterType.DENIED:
            logger.debug(f"No granting rule for {key} and roles {role_ids} of user {principal.user_id}")
            return AuthorizationResult.denied(DenialReason.NO_MATCHING_RULE, key)

        logger.debug(f"Granted {key} to user {principal.user_id} with filter {effective_filter.name}")
        return AuthorizationResult.granted(effective_filter, key)

    async def evaluate_for_resource(
        self,
        principal: Principal,
        resource_id: str,
        resource_type: str,
        permission_key: PermissionKeyLike,
    ) -> bool:
        result = await self.evaluate(principal, permission_key)
        if not result.allowed:
            return False

        if result.effective_filter is FilterType.ALL:
            return True

        if result.effective_filter is not FilterType.OWN:
            return False

        try:
            resolver = self.ownership.resolve(resource_type)
        except UnknownResourceType as e:
            logger.error(f"{e}; denying {permission_key} for user {principal.user_id}")
            return False

        try:
            is_owner = await resolver.is_owner(principal.user_id, str(resource_id))
        except OwnershipLookupFailed as e:
            logger.error(f"Ownership lookup for {resource_type} {resource_id} failed: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error resolving ownership of {resource_type} {resource_id}: {e}", exc_info=True)
            return False

        logger.debug(
            f"User {principal.user_id} {'owns' if is_owner else 'does not own'} {resource_type} {resource_id}"
        )
        return is_owner

    # Convenience helpers

    async def has_permission(self, principal: Principal, permission_key: PermissionKeyLike) -> bool:
        return (await self.evaluate(principal, permission_key)).allowed

    async def get_effective_filter(self, principal: Principal, permission_key: PermissionKeyLike) -> FilterType:
        return (await self.evaluate(principal, permission_key)).effective_filter

    async def has_all_access(self, principal: Principal, permission_key: PermissionKeyLike) -> bool:
        return await self.get_effective_filter(principal, permission_key) is FilterType.ALL

    async def has_filter_type(self, principal: Principal, permission_key: PermissionKeyLike,
                              filter_type: FilterType) -> bool:
        return await self.get_effective_filter(principal, permission_key) is filter_type

    async def get_permission_keys(self, principal: Principal) -> Set[str]:
        """All permission keys granted (ALL or OWN) to any eligible role of the principal"""
        role_ids = self.eligible_roles(principal)
        if not role_ids:
            return set()

        try:
            rules = await self.rule_store.fetch_active_rules_for_roles(set(role_ids))
        except Exception as e:
            logger.error(f"Rule lookup for user {principal.user_id} failed: {e}", exc_info=True)
            return set()

        return {
            str(rule.permission_key) for rule in rules
            if rule.is_active and rule.role_id in role_ids and rule.filter_type.grants_access
        }
