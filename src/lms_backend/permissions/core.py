"""
Start-up wiring of the permission engine.

Builds the rule store from configuration, optionally layers the rule cache on
top, registers the ownership resolvers and creates the AuthorizationEngine.
"""

import logging
from typing import Optional

from sqlalchemy.orm import sessionmaker

from lms_backend.permissions.cache import CachedRuleStore
from lms_backend.permissions.engine import AuthorizationEngine
from lms_backend.permissions.ownership import OwnershipRegistry, ownership_registry
from lms_backend.permissions.resolvers import (
    CourseOwnershipResolver,
    EnrollmentOwnershipResolver,
    ReviewOwnershipResolver,
    UserProfileOwnershipResolver,
)
from lms_backend.permissions.rules import InMemoryRuleStore, RuleStore
from lms_backend.settings import BackendSettings, settings as default_settings

logger = logging.getLogger(__name__)


def initialize_ownership_resolvers(
    session_factory: Optional[sessionmaker] = None,
    registry: OwnershipRegistry = ownership_registry,
    include_course_instructor: Optional[bool] = None,
) -> OwnershipRegistry:
    """Register the ownership resolver of every resource type"""

    if session_factory is None:
        from lms_backend.database import get_session_factory
        session_factory = get_session_factory()

    if include_course_instructor is None:
        include_course_instructor = default_settings.OWNERSHIP_INCLUDE_COURSE_INSTRUCTOR

    registry.register("course", CourseOwnershipResolver(session_factory))
    registry.register("enrollment", EnrollmentOwnershipResolver(session_factory, include_course_instructor))
    registry.register("review", ReviewOwnershipResolver(session_factory, include_course_instructor))
    registry.register("user_profile", UserProfileOwnershipResolver(session_factory))

    logger.info(f"Registered ownership resolvers: {', '.join(registry.registered_types())}")
    return registry


def load_rule_store(config: BackendSettings = default_settings) -> RuleStore:
    if config.PERMISSION_RULES_FILE:
        return InMemoryRuleStore.from_yaml(config.PERMISSION_RULES_FILE)

    logger.warning("PERMISSION_RULES_FILE not set, every permission check will be denied")
    return InMemoryRuleStore()


async def with_rule_cache(store: RuleStore, config: BackendSettings = default_settings) -> RuleStore:
    if config.PERMISSION_CACHE_TTL <= 0:
        return store

    if config.PERMISSION_CACHE_BACKEND == "redis":
        from lms_backend.redis_cache import get_redis_client
        cache = await get_redis_client(config)
    else:
        cache = None

    return CachedRuleStore(store, cache=cache, ttl_seconds=config.PERMISSION_CACHE_TTL)


async def build_authorization_engine(
    rule_store: Optional[RuleStore] = None,
    registry: OwnershipRegistry = ownership_registry,
    config: BackendSettings = default_settings,
) -> AuthorizationEngine:
    if rule_store is None:
        rule_store = await with_rule_cache(load_rule_store(config), config)

    return AuthorizationEngine(
        rule_store=rule_store,
        ownership=registry,
        excluded_role_classes=config.PERMISSION_EXCLUDED_ROLE_CLASSES,
    )
