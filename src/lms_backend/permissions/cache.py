"""
Caching layer for rule lookups.

The engine itself never caches. Callers that want to can wrap their rule
store in a CachedRuleStore, which keys every entry by the full role id set
plus the permission key so an entry can be invalidated when the rules of
those roles change.
"""

import hashlib
import json
import logging
from typing import Iterable, List, Optional

from aiocache import BaseCache, SimpleMemoryCache

from lms_backend.permissions.keys import PermissionKey
from lms_backend.permissions.principal import RolePermissionRule
from lms_backend.permissions.rules import RuleStore

logger = logging.getLogger(__name__)

ALL_KEYS = "*"


class CachedRuleStore(RuleStore):

    def __init__(self, store: RuleStore, cache: Optional[BaseCache] = None,
                 ttl_seconds: int = 300, namespace: str = "perm_rules"):
        """
        Args:
            store: rule store to read through to
            cache: aiocache backend, in-memory when omitted
            ttl_seconds: time to live of an entry
            namespace: cache namespace, used by clear()
        """
        self.store = store
        self.cache = cache if cache is not None else SimpleMemoryCache()
        self.ttl_seconds = ttl_seconds
        self.namespace = namespace

    @staticmethod
    def cache_key(role_ids: Iterable[str], key: Optional[PermissionKey] = None) -> str:
        """Cache key over the sorted role id set and the permission key"""
        key_string = json.dumps([sorted(set(role_ids)), str(key) if key is not None else ALL_KEYS])
        return hashlib.md5(key_string.encode()).hexdigest()

    async def _get(self, cache_key: str) -> Optional[List[RolePermissionRule]]:
        try:
            cached_value = await self.cache.get(cache_key, namespace=self.namespace)
        except Exception as e:
            logger.warning(f"Rule cache read error: {e}")
            return None

        if cached_value is None:
            logger.debug(f"Rule cache miss for {cache_key}")
            return None

        try:
            rules = [RolePermissionRule.model_validate(rule) for rule in json.loads(cached_value)]
        except (TypeError, ValueError) as e:
            # unreadable entries are misses, the store result overwrites them
            logger.warning(f"Discarding unreadable rule cache entry {cache_key}: {e}")
            return None

        logger.debug(f"Rule cache hit for {cache_key}")
        return rules

    async def _set(self, cache_key: str, rules: List[RolePermissionRule]):
        value = json.dumps([rule.model_dump() for rule in rules])
        try:
            await self.cache.set(cache_key, value, ttl=self.ttl_seconds, namespace=self.namespace)
        except Exception as e:
            logger.warning(f"Failed to cache rules for {cache_key}: {e}")

    async def fetch_active_rules(self, role_ids: Iterable[str], key: PermissionKey) -> List[RolePermissionRule]:
        role_ids = set(role_ids)
        cache_key = self.cache_key(role_ids, key)

        cached = await self._get(cache_key)
        if cached is not None:
            return cached

        # failures of the backing store propagate and are never cached
        rules = await self.store.fetch_active_rules(role_ids, key)
        await self._set(cache_key, rules)
        return rules

    async def fetch_active_rules_for_roles(self, role_ids: Iterable[str]) -> List[RolePermissionRule]:
        role_ids = set(role_ids)
        cache_key = self.cache_key(role_ids)

        cached = await self._get(cache_key)
        if cached is not None:
            return cached

        rules = await self.store.fetch_active_rules_for_roles(role_ids)
        await self._set(cache_key, rules)
        return rules

    async def invalidate(self, role_ids: Iterable[str], key: Optional[PermissionKey] = None):
        """Drop the entry of one role set, for one key or the all-keys listing"""
        cache_key = self.cache_key(role_ids, key)
        try:
            await self.cache.delete(cache_key, namespace=self.namespace)
        except Exception as e:
            logger.warning(f"Failed to invalidate rule cache entry {cache_key}: {e}")

    async def clear(self):
        try:
            await self.cache.clear(namespace=self.namespace)
            logger.info("Rule cache cleared")
        except Exception as e:
            logger.warning(f"Failed to clear rule cache: {e}")
