import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from lms_backend.permissions.exceptions import OwnershipLookupFailed, UnknownResourceType

logger = logging.getLogger(__name__)


class OwnershipResolver(ABC):
    """Answers whether a principal owns one instance of a resource type"""

    resource_type: str = ""

    @abstractmethod
    async def is_owner(self, principal_id: str, resource_id: str) -> bool:
        """Check ownership of a single resource.

        A resource that does not exist is not owned by anybody and yields
        False. Infrastructure problems raise OwnershipLookupFailed.
        """
        pass

    async def get_owner_id(self, resource_id: str) -> Optional[str]:
        """Id of the owning user, None when unknown or not applicable"""
        return None

    async def resource_exists(self, resource_id: str) -> bool:
        return await self.get_owner_id(resource_id) is not None


class OwnershipRegistry:
    """Maps resource type identifiers to their ownership resolvers.

    Besides the lookup of a resolver the registry answers ownership questions
    for several resources of one type at once. These helpers fail closed: an
    unknown resource type or a failing lookup counts as "not owned".
    """

    def __init__(self):
        self._resolvers: Dict[str, OwnershipResolver] = {}

    def register(self, resource_type: str, resolver: OwnershipResolver):
        if resource_type in self._resolvers:
            logger.warning(f"Replacing ownership resolver for resource type '{resource_type}'")
        self._resolvers[resource_type] = resolver

    def unregister(self, resource_type: str):
        self._resolvers.pop(resource_type, None)

    def get_resolver(self, resource_type: str) -> Optional[OwnershipResolver]:
        return self._resolvers.get(resource_type)

    def resolve(self, resource_type: str) -> OwnershipResolver:
        resolver = self.get_resolver(resource_type)
        if resolver is None:
            raise UnknownResourceType(resource_type)
        return resolver

    def registered_types(self) -> List[str]:
        return sorted(self._resolvers)

    def clear(self):
        self._resolvers.clear()

    def __contains__(self, resource_type: str) -> bool:
        return resource_type in self._resolvers

    # Bulk and utility lookups

    def _resolver_or_none(self, resource_type: str) -> Optional[OwnershipResolver]:
        resolver = self.get_resolver(resource_type)
        if resolver is None:
            logger.warning(f"Unknown resource type: {resource_type}")
        return resolver

    @staticmethod
    async def _owns(resolver: OwnershipResolver, principal_id: str, resource_id: str) -> bool:
        try:
            return bool(await resolver.is_owner(principal_id, str(resource_id)))
        except OwnershipLookupFailed as e:
            logger.error(f"Ownership lookup of {resolver.resource_type} {resource_id} failed: {e}")
        except Exception as e:
            logger.error(f"Unexpected error resolving ownership of {resolver.resource_type} {resource_id}: {e}",
                         exc_info=True)
        return False

    async def owns_all(self, principal_id: str, resource_ids: Iterable[str], resource_type: str) -> bool:
        """True if the principal owns every resource; vacuously True for no resources"""
        resource_ids = list(resource_ids or [])
        if not resource_ids:
            return True

        resolver = self._resolver_or_none(resource_type)
        if resolver is None:
            return False

        for resource_id in resource_ids:
            if not await self._owns(resolver, principal_id, resource_id):
                logger.debug(f"User {principal_id} does not own {resource_type} {resource_id}")
                return False
        return True

    async def owns_any(self, principal_id: str, resource_ids: Iterable[str], resource_type: str) -> bool:
        """True if the principal owns at least one resource; False for no resources"""
        resource_ids = list(resource_ids or [])
        if not resource_ids:
            return False

        resolver = self._resolver_or_none(resource_type)
        if resolver is None:
            return False

        for resource_id in resource_ids:
            if await self._owns(resolver, principal_id, resource_id):
                return True
        return False

    async def ownership_status(self, principal_id: str, resource_ids: Iterable[str],
                               resource_type: str) -> Dict[str, bool]:
        """Ownership of every given resource, keyed by resource id"""
        resource_ids = [str(resource_id) for resource_id in resource_ids or []]
        if not resource_ids:
            return {}

        resolver = self._resolver_or_none(resource_type)
        if resolver is None:
            return {resource_id: False for resource_id in resource_ids}

        status = {}
        for resource_id in resource_ids:
            if resource_id not in status:
                status[resource_id] = await self._owns(resolver, principal_id, resource_id)

        logger.debug(f"Ownership status of user {principal_id} on {resource_type}: {status}")
        return status

    async def resource_exists(self, resource_id: str, resource_type: str) -> bool:
        resolver = self._resolver_or_none(resource_type)
        if resolver is None:
            return False

        try:
            return bool(await resolver.resource_exists(str(resource_id)))
        except Exception as e:
            logger.error(f"Existence check of {resource_type} {resource_id} failed: {e}")
            return False

    async def get_owner_id(self, resource_id: str, resource_type: str) -> Optional[str]:
        resolver = self._resolver_or_none(resource_type)
        if resolver is None:
            return None

        try:
            return await resolver.get_owner_id(str(resource_id))
        except Exception as e:
            logger.error(f"Owner lookup of {resource_type} {resource_id} failed: {e}")
            return None


# Global registry instance, populated at start-up
ownership_registry = OwnershipRegistry()
