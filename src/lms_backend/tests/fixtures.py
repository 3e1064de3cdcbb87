"""
Stub collaborators shared by the permission tests.
"""

import pytest

from lms_backend.permissions.exceptions import OwnershipLookupFailed, RuleLookupFailed
from lms_backend.permissions.ownership import OwnershipResolver
from lms_backend.permissions.rules import RuleStore


class RecordingRuleStore(RuleStore):
    """Wraps another store and records every call"""

    def __init__(self, store: RuleStore):
        self.store = store
        self.calls = []

    async def fetch_active_rules(self, role_ids, key):
        self.calls.append((set(role_ids), str(key)))
        return await self.store.fetch_active_rules(role_ids, key)

    async def fetch_active_rules_for_roles(self, role_ids):
        self.calls.append((set(role_ids), None))
        return await self.store.fetch_active_rules_for_roles(role_ids)


class FailingRuleStore(RuleStore):

    def __init__(self, error: Exception = None):
        self.error = error or RuleLookupFailed("database unavailable")
        self.calls = 0

    async def fetch_active_rules(self, role_ids, key):
        self.calls += 1
        raise self.error

    async def fetch_active_rules_for_roles(self, role_ids):
        self.calls += 1
        raise self.error


class StubResolver(OwnershipResolver):
    resource_type = "course"

    def __init__(self, answer: bool = True, error: Exception = None):
        self.answer = answer
        self.error = error
        self.calls = []

    async def is_owner(self, principal_id, resource_id):
        self.calls.append((principal_id, resource_id))
        if self.error is not None:
            raise self.error
        return self.answer


class MustNotBeCalledResolver(OwnershipResolver):
    resource_type = "course"

    async def is_owner(self, principal_id, resource_id):
        pytest.fail(f"Ownership lookup must not happen (principal={principal_id}, resource={resource_id})")



class OwnedSetResolver(OwnershipResolver):
    """Owner of a fixed set of resource ids; lookups of failing ids raise"""

    resource_type = "course"

    def __init__(self, owner_id: str, owned_ids=(), failing_ids=()):
        self.owner_id = owner_id
        self.owned_ids = set(owned_ids)
        self.failing_ids = set(failing_ids)
        self.calls = []

    async def is_owner(self, principal_id, resource_id):
        self.calls.append(resource_id)
        if resource_id in self.failing_ids:
            raise OwnershipLookupFailed(f"lookup of {resource_id} failed")
        return principal_id == self.owner_id and resource_id in self.owned_ids

    async def get_owner_id(self, resource_id):
        if resource_id in self.failing_ids:
            raise OwnershipLookupFailed(f"lookup of {resource_id} failed")
        return self.owner_id if resource_id in self.owned_ids else None
