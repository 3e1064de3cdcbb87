"""
Rule store contract and the in-process implementation.

The engine only ever reads rules. Where they live (database, YAML file,
remote service) is up to the store; it must raise RuleLookupFailed when it
cannot answer instead of returning an empty list, since an empty list
legitimately means "no rule" and leads to a denial.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

import yaml
from pydantic import ValidationError

from lms_backend.permissions.exceptions import RuleConfigurationError
from lms_backend.permissions.keys import PermissionKey
from lms_backend.permissions.principal import RolePermissionRule

logger = logging.getLogger(__name__)


class RuleStore(ABC):
    """Read-only source of role permission rules"""

    @abstractmethod
    async def fetch_active_rules(self, role_ids: Iterable[str], key: PermissionKey) -> List[RolePermissionRule]:
        """Return the active rules of the given roles for one permission key.

        Raises:
            RuleLookupFailed: the store could not be queried
        """
        pass

    @abstractmethod
    async def fetch_active_rules_for_roles(self, role_ids: Iterable[str]) -> List[RolePermissionRule]:
        """Return all active rules of the given roles, for any permission key"""
        pass


class InMemoryRuleStore(RuleStore):
    """Rule store backed by a list held in memory, loadable from YAML.

    Document layout::

        rules:
          - role: INSTRUCTOR
            permission: "course:READ"
            filter: OWN
            active: true
    """

    def __init__(self, rules: Iterable[RolePermissionRule] = ()):
        self._rules: List[RolePermissionRule] = list(rules)

    @property
    def rules(self) -> List[RolePermissionRule]:
        return list(self._rules)

    async def fetch_active_rules(self, role_ids: Iterable[str], key: PermissionKey) -> List[RolePermissionRule]:
        role_ids = set(role_ids)
        return [rule for rule in self._rules if rule.matches(role_ids, key)]

    async def fetch_active_rules_for_roles(self, role_ids: Iterable[str]) -> List[RolePermissionRule]:
        role_ids = set(role_ids)
        return [rule for rule in self._rules if rule.is_active and rule.role_id in role_ids]

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "InMemoryRuleStore":
        if not isinstance(data, dict) or not isinstance(data.get("rules", []), list):
            raise RuleConfigurationError("Rule document must contain a 'rules' list")

        rules = []
        for index, entry in enumerate(data.get("rules") or []):
            if not isinstance(entry, dict):
                raise RuleConfigurationError(f"Rule #{index} is not a mapping")
            try:
                rules.append(RolePermissionRule(
                    role_id=entry["role"],
                    permission_key=entry["permission"],
                    filter_type=entry["filter"],
                    is_active=entry.get("active", True),
                ))
            except KeyError as e:
                raise RuleConfigurationError(f"Rule #{index} is missing field {e}") from e
            except ValidationError as e:
                raise RuleConfigurationError(f"Rule #{index} is invalid: {e}") from e

        logger.info(f"Loaded {len(rules)} permission rules")
        return cls(rules)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "InMemoryRuleStore":
        try:
            with open(path, "r") as file:
                data = yaml.safe_load(file) or {}
        except (OSError, yaml.YAMLError) as e:
            raise RuleConfigurationError(f"Could not read rule file {path}: {e}") from e

        return cls.from_mapping(data)
