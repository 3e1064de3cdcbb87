from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from lms_backend.permissions.filters import FilterType
from lms_backend.permissions.keys import PermissionKey


class Principal(BaseModel):
    """Authenticated actor of one request, as produced by the authentication layer"""

    user_id: str
    roles: List[str] = Field(default_factory=list)
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("roles")
    @classmethod
    def unique_roles(cls, roles: List[str]) -> List[str]:
        """Keep the given order, drop duplicates and empty ids"""
        seen = set()
        ordered = []
        for role in roles:
            if role and role not in seen:
                seen.add(role)
                ordered.append(role)
        return ordered

    def has_role(self, role_id: str) -> bool:
        return role_id in self.roles


class RolePermissionRule(BaseModel):
    """Read-only rule row: which filter a role gets for a permission key"""

    model_config = ConfigDict(frozen=True)

    role_id: str
    permission_key: PermissionKey
    filter_type: FilterType
    is_active: bool = True

    @field_validator("permission_key", mode="before")
    @classmethod
    def parse_permission_key(cls, value):
        return PermissionKey.parse(value)

    @field_validator("filter_type", mode="before")
    @classmethod
    def parse_filter_type(cls, value):
        return FilterType.from_name(value)

    @field_serializer("permission_key")
    def serialize_permission_key(self, key: PermissionKey) -> str:
        return str(key)

    @field_serializer("filter_type")
    def serialize_filter_type(self, filter_type: FilterType) -> str:
        return filter_type.name

    def matches(self, role_ids, key: PermissionKey) -> bool:
        return self.is_active and self.role_id in role_ids and self.permission_key == key


class DenialReason(str, Enum):
    MALFORMED_KEY = "malformed key"
    NO_ROLES = "no active roles"
    ROLE_CLASS_EXCLUDED = "role class excluded"
    RULE_LOOKUP_FAILED = "rule lookup failed"
    NO_MATCHING_RULE = "no matching rule"


class AuthorizationResult(BaseModel):
    """Outcome of one evaluate call. Created fresh per call, never shared."""

    model_config = ConfigDict(frozen=True)

    allowed: bool
    effective_filter: FilterType = FilterType.DENIED
    reason: Optional[DenialReason] = None
    error: Optional[str] = None
    permission_key: Optional[str] = None

    @classmethod
    def granted(cls, effective_filter: FilterType, permission_key: PermissionKey) -> "AuthorizationResult":
        return cls(allowed=True, effective_filter=effective_filter, permission_key=str(permission_key))

    @classmethod
    def denied(cls, reason: DenialReason, permission_key: Optional[Any] = None,
               error: Optional[str] = None) -> "AuthorizationResult":
        return cls(
            allowed=False,
            effective_filter=FilterType.DENIED,
            reason=reason,
            error=error,
            permission_key=str(permission_key) if permission_key is not None else None,
        )

    def __bool__(self) -> bool:
        return self.allowed
