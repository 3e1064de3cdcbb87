from typing import Union
from pydantic import BaseModel, ConfigDict, field_validator

from lms_backend.permissions.exceptions import InvalidPermissionFormat

SEPARATOR = ":"


class PermissionKey(BaseModel):
    """Immutable 'resource:action' identifier of a guarded operation"""

    model_config = ConfigDict(frozen=True)

    resource: str
    action: str

    @field_validator("resource", "action")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value or value != value.strip() or SEPARATOR in value:
            raise ValueError("must be a non-empty value without separator or surrounding whitespace")
        return value

    @classmethod
    def parse(cls, value: Union[str, "PermissionKey"]) -> "PermissionKey":
        """Parse 'resource:action', raising InvalidPermissionFormat otherwise"""
        if isinstance(value, PermissionKey):
            return value

        if not isinstance(value, str):
            raise InvalidPermissionFormat(value)

        parts = value.strip().split(SEPARATOR)
        if len(parts) != 2:
            raise InvalidPermissionFormat(value)

        resource, action = parts
        if not resource or not action or resource.strip() != resource or action.strip() != action:
            raise InvalidPermissionFormat(value)

        return cls(resource=resource, action=action)

    def __str__(self) -> str:
        return f"{self.resource}{SEPARATOR}{self.action}"
