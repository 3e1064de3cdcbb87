"""
Error taxonomy of the permission engine.

Every failure in here ends up as a denial for the caller. Most of these are
raised by collaborators (rule stores, ownership resolvers) and converted by the
engine, only InvalidPermissionFormat and InvalidFilterType reach callers that
parse keys or filter names directly.
"""


class PermissionSystemError(Exception):
    """Base class for all permission engine errors"""


class InvalidPermissionFormat(PermissionSystemError, ValueError):
    """Permission key is not of the form 'resource:action'"""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid permission key: {value!r} (expected 'resource:action')")


class InvalidFilterType(PermissionSystemError, ValueError):

    def __init__(self, value):
        self.value = value
        super().__init__(f"Unknown filter type: {value!r}")


class RoleClassExcluded(PermissionSystemError):
    """All roles of the principal belong to excluded role classes"""


class RuleLookupFailed(PermissionSystemError):
    """The rule store could not answer; never the same as 'no rules'"""


class UnknownResourceType(PermissionSystemError, LookupError):

    def __init__(self, resource_type: str):
        self.resource_type = resource_type
        super().__init__(f"No ownership resolver registered for resource type '{resource_type}'")


class OwnershipLookupFailed(PermissionSystemError):
    """Infrastructure failure while checking ownership"""


class ContextLeakGuard(PermissionSystemError):
    """Stale filter context found at the start of a request"""


class FilterContextClosed(PermissionSystemError, RuntimeError):
    """Filter context was written after it had been cleared"""


class RuleConfigurationError(PermissionSystemError, ValueError):
    """Rule definitions could not be loaded"""
