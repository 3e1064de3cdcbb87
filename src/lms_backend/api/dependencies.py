"""
FastAPI dependencies guarding endpoints with the permission engine.

The authentication layer is expected to put the Principal on
request.state.principal; the engine is read from app.state.

Usage:
    @router.get("/courses")
    async def list_courses(result: AuthorizationResult = Depends(require_permission("course:READ"))):
        stmt = FilterScopeQueryBuilder.apply(select(Course), Course.instructor_id)
        ...
"""

import logging
from fastapi import Depends, Request

from lms_backend.api.exceptions import ForbiddenException, ServiceUnavailableException, UnauthorizedException
from lms_backend.permissions.context import RequestFilterContext
from lms_backend.permissions.engine import AuthorizationEngine
from lms_backend.permissions.keys import PermissionKey
from lms_backend.permissions.principal import AuthorizationResult, Principal

logger = logging.getLogger(__name__)


async def get_current_principal(request: Request) -> Principal:
    principal = getattr(request.state, "principal", None)
    if not isinstance(principal, Principal):
        raise UnauthorizedException()
    return principal


async def get_authorization_engine(request: Request) -> AuthorizationEngine:
    engine = getattr(request.app.state, "authorization_engine", None)
    if engine is None:
        logger.error("Authorization engine is not configured")
        raise ServiceUnavailableException("Authorization engine is not configured")
    return engine


def require_permission(permission_key: str):
    """Dependency granting access on the class level and storing the filter in the request context"""

    # malformed keys are a programming error, fail on route definition
    key = PermissionKey.parse(permission_key)

    async def dependency(
        principal: Principal = Depends(get_current_principal),
        engine: AuthorizationEngine = Depends(get_authorization_engine),
    ) -> AuthorizationResult:
        result = await engine.evaluate(principal, key)
        if not result.allowed:
            raise ForbiddenException(detail={"permission": str(key), "reason": result.reason.value})

        RequestFilterContext.apply_result(result, principal)
        return result

    return dependency


def require_resource_permission(permission_key: str, resource_type: str, path_param: str = "id"):
    """Dependency granting access to the single resource named by a path parameter"""

    key = PermissionKey.parse(permission_key)

    async def dependency(
        request: Request,
        principal: Principal = Depends(get_current_principal),
        engine: AuthorizationEngine = Depends(get_authorization_engine),
    ) -> Principal:
        resource_id = request.path_params.get(path_param)
        if resource_id is None:
            logger.error(f"Path parameter '{path_param}' missing for {resource_type} permission check")
            raise ForbiddenException(detail={"permission": str(key), "resource_type": resource_type})

        if not await engine.evaluate_for_resource(principal, resource_id, resource_type, key):
            raise ForbiddenException(
                detail={"permission": str(key), "resource_type": resource_type, "resource_id": resource_id}
            )

        return principal

    return dependency
