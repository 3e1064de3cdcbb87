from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI

from lms_backend.api.middleware import FilterContextMiddleware
from lms_backend.permissions.core import build_authorization_engine, initialize_ownership_resolvers
from lms_backend.permissions.engine import AuthorizationEngine


def install_permission_engine(app: FastAPI, engine: Optional[AuthorizationEngine] = None) -> FastAPI:
    """Add the request filter middleware and, if given, the engine to an application"""
    app.add_middleware(FilterContextMiddleware)
    if engine is not None:
        app.state.authorization_engine = engine
    return app


@asynccontextmanager
async def permission_lifespan(app: FastAPI):
    """Lifespan building the engine from settings when none was installed"""
    if getattr(app.state, "authorization_engine", None) is None:
        initialize_ownership_resolvers()
        app.state.authorization_engine = await build_authorization_engine()

    yield
