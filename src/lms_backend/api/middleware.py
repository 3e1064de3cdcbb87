from starlette.types import ASGIApp, Receive, Scope, Send

from lms_backend.permissions.context import request_filter_scope


class FilterContextMiddleware:
    """Runs every HTTP request inside its own request filter scope.

    Plain ASGI middleware so the endpoint runs in the same task and the
    context is cleared after the response, also on errors and cancellation.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        with request_filter_scope():
            await self.app(scope, receive, send)
