from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

import jwt
import structlog
from starlette.requests import HTTPConnection

from bookshelf.config import Settings
from bookshelf.services.auth_service import decode_session_token

if TYPE_CHECKING:
    from bookshelf.context import ApplicationContext
    from bookshelf.server import Server


class SessionMiddleware:
    """Decodes the session cookie into ``request.state.session``.

    Missing, expired or tampered cookies yield an empty session.
    """

    def __init__(self, app: Callable[..., Any], settings: Settings) -> None:
        self.app = app
        self.settings = settings

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        session: dict[str, Any] = {}
        token = HTTPConnection(scope).cookies.get(self.settings.session_cookie_name)
        if token:
            try:
                session = decode_session_token(self.settings, token)
            except jwt.PyJWTError as exc:
                structlog.get_logger("session").debug("session.invalid", error=str(exc))
            else:
                structlog.contextvars.bind_contextvars(account=session.get("username"))

        scope.setdefault("state", {})["session"] = session
        await self.app(scope, receive, send)


def register_session(server: Server, context: ApplicationContext) -> None:
    settings = context.settings
    server.use(lambda app: SessionMiddleware(app, settings))
    context.logger.debug("middleware.registered", middleware="session")
