from __future__ import annotations

import uuid
from time import perf_counter
from typing import TYPE_CHECKING, Any, Callable

import structlog
from starlette.datastructures import MutableHeaders

if TYPE_CHECKING:
    from bookshelf.context import ApplicationContext
    from bookshelf.server import Server


class RequestContextMiddleware:
    """Adds request_id context, the X-Request-ID header and access logs."""

    def __init__(self, app: Callable[..., Any], logger_name: str = "access") -> None:
        self.app = app
        self._logger_name = logger_name

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=scope.get("path"),
            method=scope.get("method"),
        )

        start = perf_counter()
        status_code: int = 500

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code

            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
                headers = MutableHeaders(scope=message)
                headers["X-Request-ID"] = request_id

            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            elapsed_ms = (perf_counter() - start) * 1000.0
            structlog.get_logger(self._logger_name).info(
                "http_request",
                status_code=status_code,
                elapsed_ms=round(elapsed_ms, 2),
            )
            structlog.contextvars.clear_contextvars()


def register_logging(server: Server, context: ApplicationContext) -> None:
    server.use(RequestContextMiddleware)
    context.logger.debug("middleware.registered", middleware="request_context")
