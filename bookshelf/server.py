from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any, Callable

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from bookshelf import __version__
from bookshelf.config import Settings
from bookshelf.exceptions import ServeError

ASGIApp = Callable[..., Any]
# Given the next stage, return a stage.
Interceptor = Callable[[ASGIApp], ASGIApp]


def compose(app: ASGIApp, interceptors: Iterable[Interceptor]) -> ASGIApp:
    """Wrap ``app`` so that the first interceptor is the outermost one."""

    for interceptor in reversed(list(interceptors)):
        app = interceptor(app)
    return app


class Server:
    """FastAPI app plus an ordered interceptor chain, served by uvicorn."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.app = FastAPI(title="Bookshelf", version=__version__)
        self._interceptors: list[Interceptor] = []

    @property
    def interceptors(self) -> tuple[Interceptor, ...]:
        return tuple(self._interceptors)

    def use(self, interceptor: Interceptor) -> None:
        self._interceptors.append(interceptor)

    def mount_static(self, path: str | Path) -> None:
        # Mounted last so API routes keep precedence over "/".
        self.app.mount("/", StaticFiles(directory=str(path), html=True), name="static")

    def asgi(self) -> ASGIApp:
        return compose(self.app, self._interceptors)

    def serve(self) -> None:
        """Block until uvicorn exits.

        In-flight requests get ``shutdown_grace_seconds`` to finish once a
        shutdown starts.
        """

        config = uvicorn.Config(
            self.asgi(),
            host=self.settings.host,
            port=self.settings.port,
            log_config=None,
            timeout_graceful_shutdown=self.settings.shutdown_grace_seconds,
        )
        server = uvicorn.Server(config)
        try:
            server.run()
        except SystemExit as exc:
            # uvicorn exits the process when it cannot bind.
            raise ServeError(f"server exited with status {exc.code}") from exc
        if not server.started:
            raise ServeError(f"server failed to start on {self.settings.host}:{self.settings.port}")
