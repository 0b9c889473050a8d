from __future__ import annotations

from typing import TYPE_CHECKING

from bookshelf.api import account, books, health
from bookshelf.api.metrics import metrics

if TYPE_CHECKING:
    from bookshelf.context import ApplicationContext
    from bookshelf.server import Server


def register(server: Server, context: ApplicationContext) -> None:
    app = server.app
    app.state.context = context
    app.include_router(health.router)
    app.include_router(books.router)
    app.include_router(account.router)
    app.add_api_route(context.settings.metrics_path, metrics, methods=["GET"], include_in_schema=False)
    context.logger.info("routes.registered", metrics_path=context.settings.metrics_path)
