from __future__ import annotations

from fastapi import Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST

from bookshelf.context import ApplicationContext
from bookshelf.services.auth_dependencies import get_context


async def metrics(context: ApplicationContext = Depends(get_context)) -> Response:
    return Response(content=context.metrics.render(), media_type=CONTENT_TYPE_LATEST)
