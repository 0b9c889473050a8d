from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from bookshelf.config import Settings
from bookshelf.db.repository import Repository
from bookshelf.observability.metrics import RequestMetrics


@dataclass(frozen=True)
class ApplicationContext:
    """Dependencies shared by routes and middlewares. Built once at startup."""

    settings: Settings
    logger: Any
    repository: Repository
    env: str
    metrics: RequestMetrics
