from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from alembic import command
from alembic.config import Config
from alembic.util import CommandError
from sqlalchemy import func, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from bookshelf.db.models import Account, Authority, Book, Category, Format
from bookshelf.exceptions import MigrationError
from bookshelf.services.auth_service import hash_password

if TYPE_CHECKING:
    from bookshelf.context import ApplicationContext

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

_CATEGORIES = ("Technical Book", "Magazine", "Novel")
_FORMATS = ("Paper Book", "e-Book")


def alembic_config(connection: Connection | None = None) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    if connection is not None:
        cfg.attributes["connection"] = connection
    return cfg


def create_schema(context: ApplicationContext) -> None:
    """Upgrade the database to the latest Alembic revision."""

    try:
        with context.repository.engine.begin() as conn:
            command.upgrade(alembic_config(conn), "head")
    except (SQLAlchemyError, CommandError) as exc:
        raise MigrationError(f"Schema migration failed: {exc}") from exc
    context.logger.info("migration.schema_ready")


def seed_master_data(context: ApplicationContext) -> None:
    """Insert authorities, accounts, master tables and sample books once."""

    if not context.settings.master_generator:
        context.logger.info("migration.seed_skipped", reason="master_generator disabled")
        return

    try:
        with context.repository.session() as db:
            existing = db.execute(select(func.count()).select_from(Authority)).scalar_one()
            if existing:
                context.logger.info("migration.seed_skipped", reason="already seeded")
                return

            admin = Authority(name="Admin")
            user = Authority(name="User")
            categories = [Category(name=name) for name in _CATEGORIES]
            formats = [Format(name=name) for name in _FORMATS]
            db.add_all([admin, user, *categories, *formats])
            db.flush()

            db.add_all(
                [
                    Account(username="test", password_hash=hash_password("test"), authority_id=admin.id),
                    Account(username="test2", password_hash=hash_password("test2"), authority_id=user.id),
                    Book(title="Test1", isbn="123-123-123-1", category_id=categories[0].id, format_id=formats[0].id),
                    Book(title="Test2", isbn="123-123-123-2", category_id=categories[1].id, format_id=formats[1].id),
                ]
            )
            db.commit()
    except SQLAlchemyError as exc:
        raise MigrationError(f"Seeding master data failed: {exc}") from exc
    context.logger.info("migration.seed_done")
