from pathlib import Path

import pytest
from alembic.util import CommandError
from sqlalchemy import func, inspect, select
from sqlalchemy.engine import Engine

from bookshelf.config import Settings
from bookshelf.context import ApplicationContext
from bookshelf.db import migration
from bookshelf.db.models import Account, Book, Category, Format
from bookshelf.db.repository import Repository
from bookshelf.exceptions import MigrationError, RepositoryError
from bookshelf.observability.logging import configure_logging
from bookshelf.observability.metrics import RequestMetrics


def _context(tmp_path: Path, **overrides) -> ApplicationContext:
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'repo.db'}", **overrides)
    return ApplicationContext(
        settings=settings,
        logger=configure_logging("test", "WARNING"),
        repository=Repository.open(settings),
        env="test",
        metrics=RequestMetrics(),
    )


def test_open_unreachable_database_raises_without_handle(tmp_path: Path) -> None:
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}")
    with pytest.raises(RepositoryError, match="unreachable"):
        Repository.open(settings)


def test_open_disposes_engine_when_interrupted(tmp_path: Path, monkeypatch) -> None:
    disposed: list[Engine] = []

    def interrupted(self):
        raise KeyboardInterrupt

    monkeypatch.setattr(Engine, "connect", interrupted)
    monkeypatch.setattr(Engine, "dispose", lambda self, close=True: disposed.append(self))

    with pytest.raises(KeyboardInterrupt):
        Repository.open(Settings(database_url=f"sqlite:///{tmp_path / 'r.db'}"))
    assert len(disposed) == 1


def test_open_rejects_malformed_url() -> None:
    with pytest.raises(RepositoryError):
        Repository.open(Settings(database_url="not a url"))


def test_close_is_idempotent_and_blocks_sessions(tmp_path: Path) -> None:
    repo = Repository.open(Settings(database_url=f"sqlite:///{tmp_path / 'r.db'}"))
    repo.close()
    repo.close()

    assert repo.closed
    with pytest.raises(RepositoryError):
        with repo.session():
            pass


def test_create_schema_builds_all_tables(tmp_path: Path) -> None:
    context = _context(tmp_path)
    try:
        migration.create_schema(context)
        tables = set(inspect(context.repository.engine).get_table_names())
    finally:
        context.repository.close()

    assert {"authority_master", "account_master", "category_master", "format_master", "book"} <= tables
    assert "alembic_version" in tables


def test_create_schema_is_repeatable(tmp_path: Path) -> None:
    context = _context(tmp_path)
    try:
        migration.create_schema(context)
        migration.create_schema(context)
    finally:
        context.repository.close()


def test_create_schema_wraps_alembic_failures(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_upgrade(cfg, revision) -> None:
        raise CommandError("Can't locate revision")

    monkeypatch.setattr(migration.command, "upgrade", broken_upgrade)
    context = _context(tmp_path)
    try:
        with pytest.raises(MigrationError):
            migration.create_schema(context)
    finally:
        context.repository.close()


def test_seed_inserts_master_data_once(tmp_path: Path) -> None:
    context = _context(tmp_path)
    try:
        migration.create_schema(context)
        migration.seed_master_data(context)
        migration.seed_master_data(context)

        with context.repository.session() as db:
            accounts = db.execute(select(Account.username).order_by(Account.id)).scalars().all()
            categories = db.execute(select(func.count()).select_from(Category)).scalar_one()
            formats = db.execute(select(func.count()).select_from(Format)).scalar_one()
            books = db.execute(select(func.count()).select_from(Book)).scalar_one()
    finally:
        context.repository.close()

    assert accounts == ["test", "test2"]
    assert categories == 3
    assert formats == 2
    assert books == 2


def test_seed_is_skipped_when_master_generator_disabled(tmp_path: Path) -> None:
    context = _context(tmp_path, master_generator=False)
    try:
        migration.create_schema(context)
        migration.seed_master_data(context)
        with context.repository.session() as db:
            accounts = db.execute(select(func.count()).select_from(Account)).scalar_one()
    finally:
        context.repository.close()

    assert accounts == 0


def test_seed_without_schema_raises_migration_error(tmp_path: Path) -> None:
    context = _context(tmp_path)
    try:
        with pytest.raises(MigrationError):
            migration.seed_master_data(context)
    finally:
        context.repository.close()
