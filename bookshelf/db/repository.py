from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from bookshelf.config import Settings
from bookshelf.exceptions import RepositoryError


class Repository:
    """Owns the SQLAlchemy engine and hands out sessions."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._sessionmaker = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        self.closed = False

    @classmethod
    def open(cls, settings: Settings) -> Repository:
        """Create the engine and check connectivity.

        The engine is disposed again if the check fails, so callers either get
        a usable repository or nothing.
        """

        connect_args = {}
        if settings.database_url.startswith("sqlite"):
            # Sessions cross threads in the request thread pool.
            connect_args["check_same_thread"] = False

        try:
            engine = create_engine(settings.database_url, pool_pre_ping=True, connect_args=connect_args)
        except (SQLAlchemyError, ImportError, ValueError) as exc:
            raise RepositoryError(f"Invalid database url: {exc}") from exc

        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            engine.dispose()
            raise RepositoryError(f"Database is unreachable: {exc}") from exc
        except BaseException:
            engine.dispose()
            raise
        return cls(engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        if self.closed:
            raise RepositoryError("Repository is closed")
        db = self._sessionmaker()
        try:
            yield db
        finally:
            db.close()

    def close(self) -> None:
        if self.closed:
            return
        self.engine.dispose()
        self.closed = True
