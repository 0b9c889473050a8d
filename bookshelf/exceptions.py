from __future__ import annotations


class BookshelfError(Exception):
    """Base class for errors raised by the bookshelf service."""


class ConfigError(BookshelfError):
    pass


class RepositoryError(BookshelfError):
    pass


class MigrationError(BookshelfError):
    pass


class ServeError(BookshelfError):
    pass


class LifecycleTransitionError(BookshelfError):
    pass


class StartupError(BookshelfError):
    """A lifecycle step failed before the server started serving."""

    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(f"startup failed at {step}: {cause}")
        self.step = step
        self.cause = cause


class ShutdownRequested(BaseException):
    """Raised from the termination signal handler.

    Derives from BaseException (like KeyboardInterrupt) so that ordinary
    ``except Exception`` blocks in stage code do not absorb it.
    """

    def __init__(self, signum: int) -> None:
        super().__init__(f"termination requested by signal {signum}")
        self.signum = signum
