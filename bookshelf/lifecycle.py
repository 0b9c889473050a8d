from __future__ import annotations

import atexit
import signal
import threading
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import structlog

from bookshelf import router
from bookshelf.config import Settings, load_config
from bookshelf.context import ApplicationContext
from bookshelf.db import migration
from bookshelf.db.repository import Repository
from bookshelf.exceptions import LifecycleTransitionError, ShutdownRequested, StartupError
from bookshelf.observability.instrumentation import instrumentation
from bookshelf.observability.logging import configure_logging
from bookshelf.observability.metrics import RequestMetrics
from bookshelf.observability.middleware import register_logging
from bookshelf.server import Server
from bookshelf.services.session import register_session

EXIT_OK = 0
EXIT_FAILURE = 1

_TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class LifecycleStage(Enum):
    CONFIG_LOADED = 1
    LOGGER_READY = 2
    REPOSITORY_OPEN = 3
    CONTEXT_ASSEMBLED = 4
    SCHEMA_MIGRATED = 5
    MASTER_DATA_SEEDED = 6
    ROUTES_REGISTERED = 7
    MIDDLEWARE_REGISTERED = 8
    SERVING = 9
    SHUTTING_DOWN = 10
    CLOSED = 11

    def successor(self) -> LifecycleStage | None:
        if self is LifecycleStage.CLOSED:
            return None
        return LifecycleStage(self.value + 1)


@dataclass(frozen=True)
class Collaborators:
    """The external pieces the sequencer drives, in the order it drives them."""

    load_config: Callable[..., tuple[Settings, str]] = load_config
    configure_logging: Callable[[str, str], Any] = configure_logging
    open_repository: Callable[[Settings], Repository] = Repository.open
    create_schema: Callable[[ApplicationContext], None] = migration.create_schema
    seed_master_data: Callable[[ApplicationContext], None] = migration.seed_master_data
    register_routes: Callable[[Server, ApplicationContext], None] = router.register
    register_logging: Callable[[Server, ApplicationContext], None] = register_logging
    register_session: Callable[[Server, ApplicationContext], None] = register_session
    server_factory: Callable[[Settings], Server] = Server


class LifecycleSequencer:
    """Starts the service in a fixed order and releases what it acquired.

    ``startup`` runs every step up to middleware registration; a failing step
    aborts the rest, releases acquired resources and raises ``StartupError``.
    ``run`` adds serving and maps every way out of it (clean return, serve
    error, SIGINT/SIGTERM) onto the same one-time ``shutdown``.
    """

    def __init__(
        self,
        env: str | None = None,
        config_dir: str | Path | None = None,
        collaborators: Collaborators | None = None,
    ) -> None:
        self._env = env
        self._config_dir = config_dir
        self.collaborators = collaborators or Collaborators()

        self.stage: LifecycleStage | None = None
        self.history: list[LifecycleStage] = []
        self.context: ApplicationContext | None = None
        self.server: Server | None = None

        self._log: Any = structlog.get_logger("bookshelf.lifecycle")
        self._resources = ExitStack()
        self._release_lock = threading.Lock()
        self._released = False
        self._previous_handlers: dict[int, Any] = {}
        self._deferring = False
        self._pending_signal: int | None = None

    def _advance(self, stage: LifecycleStage) -> None:
        current = self.stage
        if stage is LifecycleStage.CLOSED:
            allowed = current is not LifecycleStage.CLOSED
        elif current is None:
            allowed = stage is LifecycleStage.CONFIG_LOADED
        else:
            allowed = stage is current.successor()
        if not allowed:
            name = current.name if current else "NEW"
            raise LifecycleTransitionError(f"Illegal lifecycle transition {name} -> {stage.name}")

        self.stage = stage
        self.history.append(stage)
        self._log.debug("lifecycle.stage", stage=stage.name)

    @staticmethod
    def _step(step: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args)
        except Exception as exc:
            raise StartupError(step, exc) from exc

    def startup(self) -> Server:
        if self.stage is not None:
            raise LifecycleTransitionError("startup() may only run once")

        atexit.register(self.shutdown)
        try:
            return self._startup()
        except StartupError as exc:
            self._log.error("lifecycle.startup_failed", step=exc.step, error=str(exc.cause), exc_info=exc.cause)
            self.shutdown()
            raise
        except ShutdownRequested:
            self.shutdown()
            raise

    def _startup(self) -> Server:
        c = self.collaborators

        settings, env = self._step("config", c.load_config, self._env, self._config_dir)
        self._advance(LifecycleStage.CONFIG_LOADED)

        logger = self._step("logging", c.configure_logging, env, settings.log_level)
        self._log = logger
        self._advance(LifecycleStage.LOGGER_READY)
        logger.info("config.loaded", file=f"application.{env}.env")

        # The repository must be on the stack before a signal can unwind.
        with self._signals_deferred():
            repository = self._step("repository", c.open_repository, settings)
            self._resources.callback(self._close_repository, repository)
        self._advance(LifecycleStage.REPOSITORY_OPEN)

        self.context = context = ApplicationContext(
            settings=settings,
            logger=logger,
            repository=repository,
            env=env,
            metrics=RequestMetrics(),
        )
        self._advance(LifecycleStage.CONTEXT_ASSEMBLED)

        self._step("migration", c.create_schema, context)
        self._advance(LifecycleStage.SCHEMA_MIGRATED)

        self._step("seed", c.seed_master_data, context)
        self._advance(LifecycleStage.MASTER_DATA_SEEDED)

        server = self._step("routes", self._register_routes, context)
        self._advance(LifecycleStage.ROUTES_REGISTERED)

        self._step("middleware", self._register_middlewares, server, context)
        self._advance(LifecycleStage.MIDDLEWARE_REGISTERED)

        static_path = settings.static_path
        if static_path is not None:
            self._step("static_contents", server.mount_static, static_path)
            logger.info("static_contents.served", path=str(static_path))

        self.server = server
        return server

    def _register_routes(self, context: ApplicationContext) -> Server:
        server = self.collaborators.server_factory(context.settings)
        self.collaborators.register_routes(server, context)
        return server

    def _register_middlewares(self, server: Server, context: ApplicationContext) -> None:
        # Instrumentation goes first so it is outermost and times everything below it.
        server.use(instrumentation(context.metrics))
        self.collaborators.register_logging(server, context)
        self.collaborators.register_session(server, context)

    def run(self) -> int:
        """Start, serve until told to stop, clean up. Returns the exit code."""

        self._install_signal_handlers()
        try:
            server = self.startup()
        except StartupError:
            return EXIT_FAILURE
        except ShutdownRequested as exc:
            self._log.info("lifecycle.terminated", signal=exc.signum)
            return EXIT_OK

        settings = server.settings
        try:
            self._advance(LifecycleStage.SERVING)
            self._log.info("server.starting", host=settings.host, port=settings.port)
            server.serve()
        except ShutdownRequested as exc:
            self._log.info("server.stopped", signal=exc.signum)
            return EXIT_OK
        except Exception as exc:
            self._log.error("server.failed", error=str(exc), exc_info=exc)
            return EXIT_FAILURE
        else:
            self._log.info("server.stopped")
            return EXIT_OK
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Release every acquired resource. Only the first call does anything."""

        with self._release_lock:
            if self._released:
                return
            self._released = True

        if self.stage is LifecycleStage.SERVING:
            self._advance(LifecycleStage.SHUTTING_DOWN)
        try:
            self._resources.close()
        finally:
            self._restore_signal_handlers()
            atexit.unregister(self.shutdown)
            self._advance(LifecycleStage.CLOSED)
            self._log.info("lifecycle.closed")

    def _close_repository(self, repository: Repository) -> None:
        try:
            repository.close()
        except Exception:
            self._log.exception("repository.close_failed")
        else:
            self._log.info("repository.closed")

    def _install_signal_handlers(self) -> None:
        # Signals can only be handled from the main thread.
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in _TERMINATION_SIGNALS:
            self._previous_handlers[sig] = signal.signal(sig, self._on_signal)

    def _restore_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)
        self._previous_handlers.clear()

    @contextmanager
    def _signals_deferred(self) -> Iterator[None]:
        """Hold SIGINT/SIGTERM until the block finishes, then act on them."""

        self._deferring = True
        try:
            yield
        finally:
            self._deferring = False
        if self._pending_signal is not None:
            signum, self._pending_signal = self._pending_signal, None
            raise ShutdownRequested(signum)

    def _on_signal(self, signum: int, _frame: Any) -> None:
        if self._released:
            return
        if self._deferring:
            self._pending_signal = signum
            return
        raise ShutdownRequested(signum)
