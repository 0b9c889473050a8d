from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from bookshelf.context import ApplicationContext
from bookshelf.db.repository import Repository
from bookshelf.lifecycle import LifecycleSequencer
from bookshelf.server import Server

_ENV_VARS = (
    "APP_ENV",
    "CONFIG_DIR",
    "DATABASE_URL",
    "HOST",
    "PORT",
    "STATIC_CONTENTS_PATH",
    "METRICS_PATH",
    "SHUTDOWN_GRACE_SECONDS",
    "LOG_LEVEL",
    "MASTER_GENERATOR",
    "SESSION_SECRET",
    "SESSION_COOKIE_NAME",
    "SESSION_EXP_MINUTES",
)


def write_config(config_dir: Path, env: str = "test", **values: object) -> Path:
    settings = {
        "DATABASE_URL": f"sqlite:///{config_dir / 'bookshelf.db'}",
        "SESSION_SECRET": "test-secret",
        "LOG_LEVEL": "WARNING",
    }
    settings.update({key.upper(): str(value) for key, value in values.items()})
    path = config_dir / f"application.{env}.env"
    path.write_text("".join(f"{key}={value}\n" for key, value in settings.items()), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_config():
    return write_config


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    write_config(tmp_path)
    return tmp_path


@pytest.fixture
def close_calls(monkeypatch: pytest.MonkeyPatch) -> list[Repository]:
    calls: list[Repository] = []
    original = Repository.close

    def counting_close(self: Repository) -> None:
        calls.append(self)
        original(self)

    monkeypatch.setattr(Repository, "close", counting_close)
    return calls


@pytest.fixture
def sequencer(config_dir: Path) -> Iterator[LifecycleSequencer]:
    seq = LifecycleSequencer(env="test", config_dir=config_dir)
    yield seq
    seq.shutdown()


@pytest.fixture
def server(sequencer: LifecycleSequencer) -> Server:
    return sequencer.startup()


@pytest.fixture
def context(sequencer: LifecycleSequencer, server: Server) -> ApplicationContext:
    assert sequencer.context is not None
    return sequencer.context


@pytest.fixture
async def api_client(server: Server) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=server.asgi(), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
