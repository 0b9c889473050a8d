from pathlib import Path

import pytest
import uvicorn
from httpx import ASGITransport, AsyncClient

from bookshelf.config import Settings
from bookshelf.exceptions import ServeError
from bookshelf.server import Server, compose


def _tagging(name: str, trace: list[str]):
    def interceptor(app):
        async def wrapped(scope, receive, send) -> None:
            trace.append(f"enter:{name}")
            await app(scope, receive, send)
            trace.append(f"exit:{name}")

        return wrapped

    return interceptor


async def test_compose_makes_first_interceptor_outermost() -> None:
    trace: list[str] = []

    async def endpoint(scope, receive, send) -> None:
        trace.append("endpoint")

    app = compose(endpoint, [_tagging("a", trace), _tagging("b", trace), _tagging("c", trace)])
    await app({"type": "http"}, None, None)

    assert trace == ["enter:a", "enter:b", "enter:c", "endpoint", "exit:c", "exit:b", "exit:a"]


def test_compose_without_interceptors_returns_app() -> None:
    async def endpoint(scope, receive, send) -> None:
        return None

    assert compose(endpoint, []) is endpoint


async def test_server_applies_interceptors_in_registration_order() -> None:
    trace: list[str] = []
    server = Server(Settings())

    @server.app.get("/ping")
    async def ping() -> dict[str, str]:
        trace.append("route")
        return {"pong": "ok"}

    server.use(_tagging("first", trace))
    server.use(_tagging("second", trace))
    assert len(server.interceptors) == 2

    async with AsyncClient(transport=ASGITransport(app=server.asgi()), base_url="http://test") as client:
        resp = await client.get("/ping")

    assert resp.json() == {"pong": "ok"}
    assert trace == ["enter:first", "enter:second", "route", "exit:second", "exit:first"]


async def test_static_contents_do_not_shadow_routes(tmp_path: Path) -> None:
    (tmp_path / "index.html").write_text("<h1>bookshelf</h1>", encoding="utf-8")
    server = Server(Settings())

    @server.app.get("/api/ping")
    async def ping() -> dict[str, str]:
        return {"pong": "ok"}

    server.mount_static(tmp_path)

    async with AsyncClient(transport=ASGITransport(app=server.asgi()), base_url="http://test") as client:
        index = await client.get("/")
        api = await client.get("/api/ping")

    assert index.status_code == 200
    assert "bookshelf" in index.text
    assert api.json() == {"pong": "ok"}


def test_mount_static_rejects_missing_directory(tmp_path: Path) -> None:
    server = Server(Settings())
    with pytest.raises(RuntimeError):
        server.mount_static(tmp_path / "missing")


def test_serve_turns_uvicorn_exit_into_serve_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_run(self, sockets=None) -> None:
        raise SystemExit(1)

    monkeypatch.setattr(uvicorn.Server, "run", failing_run)

    with pytest.raises(ServeError):
        Server(Settings()).serve()


def test_serve_reports_server_that_never_started(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(uvicorn.Server, "run", lambda self, sockets=None: None)

    with pytest.raises(ServeError, match="failed to start"):
        Server(Settings()).serve()


def test_serve_uses_configured_address_and_grace_period(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def fake_run(self, sockets=None) -> None:
        seen["host"] = self.config.host
        seen["port"] = self.config.port
        seen["grace"] = self.config.timeout_graceful_shutdown
        self.started = True

    monkeypatch.setattr(uvicorn.Server, "run", fake_run)
    Server(Settings(host="127.0.0.1", port=8123, shutdown_grace_seconds=3)).serve()

    assert seen == {"host": "127.0.0.1", "port": 8123, "grace": 3}
