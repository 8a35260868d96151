"""Shared test fixtures and configuration."""
from __future__ import annotations

import socket
from pathlib import Path
from types import SimpleNamespace

import pytest
from rich.console import Console

from spa_prerender.errors import NavigationFailure
from spa_prerender.renderer.models import RenderRequest


class FakeSupervisor:
    """Records server lifecycle calls into a shared event list."""

    host = "localhost"

    def __init__(self, events: list):
        self.events = events
        self.handle = None
        self.spawning = False

    def start(self, serve_dir, port, token=None):
        self.events.append(("start", port))
        self.handle = SimpleNamespace(port=port, serve_dir=serve_dir, pid=4242)
        return self.handle

    def stop(self, handle=None, timeout=None):
        self.events.append(("stop",))

    def kill(self, handle=None, port=None):
        self.events.append(("kill", port))

    def restart(self, handle=None, serve_dir=None, port=None, token=None):
        self.events.append(("restart",))
        return self.handle

    def count(self, name: str) -> int:
        return sum(1 for event in self.events if event[0] == name)


class FakeRenderSession:
    """Browser stand-in returning a small document per URL."""

    def __init__(self, events: list, fail_on: str | None = None, on_render=None):
        self.events = events
        self.fail_on = fail_on
        self.on_render = on_render
        self.session = None
        self.close_calls: list[bool] = []

    def open(self):
        self.events.append(("open",))
        self.session = SimpleNamespace(pids=(), closed=False)
        return self.session

    def render(self, session, url, timeout_ms=None):
        self.events.append(("render", url))
        if self.on_render is not None:
            self.on_render(url)
        if self.fail_on and url.endswith(self.fail_on):
            raise NavigationFailure(url, "net::ERR_CONNECTION_REFUSED")
        return f"<html><body>{url}</body></html>"

    def close(self, session=None, force=False):
        self.events.append(("close", force))
        self.close_calls.append(force)


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def fake_supervisor(events) -> FakeSupervisor:
    return FakeSupervisor(events)


@pytest.fixture
def fake_browser(events) -> FakeRenderSession:
    return FakeRenderSession(events)


@pytest.fixture
def quiet_console() -> Console:
    return Console(quiet=True)


@pytest.fixture
def serve_dir(tmp_path: Path) -> Path:
    """A minimal single-page-application build."""
    build = tmp_path / "build"
    (build / "assets").mkdir(parents=True)
    (build / "index.html").write_text(
        '<!DOCTYPE html><html><head><script src="/assets/app.js"></script></head>'
        '<body><div id="root"></div></body></html>',
        encoding="utf-8",
    )
    (build / "assets" / "app.js").write_text("console.log('app');", encoding="utf-8")
    (build / "favicon.ico").write_bytes(b"\x00\x00\x01\x00")
    return build


@pytest.fixture
def out_dir(tmp_path: Path) -> Path:
    return tmp_path / "static-pages"


@pytest.fixture
def make_request(serve_dir: Path, out_dir: Path):
    """Build a RenderRequest against the fixture build."""
    def _make(routes, flat_output: bool = False, skip_existing: bool = False) -> RenderRequest:
        return RenderRequest.build(
            routes=routes,
            out_dir=out_dir,
            serve_dir=serve_dir,
            flat_output=flat_output,
            skip_existing=skip_existing,
        )
    return _make


@pytest.fixture
def free_port() -> int:
    """Find a free port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        s.listen(1)
        return s.getsockname()[1]


@pytest.fixture
def make_browser(events):
    """Build a FakeRenderSession sharing the test's event list."""
    def _make(**kwargs) -> FakeRenderSession:
        return FakeRenderSession(events, **kwargs)
    return _make
