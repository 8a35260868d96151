"""Data models for a render session."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from spa_prerender.renderer.progress import RenderProgress
from spa_prerender.renderer.state_machine import RunStateMachine
from spa_prerender.shutdown.token import CancellationToken


@dataclass(frozen=True)
class RenderRequest:
    """Fully resolved input for one prerender run.

    Attributes:
        routes: Routes in render order, optionally with a query string
        out_dir: Absolute directory receiving the rendered files
        serve_dir: Absolute document root exposed by the static server
        flat_output: One ``<name>.html`` per route instead of nested index files
        skip_existing: Leave routes whose output file already exists untouched
    """
    routes: tuple[str, ...]
    out_dir: Path
    serve_dir: Path
    flat_output: bool = False
    skip_existing: bool = False

    @classmethod
    def build(
        cls,
        routes: Iterable[str],
        out_dir: str | Path,
        serve_dir: str | Path,
        flat_output: bool = False,
        skip_existing: bool = False,
    ) -> RenderRequest:
        """Create a request with absolute paths and a tuple of routes."""
        return cls(
            routes=tuple(routes),
            out_dir=Path(out_dir).resolve(),
            serve_dir=Path(serve_dir).resolve(),
            flat_output=flat_output,
            skip_existing=skip_existing,
        )


@dataclass(frozen=True)
class PlannedRoute:
    """A route with its output file and whether it is expected to render."""
    index: int
    route: str
    path: Path
    will_render: bool


@dataclass
class SessionState:
    """Mutable state shared by the render loop and the interrupt path."""
    machine: RunStateMachine
    token: CancellationToken = field(default_factory=CancellationToken)
    progress: RenderProgress = field(default_factory=RenderProgress)
    port: int | None = None
    restarts: int = 0
    last_restart_at: int = 0
    rendered: list[str] = field(default_factory=list)
