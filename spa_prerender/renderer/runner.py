"""Sequential route rendering: the top-level prerender operation."""
from __future__ import annotations

import time
from collections.abc import Callable
from uuid import uuid4

import structlog
from rich.console import Console
from rich.markup import escape

from spa_prerender.browser.session import BrowserSession, RenderSession
from spa_prerender.config.settings import settings
from spa_prerender.errors import RenderInterrupted
from spa_prerender.observability.logging import bind_run_context, clear_run_context
from spa_prerender.renderer.io import write_page
from spa_prerender.renderer.models import PlannedRoute, RenderRequest, SessionState
from spa_prerender.renderer.paths import pending_counts, plan_routes
from spa_prerender.renderer.progress import format_duration, format_size
from spa_prerender.renderer.state_machine import RunState, RunStateMachine
from spa_prerender.server.ports import allocate
from spa_prerender.server.supervisor import ServerSupervisor
from spa_prerender.shutdown.coordinator import ShutdownCoordinator, ignored_signals

logger = structlog.get_logger()
console = Console()


class RouteRenderer:
    """Renders every route of a request through one server and one browser page."""

    def __init__(
        self,
        request: RenderRequest,
        supervisor: ServerSupervisor | None = None,
        browser: RenderSession | None = None,
        allocate_port: Callable[[int], int] = allocate,
        start_port: int | None = None,
        restart_every: int | None = None,
        navigation_timeout: int | None = None,
        handler_timeout: float | None = None,
        output: Console | None = None,
    ):
        self.request = request
        self.supervisor = supervisor or ServerSupervisor()
        self.browser = browser or RenderSession()
        self.allocate_port = allocate_port
        self.start_port = start_port or settings.server.start_port
        self.restart_every = restart_every if restart_every is not None else settings.server.restart_every
        self.navigation_timeout = navigation_timeout or settings.playwright.navigation_timeout
        self.handler_timeout = handler_timeout
        self.console = output or console
        self.state: SessionState | None = None
        self._log = logger.bind(component="route_renderer")

    def run(self) -> None:
        """Render all routes, tearing everything down exactly once on exit.

        Raises:
            RenderInterrupted: After an interrupt signal was handled.
            PrerenderError: On the first unrecoverable failure, after teardown.
        """
        run_id = uuid4().hex[:12]
        state = SessionState(machine=RunStateMachine(run_id))
        self.state = state
        bind_run_context(run_id)

        coordinator = ShutdownCoordinator(
            state,
            self.supervisor,
            self.browser,
            handler_timeout=self.handler_timeout,
        )
        try:
            with coordinator:
                try:
                    self._run_session(state)
                except RenderInterrupted:
                    raise
                except Exception as e:
                    if state.machine.can_transition(RunState.FAILING):
                        state.machine.to_failing()
                    self._log.error("prerender_failed", error=str(e), error_type=type(e).__name__)
                    raise
                finally:
                    self.console.print("[dim]Cleaning up resources...[/dim]")
        finally:
            clear_run_context()

    def _run_session(self, state: SessionState) -> None:
        request = self.request
        machine = state.machine

        state.port = self.allocate_port(self.start_port)
        machine.to_server_starting()
        self.supervisor.start(request.serve_dir, state.port, token=state.token)
        self.console.print(f"[green]Server started[/green] on port {state.port}")

        machine.to_browser_launching()
        session = self.browser.open()

        machine.to_rendering()
        request.out_dir.mkdir(parents=True, exist_ok=True)
        self._render_routes(state, session)
        machine.to_completed()

        progress = state.progress
        self._log.info(
            "prerender_completed",
            rendered=progress.processed_count,
            total=len(request.routes),
            restarts=state.restarts,
            elapsed=round(progress.elapsed, 2),
        )
        self.console.print(
            f"[green]Rendered {progress.processed_count} of {len(request.routes)} routes[/green] "
            f"in {format_duration(progress.elapsed)}"
        )

    def _render_routes(self, state: SessionState, session: BrowserSession) -> None:
        request = self.request
        progress = state.progress
        planned = plan_routes(request)
        pending = pending_counts(planned)
        total = len(planned)

        for item in planned:
            state.token.raise_if_cancelled()

            if request.skip_existing and item.path.exists():
                self._log.debug("route_skipped", route=item.route, path=str(item.path))
                continue

            self._maybe_restart(state)
            progress.start()
            eta = progress.eta(pending[item.index] if item.will_render else pending[item.index] + 1)
            self.console.print(
                f"[bold][{item.index + 1}/{total}][/bold] {escape(item.route)} "
                f"[dim](elapsed {format_duration(progress.elapsed)}, ETA {format_duration(eta)})[/dim]"
            )

            started = time.monotonic()
            html = self.browser.render(session, self._url_for(state, item), self.navigation_timeout)
            size = write_page(item.path, html)
            duration = time.monotonic() - started

            progress.record(duration, size)
            state.rendered.append(item.route)
            self._log.debug("route_rendered", route=item.route, seconds=round(duration, 3), bytes=size)
            self.console.print(
                f"  [green]saved[/green] {escape(self._display_path(item))} "
                f"[dim]({duration:.2f}s, {format_size(size)})[/dim]"
            )

    def _maybe_restart(self, state: SessionState) -> None:
        count = state.progress.processed_count
        if self.restart_every <= 0 or count == 0 or count % self.restart_every:
            return
        if state.last_restart_at == count:
            return
        self.console.print(f"[yellow]Restarting server after {count} routes[/yellow]")
        self.supervisor.restart(token=state.token)
        state.restarts += 1
        state.last_restart_at = count

    def _url_for(self, state: SessionState, item: PlannedRoute) -> str:
        route = item.route if item.route.startswith("/") else f"/{item.route}"
        return f"http://{self.supervisor.host}:{state.port}{route}"

    def _display_path(self, item: PlannedRoute) -> str:
        try:
            return str(item.path.relative_to(self.request.out_dir))
        except ValueError:
            return str(item.path)


def prerender(
    request: RenderRequest,
    *,
    exit_on_interrupt: bool = True,
    exit_delay: float | None = None,
    **options,
) -> None:
    """Render every route of request to static HTML files.

    An interrupt signal ends the process with status 0 once resources are
    released, unless exit_on_interrupt is False, in which case
    RenderInterrupted propagates to the caller.
    """
    renderer = RouteRenderer(request, **options)
    try:
        renderer.run()
    except RenderInterrupted as exc:
        renderer.console.print("\n[yellow]Prerendering interrupted, resources released[/yellow]")
        if not exit_on_interrupt:
            raise
        # Repeated interrupts during the final delay are ignored.
        with ignored_signals():
            time.sleep(settings.shutdown.exit_delay if exit_delay is None else exit_delay)
        raise SystemExit(0) from exc
