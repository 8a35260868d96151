"""Signal handling and single teardown for a render session."""
from __future__ import annotations

import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

from spa_prerender.config.settings import settings
from spa_prerender.errors import RenderInterrupted
from spa_prerender.renderer.state_machine import RunState

if TYPE_CHECKING:
    from spa_prerender.browser.session import RenderSession
    from spa_prerender.renderer.models import SessionState
    from spa_prerender.server.supervisor import ServerSupervisor

logger = structlog.get_logger()

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownCoordinator:
    """Owns the interrupt handlers and the teardown of one session.

    Used as a context manager around the whole session: handlers are
    installed on entry, before any port or process exists, and teardown
    runs on exit. Teardown runs at most once, whether it is reached from
    the signal handler or from the normal exit path.
    """

    def __init__(
        self,
        state: SessionState,
        supervisor: ServerSupervisor,
        browser: RenderSession,
        signals: tuple[int, ...] = DEFAULT_SIGNALS,
        handler_timeout: float | None = None,
    ):
        self._state = state
        self._supervisor = supervisor
        self._browser = browser
        self._signals = signals
        self._handler_timeout = (
            handler_timeout if handler_timeout is not None else settings.shutdown.handler_timeout
        )
        self._previous: dict[int, Any] = {}
        self._teardown_started = False
        self._log = logger.bind(component="shutdown")

    def __enter__(self) -> ShutdownCoordinator:
        self.install()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.teardown(force=self._state.token.cancelled)
        return False

    @property
    def installed(self) -> bool:
        return bool(self._previous)

    @property
    def torn_down(self) -> bool:
        return self._teardown_started

    def install(self) -> None:
        """Register the handlers, remembering the ones they replace."""
        if threading.current_thread() is not threading.main_thread():
            self._log.warning("signal_handlers_skipped", reason="not_main_thread")
            return
        for sig in self._signals:
            self._previous[sig] = signal.getsignal(sig)
            signal.signal(sig, self._handle_signal)

    def uninstall(self) -> None:
        """Restore the handlers that were active before install."""
        if not self._previous or threading.current_thread() is not threading.main_thread():
            return
        for sig, previous in self._previous.items():
            signal.signal(sig, previous if previous is not None else signal.SIG_DFL)
        self._previous.clear()

    def teardown(self, force: bool = False) -> bool:
        """Close the browser, stop the server and deregister the handlers.

        Returns False when teardown already ran (or is running).
        """
        if self._teardown_started:
            return False
        self._teardown_started = True

        machine = self._state.machine
        if not machine.can_transition(RunState.TEARING_DOWN):
            machine.to_failing()
        machine.to_tearing_down()
        self._log.info("teardown_started", force=force)

        try:
            if force:
                self._release_bounded()
            else:
                self._release(force=False)
        finally:
            self.uninstall()
            machine.to_exited()
            self._log.info("teardown_finished", force=force)
        return True

    def _handle_signal(self, signum: int, frame) -> None:
        name = signal.Signals(signum).name
        self._state.token.cancel(signum)

        if self._teardown_started:
            self._log.warning("interrupt_during_teardown", signal=name)
            return

        self._log.warning("interrupt_received", signal=name)
        machine = self._state.machine
        if machine.can_transition(RunState.INTERRUPTED):
            machine.to_interrupted()
        if getattr(self._supervisor, "spawning", False):
            # The server child may exist without a handle; start() raises
            # from the token once the handle is set.
            self._log.warning("interrupt_deferred", signal=name, reason="server_spawning")
            return
        self.teardown(force=True)
        raise RenderInterrupted(signum)

    def _release_bounded(self) -> None:
        worker = threading.Thread(target=self._release, kwargs={"force": True}, daemon=True)
        worker.start()
        worker.join(self._handler_timeout)
        if worker.is_alive():
            self._log.warning("forced_release_timeout", timeout=self._handler_timeout)

    def _release(self, force: bool) -> None:
        try:
            self._browser.close(self._browser.session, force=force)
        except Exception as e:
            self._log.error("browser_release_failed", error=str(e), error_type=type(e).__name__)

        try:
            if force:
                self._supervisor.kill(port=self._state.port)
            else:
                self._supervisor.stop()
        except Exception as e:
            self._log.error("server_release_failed", error=str(e), error_type=type(e).__name__)


@contextmanager
def ignored_signals(signals: tuple[int, ...] = DEFAULT_SIGNALS) -> Iterator[None]:
    """Ignore signals for the duration of the block, then restore the previous handlers."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = {sig: signal.signal(sig, signal.SIG_IGN) for sig in signals}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
