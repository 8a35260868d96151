"""Unit tests for signal handling and teardown."""
from __future__ import annotations

import os
import signal
import threading
import time

import pytest

from spa_prerender.errors import RenderInterrupted
from spa_prerender.renderer.models import SessionState
from spa_prerender.renderer.state_machine import RunState, RunStateMachine
from spa_prerender.shutdown.coordinator import ShutdownCoordinator, ignored_signals


@pytest.fixture
def state() -> SessionState:
    return SessionState(machine=RunStateMachine("test-run"))


@pytest.fixture
def coordinator(state, fake_supervisor, fake_browser) -> ShutdownCoordinator:
    return ShutdownCoordinator(state, fake_supervisor, fake_browser, handler_timeout=1.0)


class TestHandlers:
    def test_install_and_restore(self, coordinator):
        previous = signal.getsignal(signal.SIGTERM)

        coordinator.install()
        assert signal.getsignal(signal.SIGTERM) == coordinator._handle_signal
        assert coordinator.installed

        coordinator.uninstall()
        assert signal.getsignal(signal.SIGTERM) == previous
        assert not coordinator.installed

    def test_install_skipped_off_main_thread(self, coordinator):
        worker = threading.Thread(target=coordinator.install)
        worker.start()
        worker.join()

        assert not coordinator.installed

    def test_context_manager_tears_down(self, coordinator, events, state):
        previous = signal.getsignal(signal.SIGINT)
        with coordinator:
            state.machine.to_server_starting()

        assert signal.getsignal(signal.SIGINT) == previous
        assert state.machine.state == RunState.EXITED
        assert ("stop",) in events


class TestTeardown:
    def test_runs_once(self, coordinator, fake_supervisor, fake_browser, state):
        assert coordinator.teardown() is True
        assert coordinator.teardown() is False

        assert fake_supervisor.count("stop") == 1
        assert fake_browser.close_calls == [False]
        assert state.machine.is_terminal()

    def test_browser_closed_before_server(self, coordinator, events):
        coordinator.teardown()

        assert [e[0] for e in events] == ["close", "stop"]

    def test_active_state_moves_through_failing(self, coordinator, state):
        state.machine.to_server_starting()
        state.machine.to_browser_launching()

        coordinator.teardown()

        assert state.machine.is_terminal()

    def test_release_errors_do_not_stop_teardown(self, coordinator, fake_supervisor, fake_browser):
        def broken_close(session=None, force=False):
            raise RuntimeError("already gone")

        fake_browser.close = broken_close
        coordinator.teardown()

        assert fake_supervisor.count("stop") == 1

    def test_forced_release_is_bounded(self, state, fake_supervisor, fake_browser):
        def hang(session=None, force=False):
            time.sleep(5)

        fake_browser.close = hang
        coordinator = ShutdownCoordinator(state, fake_supervisor, fake_browser, handler_timeout=0.2)

        began = time.monotonic()
        coordinator.teardown(force=True)

        assert time.monotonic() - began < 2
        assert state.machine.is_terminal()


class TestHandleSignal:
    def test_signal_cancels_and_raises(self, coordinator, state, fake_supervisor, fake_browser):
        state.machine.to_server_starting()

        with pytest.raises(RenderInterrupted) as exc_info:
            coordinator._handle_signal(signal.SIGINT, None)

        assert exc_info.value.signum == signal.SIGINT
        assert state.token.cancelled
        assert state.token.signum == signal.SIGINT
        assert fake_browser.close_calls == [True]
        assert fake_supervisor.count("kill") == 1
        assert fake_supervisor.count("stop") == 0
        assert state.machine.is_terminal()

    def test_second_signal_during_teardown_is_ignored(self, coordinator, fake_supervisor):
        coordinator.teardown()

        coordinator._handle_signal(signal.SIGTERM, None)

        assert fake_supervisor.count("kill") == 0
        assert fake_supervisor.count("stop") == 1

    def test_normal_exit_after_signal_does_not_tear_down_again(self, coordinator, fake_supervisor):
        with pytest.raises(RenderInterrupted):
            with coordinator:
                coordinator._handle_signal(signal.SIGINT, None)

        assert fake_supervisor.count("kill") == 1
        assert fake_supervisor.count("stop") == 0

    def test_forced_release_reclaims_allocated_port(self, coordinator, state, events):
        state.port = 5050

        with pytest.raises(RenderInterrupted):
            coordinator._handle_signal(signal.SIGTERM, None)

        assert ("kill", 5050) in events

    def test_signal_while_spawning_is_deferred(self, coordinator, state, fake_supervisor, fake_browser):
        state.machine.to_server_starting()
        fake_supervisor.spawning = True

        with coordinator:
            assert coordinator._handle_signal(signal.SIGINT, None) is None
            assert state.token.cancelled
            assert state.machine.state == RunState.INTERRUPTED
            assert fake_supervisor.count("kill") == 0
            fake_supervisor.spawning = False

        assert fake_browser.close_calls == [True]
        assert fake_supervisor.count("kill") == 1
        assert fake_supervisor.count("stop") == 0
        assert state.machine.is_terminal()


class TestIgnoredSignals:
    def test_signals_ignored_then_restored(self):
        previous = signal.getsignal(signal.SIGINT)

        with ignored_signals():
            assert signal.getsignal(signal.SIGINT) == signal.SIG_IGN
            assert signal.getsignal(signal.SIGTERM) == signal.SIG_IGN
            os.kill(os.getpid(), signal.SIGINT)
            time.sleep(0.1)

        assert signal.getsignal(signal.SIGINT) == previous
