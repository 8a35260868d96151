"""Lifecycle management for the static file server child process."""
from __future__ import annotations

import os
import shlex
import signal
import subprocess
import sys
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import psutil
import requests
import structlog

from spa_prerender.config.settings import settings
from spa_prerender.errors import ServerStartTimeout
from spa_prerender.server.ports import listening_pids
from spa_prerender.shutdown.token import CancellationToken

logger = structlog.get_logger()

_KILL_SIGNAL = getattr(signal, "SIGKILL", signal.SIGTERM)
_HAS_PROCESS_GROUPS = hasattr(os, "killpg")


class ServerState(Enum):
    """Liveness of a supervised server process."""
    STARTING = "starting"
    RUNNING = "running"
    EXITED = "exited"


@dataclass
class ServerHandle:
    """The live static server process for a session."""

    process: subprocess.Popen
    port: int
    serve_dir: Path
    state: ServerState = ServerState.STARTING

    @property
    def pid(self) -> int:
        return self.process.pid

    def has_exited(self) -> bool:
        """Refresh and report whether the process is gone."""
        if self.process.poll() is not None:
            self.state = ServerState.EXITED
        return self.state == ServerState.EXITED


class ServerSupervisor:
    """Starts, stops and restarts the static server for one session.

    The supervisor owns the active handle: ``start`` replaces it and ``stop``
    marks it exited, so the interrupt path can always reach the process that
    is currently running, including one that is still starting up. While
    ``spawning`` is set the child exists but has no handle yet; the interrupt
    path defers to the token in that window instead of killing.
    """

    def __init__(
        self,
        command: str | None = None,
        host: str | None = None,
        probe_attempts: int | None = None,
        probe_interval: float | None = None,
        stop_timeout: float | None = None,
        debug: bool | None = None,
    ):
        self.command = command if command is not None else settings.server.command
        self.host = host or settings.server.host
        self.probe_attempts = probe_attempts or settings.server.probe_attempts
        self.probe_interval = probe_interval if probe_interval is not None else settings.server.probe_interval
        self.stop_timeout = stop_timeout if stop_timeout is not None else settings.server.stop_timeout
        self.debug = debug if debug is not None else settings.debug
        self.handle: ServerHandle | None = None
        self.spawning = False
        self._log = logger.bind(component="server_supervisor")

    def build_command(self, serve_dir: Path, port: int) -> list[str]:
        """Return the argv used to launch the server."""
        if self.command:
            return shlex.split(self.command.format(directory=str(serve_dir), port=port))
        return [
            sys.executable,
            "-m",
            "spa_prerender.server.static_server",
            "--directory",
            str(serve_dir),
            "--port",
            str(port),
        ]

    def start(self, serve_dir: Path, port: int, token: CancellationToken | None = None) -> ServerHandle:
        """Launch the server and block until it answers on its root URL.

        Raises:
            ServerStartTimeout: If the liveness probe never succeeds. The
                partially started process is killed first.
            RenderInterrupted: If token is cancelled while starting. The
                handle is already set, so teardown can reach the process.
        """
        argv = self.build_command(serve_dir, port)
        output = None if self.debug else subprocess.DEVNULL
        self.spawning = True
        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=output,
                stderr=output,
                start_new_session=_HAS_PROCESS_GROUPS,
            )
            handle = ServerHandle(process=process, port=port, serve_dir=serve_dir)
            self.handle = handle
        finally:
            self.spawning = False
        self._log.info("server_spawned", pid=process.pid, port=port, serve_dir=str(serve_dir))

        try:
            self._wait_until_live(handle, token)
        except ServerStartTimeout:
            self.kill(handle)
            raise

        handle.state = ServerState.RUNNING
        self._log.info("server_started", pid=process.pid, port=port)
        return handle

    def _wait_until_live(self, handle: ServerHandle, token: CancellationToken | None = None) -> None:
        url = f"http://{self.host}:{handle.port}/"
        for attempt in range(1, self.probe_attempts + 1):
            if token is not None:
                token.raise_if_cancelled()
            if handle.has_exited():
                raise ServerStartTimeout(handle.port, attempt, exit_code=handle.process.returncode)
            try:
                response = requests.get(url, timeout=max(self.probe_interval, 1.0))
                if response.ok:
                    return
                self._log.debug("server_probe_not_ok", attempt=attempt, status=response.status_code)
            except requests.RequestException:
                self._log.debug("server_probe_failed", attempt=attempt, port=handle.port)
            time.sleep(self.probe_interval)
        raise ServerStartTimeout(handle.port, self.probe_attempts)

    def stop(self, handle: ServerHandle | None = None, timeout: float | None = None) -> None:
        """Terminate the server with a graduated, best-effort ladder.

        SIGTERM to the process group, wait, SIGKILL to the group if it is
        still alive, then kill whatever still listens on the port. Failures
        are logged and never raised.
        """
        handle = handle or self.handle
        if handle is None:
            return
        wait = self.stop_timeout if timeout is None else timeout

        if handle.has_exited():
            self._log.debug("server_already_exited", pid=handle.pid)
        else:
            self._log.info("server_stopping", pid=handle.pid, port=handle.port)
            self._signal_group(handle, signal.SIGTERM)
            if not self._wait_for_exit(handle, wait):
                self._log.warning("server_stop_timeout", pid=handle.pid, timeout=wait)
                self._signal_group(handle, _KILL_SIGNAL)
                self._wait_for_exit(handle, 1.0)

        self.reclaim_port(handle.port)
        handle.state = ServerState.EXITED

    def kill(self, handle: ServerHandle | None = None, port: int | None = None) -> None:
        """Force-kill the server group and reclaim its port without waiting.

        ``port`` is reclaimed as well, so a session that allocated a port
        but holds no live handle still releases it.
        """
        handle = handle or self.handle
        ports = {port} if port is not None else set()
        if handle is not None:
            if not handle.has_exited():
                self._signal_group(handle, _KILL_SIGNAL)
                self._wait_for_exit(handle, 0.5)
            handle.state = ServerState.EXITED
            ports.add(handle.port)
        for stale_port in sorted(ports):
            self.reclaim_port(stale_port)

    def restart(
        self,
        handle: ServerHandle | None = None,
        serve_dir: Path | None = None,
        port: int | None = None,
        token: CancellationToken | None = None,
    ) -> ServerHandle:
        """Stop the server and start a fresh one on the same directory and port."""
        handle = handle or self.handle
        if handle is None:
            raise RuntimeError("No server to restart")
        self._log.info("server_restarting", pid=handle.pid, port=handle.port)
        self.stop(handle)
        return self.start(serve_dir or handle.serve_dir, port or handle.port, token=token)

    def reclaim_port(self, port: int) -> None:
        """Force-kill any process still listening on the port."""
        try:
            pids = listening_pids(port)
        except Exception as e:
            self._log.warning("port_lookup_failed", port=port, error=str(e))
            return

        for pid in pids:
            try:
                psutil.Process(pid).kill()
                self._log.info("port_reclaimed", port=port, pid=pid)
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied as e:
                self._log.warning("port_reclaim_denied", port=port, pid=pid, error=str(e))

    def _signal_group(self, handle: ServerHandle, sig: int) -> None:
        try:
            if _HAS_PROCESS_GROUPS:
                os.killpg(handle.pid, sig)
            else:
                _signal_tree(handle.pid, sig)
            self._log.debug("server_group_signalled", pid=handle.pid, signal=sig)
        except ProcessLookupError:
            self._log.debug("server_group_gone", pid=handle.pid)
        except OSError as e:
            self._log.warning("server_signal_failed", pid=handle.pid, signal=sig, error=str(e))
            try:
                handle.process.send_signal(sig)
            except OSError as e2:
                self._log.warning("server_kill_failed", pid=handle.pid, error=str(e2))

    def _wait_for_exit(self, handle: ServerHandle, timeout: float) -> bool:
        try:
            code = handle.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return False
        handle.state = ServerState.EXITED
        self._log.info("server_exited", pid=handle.pid, code=code)
        return True


def _signal_tree(pid: int, sig: int) -> None:
    """Signal a process and its descendants where process groups are missing."""
    try:
        parent = psutil.Process(pid)
        procs = parent.children(recursive=True) + [parent]
    except psutil.NoSuchProcess as e:
        raise ProcessLookupError(pid) from e
    for proc in procs:
        try:
            proc.send_signal(sig)
        except psutil.NoSuchProcess:
            continue
