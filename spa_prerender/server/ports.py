"""Local TCP port probing and lookup."""
from __future__ import annotations

import os
import socket

import psutil
import structlog

from spa_prerender.config.settings import settings
from spa_prerender.errors import NoPortAvailable

logger = structlog.get_logger()


def is_port_available(port: int, host: str = "") -> bool:
    """Check whether a short-lived listener can bind to the port.

    The socket is closed again before returning, so a True result does not
    reserve the port.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
            sock.listen(1)
        except OSError:
            return False
    return True


def allocate(start_port: int | None = None, port_range: int | None = None) -> int:
    """Return the first available port in [start_port, start_port + port_range).

    Raises:
        NoPortAvailable: If every port in the range is taken.
    """
    start = start_port if start_port is not None else settings.server.start_port
    count = port_range if port_range is not None else settings.server.port_range

    for port in range(start, start + count):
        if is_port_available(port):
            logger.debug("port_allocated", port=port, component="ports")
            return port

    raise NoPortAvailable(start, start + count - 1)


def listening_pids(port: int) -> set[int]:
    """Return pids of processes listening on the given TCP port.

    Falls back to a per-process scan where the system-wide table is not
    readable (macOS without root).
    """
    own_pid = os.getpid()
    pids: set[int] = set()

    try:
        for conn in psutil.net_connections(kind="inet"):
            if _is_listener(conn, port) and conn.pid:
                pids.add(conn.pid)
    except psutil.AccessDenied:
        for proc in psutil.process_iter(["pid"]):
            try:
                if any(_is_listener(conn, port) for conn in proc.net_connections(kind="inet")):
                    pids.add(proc.pid)
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue

    pids.discard(own_pid)
    return pids


def _is_listener(conn, port: int) -> bool:
    return bool(conn.laddr) and conn.laddr.port == port and conn.status == psutil.CONN_LISTEN
