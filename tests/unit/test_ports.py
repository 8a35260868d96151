"""Unit tests for port allocation and lookup."""
from __future__ import annotations

import os
import socket
from types import SimpleNamespace
from unittest.mock import patch

import psutil
import pytest

from spa_prerender.errors import NoPortAvailable
from spa_prerender.server.ports import allocate, is_port_available, listening_pids


def _conn(port: int, pid: int | None, status: str = psutil.CONN_LISTEN):
    return SimpleNamespace(laddr=SimpleNamespace(ip="0.0.0.0", port=port), status=status, pid=pid)


class TestAllocate:
    def test_returns_first_free_port(self, free_port):
        assert allocate(free_port, 10) == free_port

    def test_skips_port_in_use(self, free_port):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
            busy.bind(("", free_port))
            busy.listen(1)

            assert is_port_available(free_port) is False
            port = allocate(free_port, 20)

        assert port != free_port
        assert free_port < port < free_port + 20

    def test_range_exhausted(self):
        with patch("spa_prerender.server.ports.is_port_available", return_value=False) as probe:
            with pytest.raises(NoPortAvailable) as exc_info:
                allocate(6000, 100)

        assert probe.call_count == 100
        assert exc_info.value.start_port == 6000
        assert exc_info.value.end_port == 6099

    def test_probe_does_not_reserve(self, free_port):
        assert is_port_available(free_port)
        assert is_port_available(free_port)


class TestListeningPids:
    def test_filters_by_port_and_listen_state(self):
        conns = [
            _conn(5050, 111),
            _conn(5050, 222, status=psutil.CONN_ESTABLISHED),
            _conn(5051, 333),
            _conn(5050, None),
        ]
        with patch("spa_prerender.server.ports.psutil.net_connections", return_value=conns):
            assert listening_pids(5050) == {111}

    def test_excludes_own_process(self):
        conns = [_conn(5050, os.getpid()), _conn(5050, 444)]
        with patch("spa_prerender.server.ports.psutil.net_connections", return_value=conns):
            assert listening_pids(5050) == {444}

    def test_falls_back_to_process_scan(self):
        proc = SimpleNamespace(pid=555, net_connections=lambda kind: [_conn(5050, 555)])
        other = SimpleNamespace(pid=666, net_connections=lambda kind: [_conn(8080, 666)])
        with (
            patch("spa_prerender.server.ports.psutil.net_connections", side_effect=psutil.AccessDenied()),
            patch("spa_prerender.server.ports.psutil.process_iter", return_value=[proc, other]),
        ):
            assert listening_pids(5050) == {555}
