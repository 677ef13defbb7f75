from __future__ import annotations

import socket

from scripts.healthcheck import main


def _closed_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_unreachable_service_is_unhealthy() -> None:
    assert main([f"http://127.0.0.1:{_closed_port()}/health"]) == 1
