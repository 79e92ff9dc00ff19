"""Listening socket creation."""

import logging
import socket

from demo_server.domain.correlation_id import CorrelationLoggerAdapter
from demo_server.domain.errors import BindError

SOCKET_LOGGER = CorrelationLoggerAdapter(logging.getLogger("demo_server.socket"), {})

ACCEPT_POLL_SECONDS = 0.5


def create_server_socket(host: str, port: str) -> socket.socket:
    """Bind and listen on host:port, raising BindError on any failure."""
    try:
        port_number = int(port)
    except ValueError as exc:
        raise BindError(host, port, "invalid port") from exc
    if not 0 <= port_number <= 65535:
        raise BindError(host, port, "port out of range")

    try:
        server_socket = socket.create_server((host, port_number), reuse_port=False)
    except OSError as exc:
        raise BindError(host, port, exc.strerror or str(exc)) from exc

    server_socket.settimeout(ACCEPT_POLL_SECONDS)
    SOCKET_LOGGER.debug(
        "Listening socket created",
        extra={"event": "socket_bound", "host": host, "port": port_number},
    )
    return server_socket
