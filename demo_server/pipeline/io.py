"""HTTP input/output over raw sockets."""

import logging
import socket
import time
import urllib.parse
from typing import Callable, Optional, Tuple

from demo_server.bootstrap.config import HEADER_DELIMITER, MAX_BODY_BYTES
from demo_server.domain.correlation_id import (
    CorrelationLoggerAdapter,
    accept_incoming_id,
    get_correlation_id,
    set_correlation_id,
)
from demo_server.domain.http_types import HttpRequest, HttpResponse
from demo_server.pipeline.validation import RequestEntityTooLarge

IO_LOGGER = CorrelationLoggerAdapter(logging.getLogger("demo_server.io"), {})

RECV_POLL_SECONDS = 0.25
MAX_HEADER_BYTES = 64 * 1024


class DeadlineReader:
    """Socket reader enforcing a per-request read deadline.

    While no byte of the next request has arrived, ``is_idle_closing`` is
    polled so idle keep-alive connections are released during shutdown.
    """

    def __init__(
        self,
        client_socket: socket.socket,
        timeout: float,
        is_idle_closing: Optional[Callable[[], bool]] = None,
    ) -> None:
        self._socket = client_socket
        self._timeout = timeout
        self._is_idle_closing = is_idle_closing
        self._deadline = time.monotonic() + timeout
        self._idle = True

    def start_request(self, buffered: bytes = b"") -> None:
        """Reset the deadline before reading the next request."""
        self._deadline = time.monotonic() + self._timeout
        self._idle = not buffered

    def recv(self, size: int) -> bytes:
        while True:
            remaining = self._deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError("Request read deadline exceeded")
            self._socket.settimeout(min(remaining, RECV_POLL_SECONDS))
            try:
                chunk = self._socket.recv(size)
            except socket.timeout:
                if self._idle and self._is_idle_closing and self._is_idle_closing():
                    return b""
                continue
            self._idle = False
            return chunk


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed = {}
    for line in lines:
        name, separator, value = line.partition(":")
        if not separator or not name.strip():
            continue
        parsed[name.strip().lower()] = value.strip()
    return parsed


def parse_request_line(
    request_line: str,
) -> Tuple[str, str, dict[str, list[str]], str]:
    """Parse the method, decoded path, query parameters and version."""
    try:
        method, target, version = request_line.split(" ", 2)
    except ValueError as exc:
        raise ValueError("Invalid request line") from exc
    if not version.startswith("HTTP/"):
        raise ValueError("Invalid HTTP version")

    parsed_target = urllib.parse.urlsplit(target)
    path = urllib.parse.unquote(parsed_target.path)
    query = urllib.parse.parse_qs(parsed_target.query, keep_blank_values=True)
    return method, path, query, version.strip()


def determine_content_length(headers: dict[str, str]) -> int:
    """Validate and return the declared Content-Length for the request."""
    header_value = headers.get("content-length")
    if header_value is None:
        return 0
    try:
        content_length = int(header_value)
    except ValueError as exc:
        raise ValueError("Invalid Content-Length") from exc
    if content_length < 0:
        raise ValueError("Negative Content-Length")
    if content_length > MAX_BODY_BYTES:
        raise RequestEntityTooLarge
    return content_length


def receive_request(reader, buffer: bytes) -> Tuple[Optional[HttpRequest], bytes]:
    """Read bytes until a complete request is available.

    Returns ``(None, b"")`` when the peer closes before a full request arrives.
    """
    while HEADER_DELIMITER not in buffer:
        if len(buffer) > MAX_HEADER_BYTES:
            raise ValueError("Header block too large")
        chunk = reader.recv(4096)
        if not chunk:
            return None, b""
        buffer += chunk

    header_block, remainder = buffer.split(HEADER_DELIMITER, 1)
    header_lines = header_block.decode("latin-1").split("\r\n")
    method, path, query, version = parse_request_line(header_lines[0])
    headers = parse_headers(header_lines[1:])

    if "transfer-encoding" in headers:
        raise ValueError("Transfer-Encoding request bodies are not supported")

    incoming_correlation_id = accept_incoming_id(headers.get("x-request-id"))
    if incoming_correlation_id:
        set_correlation_id(incoming_correlation_id)

    content_length = determine_content_length(headers)

    while len(remainder) < content_length:
        chunk = reader.recv(4096)
        if not chunk:
            return None, b""
        remainder += chunk

    body = remainder[:content_length]
    leftover = remainder[content_length:]
    IO_LOGGER.debug(
        "Parsed request", extra={"method": method, "route": path, "bytes_in": len(body)}
    )
    return HttpRequest(method, path, headers, body, query, version), leftover


def serialize_response(response: HttpResponse) -> bytes:
    """Render the status line, headers and body of a response."""
    headers = dict(response.headers)

    correlation_id = get_correlation_id()
    if correlation_id:
        headers["X-Request-ID"] = correlation_id

    headers["Content-Length"] = str(len(response.body))
    if response.close_connection:
        headers["Connection"] = "close"
    header_lines = [response.status_line]
    header_lines.extend(f"{name}: {value}" for name, value in headers.items())
    return "\r\n".join(header_lines).encode("latin-1") + HEADER_DELIMITER + response.body


def send_response(
    client_socket: socket.socket,
    response: HttpResponse,
    write_timeout: Optional[float] = None,
) -> int:
    """Send the response, bounded by write_timeout seconds. Returns bytes sent."""
    payload = serialize_response(response)
    if write_timeout is not None:
        client_socket.settimeout(write_timeout)
    client_socket.sendall(payload)
    IO_LOGGER.debug(
        "Sent response",
        extra={"status_code": response.status.value, "bytes_out": len(payload)},
    )
    return len(payload)
