"""Shared HTTP type definitions to avoid circular imports."""

from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Optional


@dataclass
class HttpRequest:
    """Represents a parsed HTTP request."""

    method: str
    path: str
    headers: dict[str, str]
    body: bytes = b""
    query: dict[str, list[str]] = field(default_factory=dict)
    version: str = "HTTP/1.1"

    def query_value(self, name: str) -> Optional[str]:
        """Return the first value of a query parameter, or None when absent."""
        values = self.query.get(name)
        if not values:
            return None
        return values[0]


@dataclass
class HttpResponse:
    """Represents an HTTP response to be sent to a client."""

    status: HTTPStatus
    headers: dict[str, str]
    body: bytes
    close_connection: bool = False

    @property
    def status_line(self) -> str:
        return f"HTTP/1.1 {self.status.value} {self.status.phrase}"


def should_close(headers: dict[str, str], version: str = "HTTP/1.1") -> bool:
    """Determine whether the connection should be closed after responding.

    HTTP/1.0 closes unless the client asks for keep-alive; HTTP/1.1 stays
    open unless the client asks to close.
    """
    connection = headers.get("connection", "").lower()
    if version == "HTTP/1.0":
        return connection != "keep-alive"
    return connection == "close"
