"""Pure HTTP response builders."""

import json
from http import HTTPStatus
from typing import Any, Iterable, Optional

from demo_server.domain.http_types import HttpRequest, HttpResponse, should_close

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
}

JSON_CONTENT_TYPE = "application/json"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"
METRICS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def _keep_alive(request: Optional[HttpRequest]) -> bool:
    return request is not None and not should_close(request.headers, request.version)


def _response(
    status: HTTPStatus,
    payload: bytes,
    content_type: Optional[str],
    request: Optional[HttpRequest],
) -> HttpResponse:
    headers = SECURITY_HEADERS.copy()
    if content_type is not None:
        headers["Content-Type"] = content_type
    keep_alive = _keep_alive(request)
    if keep_alive and request.version == "HTTP/1.0":
        headers["Connection"] = "keep-alive"
    return HttpResponse(status, headers, payload, not keep_alive)


def json_response(
    document: Any,
    request: HttpRequest,
    status: HTTPStatus = HTTPStatus.OK,
) -> HttpResponse:
    """Serialize a JSON document with a stable key order."""
    payload = json.dumps(document, separators=(",", ":")).encode()
    return _response(status, payload, JSON_CONTENT_TYPE, request)


def html_response(markup: str, request: HttpRequest) -> HttpResponse:
    """Return a 200 text/html response."""
    return _response(HTTPStatus.OK, markup.encode(), HTML_CONTENT_TYPE, request)


def metrics_response(exposition: str, request: HttpRequest) -> HttpResponse:
    """Return a 200 response in the Prometheus text exposition format."""
    return _response(
        HTTPStatus.OK, exposition.encode(), METRICS_CONTENT_TYPE, request
    )


def not_found_response(request: HttpRequest) -> HttpResponse:
    """Return a 404 response reusing the connection preference."""
    return _response(
        HTTPStatus.NOT_FOUND, b"404 page not found\n", TEXT_CONTENT_TYPE, request
    )


def method_not_allowed_response(
    request: HttpRequest, allowed_methods: Iterable[str]
) -> HttpResponse:
    """Produce a 405 response enumerating the supported HTTP methods."""
    response = _response(HTTPStatus.METHOD_NOT_ALLOWED, b"", None, request)
    response.headers["Allow"] = ", ".join(sorted(allowed_methods))
    return response


def bad_request_response(request: Optional[HttpRequest] = None) -> HttpResponse:
    """Produce a 400 response; without a parsed request the connection closes."""
    return _response(
        HTTPStatus.BAD_REQUEST, b"400 bad request\n", TEXT_CONTENT_TYPE, request
    )


def entity_too_large_response() -> HttpResponse:
    """Produce a 413 response that always closes the connection."""
    return _response(HTTPStatus.REQUEST_ENTITY_TOO_LARGE, b"", None, None)


def draining_response() -> HttpResponse:
    """Produce a 503 response indicating the server is shutting down."""
    response = _response(
        HTTPStatus.SERVICE_UNAVAILABLE, b"draining", TEXT_CONTENT_TYPE, None
    )
    response.headers["Connection"] = "close"
    return response


def internal_error_response() -> HttpResponse:
    """Produce a 500 response after a handler failure."""
    return _response(
        HTTPStatus.INTERNAL_SERVER_ERROR,
        b"500 internal server error\n",
        TEXT_CONTENT_TYPE,
        None,
    )
