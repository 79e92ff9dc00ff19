"""Request validation utilities."""

from typing import Optional

from demo_server.domain.http_types import HttpRequest, HttpResponse
from demo_server.domain.response_builders import (
    bad_request_response,
    method_not_allowed_response,
)

ALLOWED_METHODS = frozenset({"GET"})


class RequestEntityTooLarge(Exception):
    """Raised when a request body exceeds configured limits."""


def enforce_allowed_method(
    request: HttpRequest, allowed_methods=ALLOWED_METHODS
) -> Optional[HttpResponse]:
    """Ensure the HTTP method is part of the supported allowlist."""
    if request.method in allowed_methods:
        return None
    return method_not_allowed_response(request, allowed_methods)


def enforce_well_formed_path(request: HttpRequest) -> Optional[HttpResponse]:
    """Reject request targets that are not origin-form paths."""
    if not request.path.startswith("/") or "\x00" in request.path:
        return bad_request_response(request)
    return None
