"""Liveness and readiness probe handlers."""

import logging
from datetime import datetime
from http import HTTPStatus

from demo_server.bootstrap.config import AppSettings
from demo_server.domain.correlation_id import CorrelationLoggerAdapter
from demo_server.domain.http_types import HttpRequest, HttpResponse
from demo_server.domain.response_builders import json_response

PROBE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("demo_server.handlers.probes"), {}
)


def rfc3339_now() -> str:
    """Current local time as an RFC 3339 timestamp with offset."""
    return datetime.now().astimezone().isoformat(timespec="seconds")


def handle_health(request: HttpRequest, _settings: AppSettings) -> HttpResponse:
    """Liveness: healthy whenever the process can answer."""
    return json_response({"status": "healthy", "timestamp": rfc3339_now()}, request)


def handle_ready(request: HttpRequest, settings: AppSettings) -> HttpResponse:
    """Readiness: 503 until the warm-up delay has elapsed, 200 afterwards."""
    if not settings.is_ready():
        if PROBE_LOGGER.logger.isEnabledFor(logging.DEBUG):
            PROBE_LOGGER.debug(
                "Readiness probe before warm-up finished",
                extra={"event": "not_ready"},
            )
        return json_response(
            {"status": "not ready", "message": "starting up"},
            request,
            HTTPStatus.SERVICE_UNAVAILABLE,
        )
    return json_response({"status": "ready"}, request)
