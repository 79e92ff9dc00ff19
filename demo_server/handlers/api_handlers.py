"""Handlers for the /api/* endpoints."""

import logging
import os
import re
import socket
import time
from typing import Optional

from demo_server.bootstrap.config import DEFAULT_LOAD_ITERATIONS, AppSettings
from demo_server.domain.correlation_id import CorrelationLoggerAdapter
from demo_server.domain.http_types import HttpRequest, HttpResponse
from demo_server.domain.response_builders import json_response, metrics_response
from demo_server.handlers.probe_handlers import rfc3339_now

API_LOGGER = CorrelationLoggerAdapter(logging.getLogger("demo_server.handlers.api"), {})

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

METRICS_TEMPLATE = """\
# HELP app_uptime_seconds Application uptime in seconds
# TYPE app_uptime_seconds counter
app_uptime_seconds {uptime:.2f}

# HELP app_version_info Application version info
# TYPE app_version_info gauge
app_version_info{{version="{version}",environment="{environment}"}} 1
"""


def handle_info(request: HttpRequest, settings: AppSettings) -> HttpResponse:
    return json_response(
        {
            "version": settings.version,
            "environment": settings.environment,
            "hostname": socket.gethostname(),
            "pid": os.getpid(),
            "uptime": str(settings.uptime()),
            "timestamp": rfc3339_now(),
        },
        request,
    )


def handle_config(request: HttpRequest, settings: AppSettings) -> HttpResponse:
    """Expose non-sensitive settings; the secret is reported only as a flag."""
    return json_response(
        {
            "port": settings.port,
            "database_url": settings.database_url,
            "environment": settings.environment,
            "version": settings.version,
            "has_secret": settings.has_secret,
        },
        request,
    )


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def render_metrics(settings: AppSettings) -> str:
    """Render the uptime counter and version info gauge as Prometheus text."""
    return METRICS_TEMPLATE.format(
        uptime=settings.uptime_seconds(),
        version=_escape_label_value(settings.version),
        environment=_escape_label_value(settings.environment),
    )


def handle_metrics(request: HttpRequest, settings: AppSettings) -> HttpResponse:
    return metrics_response(render_metrics(settings), request)


def parse_iterations(raw: Optional[str], default: int = DEFAULT_LOAD_ITERATIONS) -> int:
    """Parse a signed 64-bit decimal integer, falling back to default on any error."""
    if raw is None or not _INTEGER_PATTERN.fullmatch(raw):
        return default
    value = int(raw)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return default
    return value


def run_load(iterations: int) -> tuple[int, float]:
    """Sum 0..iterations-1 one step at a time; returns (sum, elapsed ms)."""
    start = time.perf_counter()
    total = 0
    for i in range(iterations):
        total += i
    elapsed_ms = (time.perf_counter() - start) * 1000
    return total, elapsed_ms


def handle_load(request: HttpRequest, _settings: AppSettings) -> HttpResponse:
    """Burn CPU for the requested number of iterations to drive autoscaling."""
    iterations = parse_iterations(request.query_value("iterations"))
    total, elapsed_ms = run_load(iterations)
    API_LOGGER.info(
        "Load test completed",
        extra={
            "event": "load_completed",
            "iterations": iterations,
            "duration_ms": round(elapsed_ms, 2),
        },
    )
    return json_response(
        {
            "message": "Load test completed",
            "iterations": iterations,
            "result": total,
            "duration_ms": round(elapsed_ms, 2),
        },
        request,
    )
