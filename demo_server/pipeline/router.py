"""Request routing logic."""

import logging
from typing import Callable, Optional

from demo_server.bootstrap.config import AppSettings
from demo_server.domain.correlation_id import CorrelationLoggerAdapter
from demo_server.domain.http_types import HttpRequest, HttpResponse
from demo_server.domain.response_builders import not_found_response
from demo_server.handlers.api_handlers import (
    handle_config,
    handle_info,
    handle_load,
    handle_metrics,
)
from demo_server.handlers.home_handler import handle_home
from demo_server.handlers.probe_handlers import handle_health, handle_ready
from demo_server.pipeline.validation import enforce_allowed_method

ROUTER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("demo_server.pipeline.router"), {}
)

Handler = Callable[[HttpRequest, AppSettings], HttpResponse]

ROUTES: dict[str, Handler] = {
    "/": handle_home,
    "/health": handle_health,
    "/ready": handle_ready,
    "/api/info": handle_info,
    "/api/config": handle_config,
    "/api/metrics": handle_metrics,
    "/api/load": handle_load,
}


def resolve_route(path: str) -> Optional[Handler]:
    return ROUTES.get(path)


def route_request(request: HttpRequest, settings: AppSettings) -> HttpResponse:
    """Route the request to the matching handler and return its response."""
    handler = resolve_route(request.path)
    if handler is None:
        ROUTER_LOGGER.info(
            "No matching route found",
            extra={
                "event": "route_not_found",
                "route": request.path,
                "method": request.method,
            },
        )
        return not_found_response(request)

    method_error = enforce_allowed_method(request)
    if method_error is not None:
        ROUTER_LOGGER.info(
            "Method not allowed",
            extra={
                "event": "method_not_allowed",
                "route": request.path,
                "method": request.method,
            },
        )
        return method_error

    if ROUTER_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ROUTER_LOGGER.debug(
            "Route matched", extra={"event": "route_matched", "route": request.path}
        )
    return handler(request, settings)
