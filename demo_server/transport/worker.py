"""Worker thread logic for handling individual client connections."""

import logging
import socket
import threading
import time
from dataclasses import dataclass
from typing import Optional

from demo_server.domain.correlation_id import (
    CorrelationLoggerAdapter,
    clear_correlation_id,
    generate_correlation_id,
    set_correlation_id,
)
from demo_server.domain.http_types import HttpRequest, HttpResponse
from demo_server.domain.response_builders import (
    bad_request_response,
    entity_too_large_response,
    internal_error_response,
)
from demo_server.lifecycle.state import ServerLifecycle
from demo_server.pipeline.io import DeadlineReader, receive_request, send_response
from demo_server.pipeline.router import route_request
from demo_server.pipeline.validation import (
    RequestEntityTooLarge,
    enforce_well_formed_path,
)
from demo_server.transport.context import WorkerContext

WORKER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("demo_server.transport.worker"), {}
)


@dataclass
class _WorkerResources:
    thread: threading.Thread
    client_socket: socket.socket
    client_addr_str: str


def _read_request_with_validation(
    reader: DeadlineReader,
    buffer: bytes,
    client_addr_str: str,
) -> tuple[Optional[HttpRequest], bytes, Optional[HttpResponse]]:
    """Read one request; on protocol errors return the response to send instead."""
    try:
        request, buffer = receive_request(reader, buffer)
    except RequestEntityTooLarge:
        WORKER_LOGGER.warning(
            "Request body size exceeded limit",
            extra={"event": "body_size_exceeded", "client": client_addr_str},
        )
        return None, b"", entity_too_large_response()
    except (ValueError, UnicodeDecodeError):
        WORKER_LOGGER.warning(
            "Malformed request received",
            extra={"event": "malformed_request", "client": client_addr_str},
        )
        return None, b"", bad_request_response(None)
    return request, buffer, None


def _dispatch(request: HttpRequest, context: WorkerContext) -> HttpResponse:
    path_error = enforce_well_formed_path(request)
    if path_error is not None:
        return path_error
    try:
        return route_request(request, context.settings)
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Handler raised an exception",
            extra={
                "event": "handler_error",
                "route": request.path,
                "error_type": type(error).__name__,
            },
            exc_info=True,
        )
        return internal_error_response()


def _is_draining(lifecycle: Optional[ServerLifecycle]) -> bool:
    return lifecycle is not None and lifecycle.is_draining()


def _serve_one(
    request: HttpRequest,
    context: WorkerContext,
    client_socket: socket.socket,
    client_addr_str: str,
) -> bool:
    """Handle a single request; return True when the connection must close."""
    started = time.perf_counter()
    response = _dispatch(request, context)
    if _is_draining(context.lifecycle):
        response.close_connection = True
    bytes_out = send_response(client_socket, response, context.config.write_timeout)
    WORKER_LOGGER.info(
        "Request completed",
        extra={
            "event": "request_complete",
            "client": client_addr_str,
            "method": request.method,
            "route": request.path,
            "status_code": response.status.value,
            "bytes_out": bytes_out,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        },
    )
    return response.close_connection


def _cleanup_worker(
    lifecycle: Optional[ServerLifecycle], resources: _WorkerResources
) -> None:
    if lifecycle is not None:
        lifecycle.cleanup_worker(resources.thread)

    try:
        resources.client_socket.shutdown(socket.SHUT_WR)
    except OSError:
        pass
    resources.client_socket.close()

    WORKER_LOGGER.debug(
        "Socket closed",
        extra={"event": "socket_closed", "client": resources.client_addr_str},
    )
    clear_correlation_id()


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Process requests on a client socket until the connection is closed."""
    lifecycle = context.lifecycle
    current_thread = threading.current_thread()
    if lifecycle is not None:
        lifecycle.register_worker(current_thread)
    client_addr_str = f"{client_address[0]}:{client_address[1]}"
    resources = _WorkerResources(current_thread, client_socket, client_addr_str)
    reader = DeadlineReader(
        client_socket,
        context.config.read_timeout,
        lifecycle.is_draining if lifecycle is not None else None,
    )
    buffer = b""

    try:
        while True:
            set_correlation_id(generate_correlation_id())
            reader.start_request(buffer)

            request, buffer, error_response = _read_request_with_validation(
                reader, buffer, client_addr_str
            )
            if error_response is not None:
                send_response(
                    client_socket, error_response, context.config.write_timeout
                )
                break
            if request is None:
                if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
                    WORKER_LOGGER.debug(
                        "Client closed connection",
                        extra={"event": "client_disconnected", "client": client_addr_str},
                    )
                break

            if _serve_one(request, context, client_socket, client_addr_str):
                break
            clear_correlation_id()
    except TimeoutError:
        WORKER_LOGGER.info(
            "Connection timed out",
            extra={"event": "connection_timeout", "client": client_addr_str},
        )
    except (ConnectionError, OSError) as error:
        WORKER_LOGGER.error(
            "Error handling client connection",
            extra={
                "event": "connection_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
    finally:
        _cleanup_worker(lifecycle, resources)
