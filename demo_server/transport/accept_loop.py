"""Listener thread: accepts connections and hands them to worker threads."""

import logging
import socket
import threading

from demo_server.bootstrap.socket_factory import create_server_socket
from demo_server.domain.correlation_id import CorrelationLoggerAdapter
from demo_server.domain.response_builders import draining_response
from demo_server.lifecycle.state import ServerLifecycle
from demo_server.pipeline.io import send_response
from demo_server.transport.context import WorkerContext
from demo_server.transport.worker import handle_client

ACCEPT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("demo_server.transport.accept"), {}
)


def _handle_accepted_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Spawn a worker thread for a newly accepted connection."""
    if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ACCEPT_LOGGER.debug(
            "Client connection accepted",
            extra={
                "event": "client_accepted",
                "client": f"{client_address[0]}:{client_address[1]}",
            },
        )

    thread = threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, context),
        name=f"worker-{client_address[0]}:{client_address[1]}",
        daemon=True,
    )
    if context.lifecycle is not None:
        context.lifecycle.register_worker(thread)
    thread.start()


def _reject_while_draining(client_socket: socket.socket, context: WorkerContext) -> None:
    try:
        send_response(client_socket, draining_response(), context.config.write_timeout)
    except OSError:
        pass
    finally:
        client_socket.close()


def accept_connections(server_socket: socket.socket, context: WorkerContext) -> None:
    """Run the accept loop until the lifecycle asks it to stop."""
    lifecycle: ServerLifecycle = context.lifecycle
    try:
        while True:
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                if lifecycle.should_stop():
                    break
                continue
            except OSError as error:
                if lifecycle.should_stop():
                    break
                ACCEPT_LOGGER.error(
                    "Socket accept failed",
                    extra={"event": "accept_error", "error_type": type(error).__name__},
                )
                continue

            if lifecycle.is_draining():
                _reject_while_draining(client_socket, context)
                break

            _handle_accepted_client(client_socket, client_address, context)
    finally:
        server_socket.close()
        ACCEPT_LOGGER.info("Listener closed", extra={"event": "listener_closed"})


def _listener_main(server_socket: socket.socket, context: WorkerContext) -> None:
    try:
        accept_connections(server_socket, context)
    except Exception as error:  # pylint: disable=broad-except
        ACCEPT_LOGGER.critical(
            "Listener failed",
            extra={"event": "listener_failed", "error_type": type(error).__name__},
            exc_info=True,
        )
        context.lifecycle.report_fatal(error)


def start_listener(host: str, context: WorkerContext) -> threading.Thread:
    """Bind the listening socket and serve it on a background thread.

    Raises BindError synchronously so callers can treat it as fatal.
    """
    server_socket = create_server_socket(host, context.settings.port)
    ACCEPT_LOGGER.info(
        "Server listening for connections",
        extra={
            "event": "server_listening",
            "host": host,
            "port": context.settings.port,
            "read_timeout": context.config.read_timeout,
            "write_timeout": context.config.write_timeout,
        },
    )
    listener = threading.Thread(
        target=_listener_main,
        args=(server_socket, context),
        name="listener",
        daemon=True,
    )
    listener.start()
    return listener
