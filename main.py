"""Kubernetes demo service: probes, info, metrics and a CPU load endpoint."""

import logging
import sys
from typing import Optional

from demo_server.bootstrap.config import (
    AppSettings,
    parse_cli_args,
    server_config_from_args,
)
from demo_server.bootstrap.logging_setup import configure_logging
from demo_server.domain.correlation_id import CorrelationLoggerAdapter
from demo_server.domain.errors import BindError, ShutdownTimeout
from demo_server.lifecycle.state import ServerLifecycle
from demo_server.transport.accept_loop import start_listener
from demo_server.transport.context import WorkerContext

SERVER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("demo_server.server"), {})

EXIT_OK = 0
EXIT_FATAL = 1


def main(argv: Optional[list[str]] = None) -> int:
    """Serve until SIGINT/SIGTERM, then drain; return the process exit status."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.log_level, args.log_destination, args.log_format == "json")

    settings = AppSettings.from_env()
    config = server_config_from_args(args)
    lifecycle = ServerLifecycle()
    lifecycle.install_signal_handlers()

    SERVER_LOGGER.info(
        "Starting server",
        extra={
            "event": "server_starting",
            "host": args.host,
            "port": settings.port,
            "version": settings.version,
            "environment": settings.environment,
            "has_secret": settings.has_secret,
            "log_destination": args.log_destination,
            "log_level": args.log_level,
            "grace_seconds": config.shutdown_grace_seconds,
        },
    )

    context = WorkerContext(settings=settings, config=config, lifecycle=lifecycle)
    try:
        listener = start_listener(args.host, context)
    except BindError as error:
        SERVER_LOGGER.critical(
            "Server failed to start",
            extra={"event": "bind_failed", "error": error.reason, "port": error.port},
        )
        return EXIT_FATAL

    lifecycle.wait_for_termination()
    if lifecycle.fatal_error is not None:
        SERVER_LOGGER.critical(
            "Server stopped unexpectedly",
            extra={
                "event": "server_failed",
                "error_type": type(lifecycle.fatal_error).__name__,
            },
        )
        return EXIT_FATAL

    SERVER_LOGGER.info("Shutting down server", extra={"event": "shutdown_started"})
    try:
        lifecycle.shutdown(listener, config.shutdown_grace_seconds)
    except ShutdownTimeout as error:
        SERVER_LOGGER.critical(
            "Server forced to shutdown",
            extra={
                "event": "shutdown_forced",
                "grace_seconds": error.grace_seconds,
                "remaining_workers": error.remaining_workers,
            },
        )
        return EXIT_FATAL

    SERVER_LOGGER.info("Server exited", extra={"event": "server_exited"})
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
