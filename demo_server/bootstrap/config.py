"""Application settings, transport configuration and CLI argument parsing."""

import argparse
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Mapping, Optional


def _env_str(name: str, default: str, environ: Optional[Mapping[str, str]] = None) -> str:
    source = os.environ if environ is None else environ
    value = source.get(name)
    return value if value else default


DEFAULT_PORT = "8080"
DEFAULT_VERSION = "v1.0.0"
DEFAULT_ENVIRONMENT = "development"
DEFAULT_DATABASE_URL = "localhost:5432"
DEFAULT_SECRET = "default-secret"

READINESS_DELAY_SECONDS = 10
DEFAULT_LOAD_ITERATIONS = 1_000_000
MAX_BODY_BYTES = 1024 * 1024

DEFAULT_HOST = "0.0.0.0"
DEFAULT_READ_TIMEOUT = 15
DEFAULT_WRITE_TIMEOUT = 15
DEFAULT_SHUTDOWN_GRACE_SECONDS = 30.0

HEADER_DELIMITER = b"\r\n\r\n"


@dataclass(frozen=True)
class AppSettings:
    """Startup settings shared read-only by every request handler."""

    port: str = DEFAULT_PORT
    version: str = DEFAULT_VERSION
    environment: str = DEFAULT_ENVIRONMENT
    database_url: str = DEFAULT_DATABASE_URL
    secret: str = field(default=DEFAULT_SECRET, repr=False)
    start_time: datetime = field(default_factory=lambda: datetime.now().astimezone())
    start_monotonic: float = field(default_factory=time.monotonic)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppSettings":
        """Read settings from the environment; unset or empty values use defaults."""
        return cls(
            port=_env_str("PORT", DEFAULT_PORT, environ),
            version=_env_str("APP_VERSION", DEFAULT_VERSION, environ),
            environment=_env_str("ENVIRONMENT", DEFAULT_ENVIRONMENT, environ),
            database_url=_env_str("DATABASE_URL", DEFAULT_DATABASE_URL, environ),
            secret=_env_str("API_SECRET", DEFAULT_SECRET, environ),
        )

    @property
    def has_secret(self) -> bool:
        """True when the secret was changed from its default value."""
        return self.secret != DEFAULT_SECRET

    def uptime_seconds(self) -> float:
        return max(0.0, time.monotonic() - self.start_monotonic)

    def uptime(self) -> timedelta:
        return timedelta(seconds=self.uptime_seconds())

    def is_ready(self) -> bool:
        return self.uptime_seconds() >= READINESS_DELAY_SECONDS


@dataclass(frozen=True)
class ServerConfig:
    """Transport timeouts and shutdown settings."""

    read_timeout: float = DEFAULT_READ_TIMEOUT
    write_timeout: float = DEFAULT_WRITE_TIMEOUT
    shutdown_grace_seconds: float = DEFAULT_SHUTDOWN_GRACE_SECONDS


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for operational configuration."""
    parser = argparse.ArgumentParser(description="Kubernetes demo HTTP service")
    parser.add_argument(
        "--host",
        default=os.getenv("DEMO_SERVER_HOST", DEFAULT_HOST),
        help="Interface to bind; the port comes from the PORT variable",
    )
    default_log_level = os.getenv("DEMO_SERVER_LOG_LEVEL", "INFO").upper()
    default_destination = os.getenv("DEMO_SERVER_LOG_DESTINATION", "stdout")
    default_format = os.getenv("DEMO_SERVER_LOG_FORMAT", "json").lower()
    # String defaults pass through type=float.
    default_grace = (
        os.getenv("DEMO_SERVER_SHUTDOWN_GRACE_SECONDS") or DEFAULT_SHUTDOWN_GRACE_SECONDS
    )
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--log-format",
        default=default_format,
        choices=["json", "text"],
        type=str.lower,
    )
    parser.add_argument(
        "--read-timeout",
        type=float,
        default=DEFAULT_READ_TIMEOUT,
        help="Seconds allowed to receive a complete request",
    )
    parser.add_argument(
        "--write-timeout",
        type=float,
        default=DEFAULT_WRITE_TIMEOUT,
        help="Seconds allowed to send a response",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=float,
        default=default_grace,
        help="Grace period in seconds for in-flight requests during shutdown",
    )
    return parser.parse_args(argv)


def server_config_from_args(args: argparse.Namespace) -> ServerConfig:
    return ServerConfig(
        read_timeout=args.read_timeout,
        write_timeout=args.write_timeout,
        shutdown_grace_seconds=args.shutdown_grace_seconds,
    )
