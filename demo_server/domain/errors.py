"""Fatal error kinds raised by the server lifecycle."""


class ServerError(Exception):
    """Base class for conditions that terminate the process."""


class BindError(ServerError):
    """Raised when the listening socket cannot be created."""

    def __init__(self, host: str, port: str, reason: str) -> None:
        super().__init__(f"cannot listen on {host}:{port}: {reason}")
        self.host = host
        self.port = port
        self.reason = reason


class ShutdownTimeout(ServerError):
    """Raised when in-flight requests outlive the shutdown grace period."""

    def __init__(self, grace_seconds: float, remaining_workers: int) -> None:
        super().__init__(
            f"{remaining_workers} request(s) still running after {grace_seconds}s"
        )
        self.grace_seconds = grace_seconds
        self.remaining_workers = remaining_workers
