"""Context object shared across worker threads."""

from dataclasses import dataclass
from typing import Optional

from demo_server.bootstrap.config import AppSettings, ServerConfig
from demo_server.lifecycle.state import ServerLifecycle


@dataclass(frozen=True)
class WorkerContext:
    """Dependencies shared read-only across handler threads."""

    settings: AppSettings
    config: ServerConfig
    lifecycle: Optional[ServerLifecycle] = None
