"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Generator, TypedDict

import pytest

from tests.utils.http import reserve_port, wait_for_port

if TYPE_CHECKING:
    from _pytest.tmpdir import TempPathFactory

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"
APP_ENV_VARS = ("PORT", "APP_VERSION", "ENVIRONMENT", "DATABASE_URL", "API_SECRET")


class ServerProcessInfo(TypedDict):
    """Metadata describing a running server fixture instance."""

    base_url: str
    host: str
    port: int
    process: subprocess.Popen[str]
    log_file: Path


def server_environment(port: int | str, **overrides: str) -> dict[str, str]:
    """Inherit the test environment minus application settings, then apply overrides."""
    env = {k: v for k, v in os.environ.items() if k not in APP_ENV_VARS}
    env["PORT"] = str(port)
    env.update(overrides)
    return env


def start_server_process(
    port: int | str,
    log_file: Path,
    extra_args: list[str] | None = None,
    host: str = "127.0.0.1",
    **env_overrides: str,
) -> subprocess.Popen[str]:
    """Spawn main.py without waiting for it to listen."""
    args = [
        sys.executable,
        str(SERVER_ENTRYPOINT),
        "--host",
        host,
        "--log-destination",
        str(log_file),
    ]
    if extra_args:
        args.extend(extra_args)
    return subprocess.Popen(
        args,
        cwd=PROJECT_ROOT,
        env=server_environment(port, **env_overrides),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )


def _launch_server(
    log_file: Path,
    extra_args: list[str] | None = None,
    **env_overrides: str,
) -> Generator[ServerProcessInfo, None, None]:
    host = "127.0.0.1"
    port = reserve_port(host)
    with start_server_process(
        port, log_file, extra_args, host, **env_overrides
    ) as process:
        try:
            wait_for_port(host, port)
        except Exception:
            # If startup failed, print stdout/stderr to help debug
            process.terminate()
            stdout, stderr = process.communicate(timeout=5)
            print(f"\nServer stdout:\n{stdout}")
            print(f"\nServer stderr:\n{stderr}")
            if log_file.exists():
                print(f"\nServer log:\n{log_file.read_text()}")
            raise

        yield {
            "base_url": f"http://{host}:{port}",
            "host": host,
            "port": port,
            "process": process,
            "log_file": log_file,
        }

        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""

    return PROJECT_ROOT


@pytest.fixture(name="server_process")
def _server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the server with default application settings."""

    log_file = tmp_path_factory.mktemp("server-logs") / "server.log"
    yield from _launch_server(log_file)


@pytest.fixture(name="configured_server_process")
def _configured_server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the server with every application setting overridden."""

    log_file = tmp_path_factory.mktemp("server-logs-configured") / "server.log"
    yield from _launch_server(
        log_file,
        APP_VERSION="v2.3.4",
        ENVIRONMENT="staging",
        DATABASE_URL="db.internal:5432",
        API_SECRET="s3cr3t-value-xyz",
    )


@pytest.fixture(name="short_grace_server_process")
def _short_grace_server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the server with a short shutdown grace period."""

    log_file = tmp_path_factory.mktemp("server-logs-grace") / "server.log"
    yield from _launch_server(log_file, ["--shutdown-grace-seconds", "1"])


@pytest.fixture()
def base_url(server_process: ServerProcessInfo) -> str:
    """Expose the running server base URL to integration tests."""

    return server_process["base_url"]
