"""Landing page listing the service endpoints."""

import html
import socket

from demo_server.bootstrap.config import AppSettings
from demo_server.domain.http_types import HttpRequest, HttpResponse
from demo_server.domain.response_builders import html_response

ENDPOINTS = (
    ("/health", "Health check"),
    ("/ready", "Readiness probe"),
    ("/api/info", "App info"),
    ("/api/config", "Configuration"),
    ("/api/metrics", "Metrics"),
    ("/api/load", "Load test"),
)

PAGE_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head><title>Kubernetes Demo App</title></head>
<body>
<h1>Kubernetes Demo App</h1>
<p><strong>Version:</strong> {version}</p>
<p><strong>Environment:</strong> {environment}</p>
<p><strong>Hostname:</strong> {hostname}</p>
<p><strong>Uptime:</strong> {uptime}</p>
<hr>
<h3>Available Endpoints:</h3>
<ul>
{links}
</ul>
</body>
</html>
"""


def render_home(settings: AppSettings, hostname: str) -> str:
    links = "\n".join(
        f'<li><a href="{path}">{path}</a> - {label}</li>' for path, label in ENDPOINTS
    )
    return PAGE_TEMPLATE.format(
        version=html.escape(settings.version),
        environment=html.escape(settings.environment),
        hostname=html.escape(hostname),
        uptime=html.escape(str(settings.uptime())),
        links=links,
    )


def handle_home(request: HttpRequest, settings: AppSettings) -> HttpResponse:
    return html_response(render_home(settings, socket.gethostname()), request)
