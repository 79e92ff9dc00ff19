"""Unit tests for the per-connection worker using in-process socket pairs."""

import json
import logging
import socket
import threading
import time
from unittest.mock import patch

import pytest

from demo_server.bootstrap.config import ServerConfig
from demo_server.lifecycle.state import ServerLifecycle
from demo_server.transport.context import WorkerContext
from demo_server.transport.worker import handle_client
from tests.utils.http import read_http_response, read_http_responses, send_get

CLIENT_ADDRESS = ("127.0.0.1", 50000)


@pytest.fixture(name="context")
def context_fixture(warm_settings):
    return WorkerContext(
        settings=warm_settings,
        config=ServerConfig(read_timeout=2, write_timeout=2, shutdown_grace_seconds=1),
        lifecycle=ServerLifecycle(),
    )


@pytest.fixture(name="socket_pair")
def socket_pair_fixture():
    server_side, client_side = socket.socketpair()
    client_side.settimeout(5)
    yield server_side, client_side
    client_side.close()
    server_side.close()


def test_worker_serves_request_and_closes(socket_pair, context):
    server_side, client_side = socket_pair
    send_get(client_side, "/ready", close=True)

    handle_client(server_side, CLIENT_ADDRESS, context)

    response = read_http_response(client_side)
    assert response.status_code == 200
    assert json.loads(response.body) == {"status": "ready"}
    assert response.headers["connection"] == "close"
    assert client_side.recv(1) == b""


def test_worker_handles_pipelined_requests(socket_pair, context):
    server_side, client_side = socket_pair
    send_get(client_side, "/api/load?iterations=4")
    send_get(client_side, "/health", close=True)

    handle_client(server_side, CLIENT_ADDRESS, context)

    first, second = read_http_responses(client_side, 2)
    assert json.loads(first.body)["result"] == 6
    assert json.loads(second.body)["status"] == "healthy"


def test_worker_answers_malformed_request_with_400(socket_pair, context, caplog):
    caplog.set_level(logging.WARNING, logger="demo_server")
    server_side, client_side = socket_pair
    client_side.sendall(b"garbage\r\n\r\n")

    handle_client(server_side, CLIENT_ADDRESS, context)

    response = read_http_response(client_side)
    assert response.status_code == 400
    assert any(
        getattr(record, "event", None) == "malformed_request" for record in caplog.records
    )


def test_worker_rejects_oversized_body(socket_pair, context):
    server_side, client_side = socket_pair
    client_side.sendall(b"POST /health HTTP/1.1\r\nContent-Length: 99999999\r\n\r\n")

    handle_client(server_side, CLIENT_ADDRESS, context)

    assert read_http_response(client_side).status_code == 413


def test_worker_converts_handler_errors_to_500(socket_pair, context, caplog):
    caplog.set_level(logging.ERROR, logger="demo_server")
    server_side, client_side = socket_pair
    send_get(client_side, "/health")

    with patch(
        "demo_server.transport.worker.route_request", side_effect=RuntimeError("boom")
    ):
        handle_client(server_side, CLIENT_ADDRESS, context)

    assert read_http_response(client_side).status_code == 500
    assert any(
        getattr(record, "event", None) == "handler_error" for record in caplog.records
    )


def test_worker_logs_access_record(socket_pair, context, caplog):
    caplog.set_level(logging.INFO, logger="demo_server")
    server_side, client_side = socket_pair
    send_get(client_side, "/api/config", close=True)

    handle_client(server_side, CLIENT_ADDRESS, context)

    records = [r for r in caplog.records if getattr(r, "event", None) == "request_complete"]
    assert len(records) == 1
    assert records[0].route == "/api/config"
    assert records[0].status_code == 200
    assert records[0].client == "127.0.0.1:50000"


def test_worker_closes_connection_after_draining_starts(socket_pair, context):
    server_side, client_side = socket_pair
    context.lifecycle.begin_draining()
    send_get(client_side, "/health")

    handle_client(server_side, CLIENT_ADDRESS, context)

    response = read_http_response(client_side)
    assert response.status_code == 200
    assert response.headers["connection"] == "close"


def test_worker_releases_idle_connection_when_draining(socket_pair, context):
    server_side, _client_side = socket_pair
    worker = threading.Thread(
        target=handle_client, args=(server_side, CLIENT_ADDRESS, context)
    )
    context.lifecycle.register_worker(worker)
    worker.start()

    context.lifecycle.begin_draining()
    worker.join(timeout=2)

    assert not worker.is_alive()
    assert context.lifecycle.active_worker_count() == 0


def test_worker_times_out_idle_connection(socket_pair, warm_settings):
    server_side, client_side = socket_pair
    context = WorkerContext(
        settings=warm_settings,
        config=ServerConfig(read_timeout=0.3, write_timeout=1, shutdown_grace_seconds=1),
        lifecycle=None,
    )

    handle_client(server_side, CLIENT_ADDRESS, context)

    assert client_side.recv(1) == b""


def test_worker_closes_http_1_0_connection_after_response(socket_pair, context):
    server_side, client_side = socket_pair
    client_side.sendall(b"GET /health HTTP/1.0\r\n\r\n")

    started = time.monotonic()
    handle_client(server_side, CLIENT_ADDRESS, context)

    assert time.monotonic() - started < context.config.read_timeout
    response = read_http_response(client_side)
    assert response.status_code == 200
    assert response.headers["connection"] == "close"
    assert client_side.recv(1) == b""


def test_worker_keeps_http_1_0_connection_alive_on_request(socket_pair, context):
    server_side, client_side = socket_pair
    client_side.sendall(b"GET /health HTTP/1.0\r\nConnection: keep-alive\r\n\r\n")
    client_side.sendall(b"GET /ready HTTP/1.0\r\n\r\n")

    handle_client(server_side, CLIENT_ADDRESS, context)

    first, second = read_http_responses(client_side, 2)
    assert first.headers["connection"] == "keep-alive"
    assert json.loads(second.body) == {"status": "ready"}
    assert second.headers["connection"] == "close"
