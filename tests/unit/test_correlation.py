"""Unit tests for the correlation ID middleware."""

import pytest
import structlog
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route, WebSocketRoute
from starlette.testclient import TestClient
from starlette.websockets import WebSocket

from voxrelay.gateway.middleware.correlation import (
    REQUEST_ID_HEADER,
    CorrelationIdMiddleware,
    _generate_request_id,
    _sanitize_request_id,
)


@pytest.fixture
def captured():
    """Mutable dict the handlers copy their context into."""
    return {}


@pytest.fixture
def client(captured):
    async def probe(request: Request):
        captured.update(structlog.contextvars.get_contextvars())
        captured["state_request_id"] = getattr(request.state, "request_id", None)
        return PlainTextResponse("ok")

    async def probe_ws(websocket: WebSocket):
        await websocket.accept()
        captured.update(structlog.contextvars.get_contextvars())
        await websocket.send_text(websocket.state.request_id)
        await websocket.close()

    app = Starlette(
        routes=[Route("/probe", probe), WebSocketRoute("/ws", probe_ws)],
        middleware=[Middleware(CorrelationIdMiddleware)],
    )
    return TestClient(app)


class TestGenerateRequestId:
    def test_prefix_and_length(self):
        rid = _generate_request_id()

        # "req_" + 32 hex chars
        assert rid.startswith("req_")
        assert len(rid) == 36

    def test_is_unique(self):
        assert len({_generate_request_id() for _ in range(100)}) == 100


class TestHttpRequests:
    """Tests for HTTP requests passing through CorrelationIdMiddleware."""

    def test_generates_id_when_absent(self, client, captured):
        response = client.get("/probe")

        rid = response.headers[REQUEST_ID_HEADER]
        assert rid.startswith("req_")
        assert captured["request_id"] == rid
        assert captured["state_request_id"] == rid

    def test_uses_client_provided_id(self, client, captured):
        response = client.get("/probe", headers={REQUEST_ID_HEADER: "trace-42"})

        assert response.headers[REQUEST_ID_HEADER] == "trace-42"
        assert captured["request_id"] == "trace-42"

    def test_replaces_invalid_id(self, client):
        response = client.get("/probe", headers={REQUEST_ID_HEADER: "bad id <x>"})

        assert response.headers[REQUEST_ID_HEADER].startswith("req_")

    def test_clears_stale_context(self, client, captured):
        structlog.contextvars.bind_contextvars(session_id="sess_stale")

        client.get("/probe")

        assert "session_id" not in captured

    def test_each_request_gets_own_id(self, client):
        first = client.get("/probe").headers[REQUEST_ID_HEADER]
        second = client.get("/probe").headers[REQUEST_ID_HEADER]

        assert first != second


class TestWebSocketConnections:
    def test_websocket_gets_request_id(self, client, captured):
        with client.websocket_connect(
            "/ws", headers={REQUEST_ID_HEADER: "ws-trace-1"}
        ) as ws:
            assert ws.receive_text() == "ws-trace-1"

        assert captured["request_id"] == "ws-trace-1"

    def test_websocket_generated_id(self, client):
        with client.websocket_connect("/ws") as ws:
            assert ws.receive_text().startswith("req_")


class TestSanitizeRequestId:
    """Tests for _sanitize_request_id validation."""

    @pytest.mark.parametrize(
        "value", ["abc123", "req_abc-123.456", "a" * 128]
    )
    def test_accepts_valid(self, value):
        assert _sanitize_request_id(value) == value

    @pytest.mark.parametrize(
        "value", [None, "", "has space", "<script>", "a" * 129]
    )
    def test_rejects_invalid(self, value):
        assert _sanitize_request_id(value).startswith("req_")
