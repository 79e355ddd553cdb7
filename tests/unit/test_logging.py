"""Unit tests for voxrelay.logging structured logging setup."""

import json
import logging
from io import StringIO
from unittest.mock import patch

import pytest
import structlog

import voxrelay.logging


def _emit(method: str, event: str, **kw) -> str:
    """Log one event through a fresh structlog logger and return stdout."""
    logger = structlog.get_logger()
    buf = StringIO()
    with patch("sys.stdout", buf):
        getattr(logger, method)(event, **kw)
    return buf.getvalue().strip()


@pytest.fixture(autouse=True)
def clean_logging(monkeypatch):
    """Isolate structlog, stdlib root handlers and the log env vars."""
    monkeypatch.delenv("VOXRELAY_LOG_LEVEL", raising=False)
    monkeypatch.delenv("VOXRELAY_LOG_FORMAT", raising=False)
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    logging.getLogger().handlers.clear()
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    logging.getLogger().handlers.clear()
    voxrelay.logging._configured_service_name = None


class TestConfigure:
    """Tests for voxrelay.logging.configure()."""

    def test_json_by_default(self):
        voxrelay.logging.configure("gateway")

        parsed = json.loads(_emit("info", "client_connected", client_ip="1.2.3.4"))

        assert parsed["event"] == "client_connected"
        assert parsed["client_ip"] == "1.2.3.4"
        assert parsed["level"] == "info"
        assert parsed["service"] == "gateway"
        assert "T" in parsed["timestamp"]

    def test_console_format(self, monkeypatch):
        monkeypatch.setenv("VOXRELAY_LOG_FORMAT", "console")
        voxrelay.logging.configure("gateway")

        line = _emit("info", "upstream_connected")

        with pytest.raises(json.JSONDecodeError):
            json.loads(line)
        assert "upstream_connected" in line

    def test_debug_filtered_at_default_level(self):
        voxrelay.logging.configure("gateway")

        assert _emit("debug", "client_data_received") == ""

    @pytest.mark.parametrize("level", ["DEBUG", "debug"])
    def test_debug_level_case_insensitive(self, monkeypatch, level):
        monkeypatch.setenv("VOXRELAY_LOG_LEVEL", level)
        voxrelay.logging.configure("gateway")

        parsed = json.loads(_emit("debug", "link_keepalive_sent"))

        assert parsed["level"] == "debug"

    def test_warning_level_filters_info(self, monkeypatch):
        monkeypatch.setenv("VOXRELAY_LOG_LEVEL", "WARNING")
        voxrelay.logging.configure("gateway")

        assert _emit("info", "link_opened") == ""
        assert json.loads(_emit("warning", "upstream_warning"))["level"] == "warning"

    def test_invalid_level_falls_back_to_info(self, monkeypatch):
        monkeypatch.setenv("VOXRELAY_LOG_LEVEL", "LOUD")
        voxrelay.logging.configure("gateway")

        assert _emit("debug", "hidden") == ""
        assert _emit("info", "shown") != ""

    def test_contextvars_merged(self):
        voxrelay.logging.configure("gateway")
        structlog.contextvars.bind_contextvars(session_id="sess_abc")

        parsed = json.loads(_emit("info", "session_terminated"))

        assert parsed["session_id"] == "sess_abc"

    def test_stdlib_loggers_are_structured(self):
        voxrelay.logging.configure("gateway")
        root = logging.getLogger()
        buf = StringIO()
        root.handlers[0].stream = buf

        logging.getLogger("websockets.client").warning("handshake slow")

        parsed = json.loads(buf.getvalue().strip())
        assert parsed["event"] == "handshake slow"
        assert parsed["level"] == "warning"

    def test_reconfigure_keeps_single_handler(self):
        logging.getLogger().addHandler(logging.StreamHandler())

        voxrelay.logging.configure("first")
        voxrelay.logging.configure("second")

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
        assert json.loads(_emit("info", "x"))["service"] == "second"


class TestAddServiceNameProcessor:
    def test_moves_private_key_to_service(self):
        result = voxrelay.logging._add_service_name(
            None, None, {"event": "e", "_service_name": "gateway"}
        )

        assert result == {"event": "e", "service": "gateway"}

    def test_noop_without_private_key(self):
        result = voxrelay.logging._add_service_name(None, None, {"event": "e"})

        assert result == {"event": "e"}


class TestResetContext:
    """Tests for voxrelay.logging.reset_context()."""

    def test_clears_stale_keys_and_keeps_service(self):
        voxrelay.logging.configure("gateway")
        structlog.contextvars.bind_contextvars(session_id="sess_old")

        voxrelay.logging.reset_context(request_id="req_1")

        ctx = structlog.contextvars.get_contextvars()
        assert "session_id" not in ctx
        assert ctx["request_id"] == "req_1"
        assert ctx["_service_name"] == "gateway"

    def test_works_without_prior_configure(self):
        voxrelay.logging.reset_context(request_id="req_2")

        ctx = structlog.contextvars.get_contextvars()
        assert ctx == {"request_id": "req_2"}
