"""Tests for process-level wiring helpers in voice_relay.app."""

from __future__ import annotations

import asyncio
import logging
import sys
from unittest.mock import MagicMock

from conftest import FakeMessage, FakeTransport
from fastapi.testclient import TestClient

from voice_relay.app import initialize_session, install_exception_hooks, session_lifespan
from voice_relay.bot.handlers import BotHandlers
from voice_relay.bridge.server import create_app
from voice_relay.core.state import SessionHealthState
from voice_relay.session.transport import TransportError


class TestExceptionHooks:
    def test_excepthook_logs_session_context(self, monkeypatch, caplog):
        monkeypatch.setattr(sys, "excepthook", sys.excepthook)
        state = SessionHealthState(last_activity_at=1_700_000_000.0, ready=True)

        async def _install():
            install_exception_hooks(state)

        asyncio.run(_install())
        try:
            raise RuntimeError("stray failure")
        except RuntimeError:
            with caplog.at_level(logging.CRITICAL):
                sys.excepthook(*sys.exc_info())

        assert "Uncaught exception ready=True" in caplog.text
        assert "2023-11-14T22:13:20" in caplog.text

    def test_loop_handler_logs_without_raising(self, monkeypatch, caplog):
        monkeypatch.setattr(sys, "excepthook", sys.excepthook)
        state = SessionHealthState(last_activity_at=0.0)

        async def _run():
            install_exception_hooks(state)
            loop = asyncio.get_running_loop()
            loop.call_exception_handler(
                {"message": "Task exception was never retrieved", "exception": ValueError("x")}
            )

        with caplog.at_level(logging.ERROR):
            asyncio.run(_run())

        assert "Unhandled async error: Task exception was never retrieved" in caplog.text
        assert "ready=False" in caplog.text


class TestInitializeSession:
    def test_calls_initialize(self):
        transport = FakeTransport()
        asyncio.run(initialize_session(transport))
        transport.initialize.assert_awaited_once()

    def test_failure_is_logged(self, caplog):
        transport = FakeTransport()
        transport.initialize.side_effect = TransportError("POST /initialize failed")
        with caplog.at_level(logging.ERROR):
            asyncio.run(initialize_session(transport))
        assert "POST /initialize failed" in caplog.text


class TestSessionLifespan:
    def _app(self, transport, supervisor, scheduler, processor=None):
        handlers = BotHandlers(transport, supervisor, processor or MagicMock())
        handlers.register()
        lifespan = session_lifespan(transport, supervisor, scheduler, handlers)
        return create_app(transport, supervisor, lifespan=lifespan)

    def test_startup_starts_supervisor_and_initializes(self, transport, supervisor, scheduler):
        app = self._app(transport, supervisor, scheduler)
        assert scheduler.timers == []
        transport.initialize.assert_not_awaited()

        with TestClient(app) as client:
            assert client.get("/health").status_code == 200
            recurring = [t for t in scheduler.timers if t.recurring]
            assert len(recurring) == 1
            assert recurring[0].delay == 600
            transport.initialize.assert_awaited_once()

    def test_shutdown_stops_timers(self, transport, supervisor, scheduler):
        with TestClient(self._app(transport, supervisor, scheduler)) as client:
            client.get("/health")
        assert all(t.cancelled for t in scheduler.timers)

    def test_shutdown_drains_in_flight_messages(self, transport, supervisor, scheduler):
        processed = []

        async def _process(message):
            await asyncio.sleep(0.05)
            processed.append(message)

        processor = MagicMock()
        processor.process = _process
        message = FakeMessage()

        with TestClient(self._app(transport, supervisor, scheduler, processor)) as client:
            client.portal.call(transport.emit, "message_create", message)
            assert processed == []

        assert processed == [message]

    def test_initialize_failure_does_not_block_startup(
        self, transport, supervisor, scheduler, caplog
    ):
        transport.initialize.side_effect = TransportError("sidecar unreachable")

        with caplog.at_level(logging.ERROR):
            with TestClient(self._app(transport, supervisor, scheduler)) as client:
                assert client.get("/health").json()["status"] == "degraded"

        assert "sidecar unreachable" in caplog.text
