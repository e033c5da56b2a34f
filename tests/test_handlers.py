"""Tests for session event wiring and the per-message entry point.

WHY: handle_message() is where a single bad voice note could take the bot
down or stall the health timer. These tests pin the skip rules (muted
groups), the processing ceiling, command replies, and the catch-all.

HOW: The supervisor is real (FakeClock/FakeScheduler from conftest.py); the
media processor is a MagicMock with an AsyncMock process() so each test
controls what processing does.
"""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

from conftest import FakeMessage

from voice_relay.bot.handlers import BotHandlers
from voice_relay.bot.media import MediaError
from voice_relay.bot.messages import HELP_REPLY, PING_REPLY
from voice_relay.core.state import ReinitializeAfter
from voice_relay.session.models import ChatInfo
from voice_relay.session.transport import SESSION_EVENTS

GROUP_ID = "120363000000000000@g.us"


def _handlers(transport, supervisor, process=None, timeout=30.0):
    processor = MagicMock()
    processor.process = process or AsyncMock(return_value=None)
    return BotHandlers(transport, supervisor, processor, media_timeout_s=timeout), processor


class TestRegister:
    def test_every_session_event_has_a_handler(self, transport, supervisor):
        handlers, _ = _handlers(transport, supervisor)
        handlers.register()
        assert set(transport._handlers) == set(SESSION_EVENTS)

    def test_ready_event_reaches_supervisor(self, transport, supervisor):
        handlers, _ = _handlers(transport, supervisor)
        handlers.register()
        asyncio.run(transport.emit("ready"))
        assert supervisor.state.ready is True

    def test_disconnected_event_schedules_reinit(self, transport, supervisor, scheduler):
        handlers, _ = _handlers(transport, supervisor)
        handlers.register()
        supervisor.on_ready()

        asyncio.run(transport.emit("disconnected", "NAVIGATION"))

        assert supervisor.state.ready is False
        assert [t.delay for t in scheduler.one_shots] == [5.0]
        assert supervisor.decide_disconnect("NAVIGATION") == ReinitializeAfter(5.0, "NAVIGATION")

    def test_auth_failure_event_schedules_exit(self, transport, supervisor, scheduler, exit_calls):
        handlers, _ = _handlers(transport, supervisor)
        handlers.register()

        asyncio.run(transport.emit("auth_failure", "bad credentials"))
        scheduler.fire(scheduler.one_shots[0])

        assert exit_calls == [1]

    def test_informational_events_only_log(self, transport, supervisor, scheduler, caplog):
        handlers, _ = _handlers(transport, supervisor)
        handlers.register()

        async def _emit_all():
            await transport.emit("qr", "2@abc")
            await transport.emit("authenticated")
            await transport.emit("loading_screen", 50, "WhatsApp")
            await transport.emit("change_state", "OPENING")

        with caplog.at_level(logging.INFO):
            asyncio.run(_emit_all())

        assert "2@abc" in caplog.text
        assert "Loading: 50%" in caplog.text
        assert scheduler.one_shots == []
        assert supervisor.state.ready is False


class TestHandleMessage:
    def test_every_message_touches_activity(self, transport, supervisor, clock):
        handlers, _ = _handlers(transport, supervisor)
        clock.advance(120)
        asyncio.run(handlers.handle_message(FakeMessage(has_media=False, body="hey")))
        assert supervisor.state.last_activity_at == clock()

    def test_muted_group_skipped_after_touch(self, transport, supervisor, clock):
        handlers, processor = _handlers(transport, supervisor)
        supervisor.on_ready()
        clock.advance(60)
        message = FakeMessage(
            from_=GROUP_ID,
            body="!ping",
            chat=ChatInfo(id=GROUP_ID, is_group=True, is_muted=True),
        )

        asyncio.run(handlers.handle_message(message))

        assert supervisor.state.last_activity_at == clock()
        processor.process.assert_not_awaited()
        message.reply.assert_not_awaited()

    def test_unmuted_group_is_processed(self, transport, supervisor):
        handlers, processor = _handlers(transport, supervisor)
        message = FakeMessage(from_=GROUP_ID, chat=ChatInfo(id=GROUP_ID, is_group=True))
        asyncio.run(handlers.handle_message(message))
        processor.process.assert_awaited_once_with(message)

    def test_direct_chat_does_not_look_up_chat(self, transport, supervisor):
        handlers, _ = _handlers(transport, supervisor)
        message = FakeMessage()
        asyncio.run(handlers.handle_message(message))
        message.get_chat.assert_not_awaited()

    def test_media_processing_timeout_aborts(self, transport, supervisor, caplog):
        async def _slow(message):
            await asyncio.sleep(1)

        handlers, _ = _handlers(transport, supervisor, process=_slow, timeout=0.01)
        supervisor.on_ready()
        message = FakeMessage()

        with caplog.at_level(logging.ERROR):
            asyncio.run(handlers.handle_message(message))

        assert "timeout" in caplog.text
        message.reply.assert_not_awaited()

    def test_media_error_is_logged(self, transport, supervisor, caplog):
        handlers, _ = _handlers(
            transport, supervisor, process=AsyncMock(side_effect=MediaError("download failed"))
        )
        with caplog.at_level(logging.ERROR):
            asyncio.run(handlers.handle_message(FakeMessage()))
        assert "download failed" in caplog.text

    def test_unexpected_error_is_swallowed(self, transport, supervisor, caplog):
        handlers, _ = _handlers(
            transport, supervisor, process=AsyncMock(side_effect=KeyError("boom"))
        )
        with caplog.at_level(logging.ERROR):
            asyncio.run(handlers.handle_message(FakeMessage()))
        assert "Message handler error" in caplog.text

    def test_ping_command(self, transport, supervisor):
        handlers, processor = _handlers(transport, supervisor)
        supervisor.on_ready()
        message = FakeMessage(has_media=False, type="chat", body="!ping")

        asyncio.run(handlers.handle_message(message))

        message.reply.assert_awaited_once_with(PING_REPLY)
        processor.process.assert_not_awaited()

    def test_help_command(self, transport, supervisor):
        handlers, _ = _handlers(transport, supervisor)
        supervisor.on_ready()
        message = FakeMessage(has_media=False, type="chat", body="!help")
        asyncio.run(handlers.handle_message(message))
        message.reply.assert_awaited_once_with(HELP_REPLY)

    def test_command_ignored_when_not_ready(self, transport, supervisor):
        handlers, _ = _handlers(transport, supervisor)
        message = FakeMessage(has_media=False, type="chat", body="!ping")
        asyncio.run(handlers.handle_message(message))
        message.reply.assert_not_awaited()

    def test_plain_text_gets_no_reply(self, transport, supervisor):
        handlers, _ = _handlers(transport, supervisor)
        supervisor.on_ready()
        message = FakeMessage(has_media=False, type="chat", body="hola")
        asyncio.run(handlers.handle_message(message))
        message.reply.assert_not_awaited()


class TestMessageCreate:
    def test_spawns_task_and_drains(self, transport, supervisor):
        handlers, processor = _handlers(transport, supervisor)
        handlers.register()
        message = FakeMessage()

        async def _run():
            await transport.emit("message_create", message)
            await handlers.drain()

        asyncio.run(_run())
        processor.process.assert_awaited_once_with(message)

    def test_emit_does_not_wait_for_processing(self, transport, supervisor):
        processed = []

        async def _slow(message):
            await asyncio.sleep(0.05)
            processed.append(message)

        handlers, _ = _handlers(transport, supervisor, process=_slow)
        handlers.register()
        message = FakeMessage()

        async def _run():
            await transport.emit("message_create", message)
            during = list(processed)
            await handlers.drain()
            return during

        assert asyncio.run(_run()) == []
        assert processed == [message]
