"""Session event handlers and the per-message entry point.

WHY: Session events feed the supervisor (ready, disconnects, auth failures)
and inbound messages feed the media path. This module is the glue: it
registers one handler per event on the transport and makes sure nothing a
single message does can crash the process or block the health timer.

HOW: BotHandlers.register() binds handlers with transport.on(). The
message_create handler spawns an asyncio task per message;
handle_message() does the work under a 30s asyncio.wait_for ceiling for
media.

RULES:
- Every message touches last activity, even if it is skipped afterwards
- Messages from muted group chats are skipped entirely
- Media processing is bounded by media_timeout_s; timeout aborts that message
- All per-message exceptions are caught here and logged
- Informational events (qr, authenticated, loading_screen, change_state) only log
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Set

from voice_relay.bot.media import MediaError, MediaProcessor
from voice_relay.bot.messages import COMMANDS
from voice_relay.bot.relay import reply_if_ready
from voice_relay.config import MEDIA_PROCESSING_TIMEOUT_S
from voice_relay.core.supervisor import HealthSupervisor
from voice_relay.session.models import is_group_chat
from voice_relay.session.transport import Message, SessionTransport

logger = logging.getLogger(__name__)


class BotHandlers:
    """Wires session events to the supervisor and the media processor."""

    def __init__(
        self,
        transport: SessionTransport,
        supervisor: HealthSupervisor,
        processor: MediaProcessor,
        media_timeout_s: float = MEDIA_PROCESSING_TIMEOUT_S,
    ) -> None:
        self._transport = transport
        self._supervisor = supervisor
        self._processor = processor
        self._media_timeout_s = media_timeout_s
        self._tasks: Set["asyncio.Task[None]"] = set()

    def register(self) -> None:
        on = self._transport.on
        on("ready", self.on_ready)
        on("qr", self.on_qr)
        on("authenticated", self.on_authenticated)
        on("auth_failure", self.on_auth_failure)
        on("disconnected", self.on_disconnected)
        on("loading_screen", self.on_loading_screen)
        on("change_state", self.on_change_state)
        on("message_create", self.on_message_create)

    # ------------------------------------------------------------------
    # Session lifecycle events
    # ------------------------------------------------------------------

    def on_ready(self) -> None:
        self._supervisor.on_ready()
        logger.info("Client ready; listening for voice notes")

    def on_qr(self, payload: str) -> None:
        logger.info("Scan this QR code with your phone to pair: %s", payload)

    def on_authenticated(self) -> None:
        logger.info("Client authenticated")

    def on_auth_failure(self, message: str) -> None:
        self._supervisor.on_auth_failure(message)

    def on_disconnected(self, reason: str) -> None:
        self._supervisor.on_disconnected(reason)

    def on_loading_screen(self, percent: Any, message: str = "") -> None:
        logger.info("Loading: %s%% - %s", percent, message)

    def on_change_state(self, state: str) -> None:
        logger.info("Session state changed: %s", state)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def on_message_create(self, message: Message) -> None:
        """Handle message in its own task so event dispatch returns at once.

        Returns nothing; emit() would await a returned task.
        """
        task = asyncio.ensure_future(self.handle_message(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for in-flight message tasks (used by tests and shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def handle_message(self, message: Message) -> None:
        try:
            logger.info("Message from=%s body=%s", message.from_, message.body or "[media]")
            self._supervisor.on_activity()

            if is_group_chat(message.from_):
                chat = await message.get_chat()
                if chat.is_muted:
                    logger.info("Muted group %s; ignoring message", message.from_)
                    return

            if message.has_media:
                logger.info("Media detected type=%s", message.type)
                try:
                    await asyncio.wait_for(
                        self._processor.process(message), self._media_timeout_s
                    )
                except asyncio.TimeoutError:
                    logger.error(
                        "Media processing timeout after %.0fs from=%s",
                        self._media_timeout_s,
                        message.from_,
                    )
                    return
                except MediaError as exc:
                    logger.error("Error processing media from=%s: %s", message.from_, exc)
                    return

            reply = COMMANDS.get(message.body.strip()) if message.body else None
            if reply is not None:
                await reply_if_ready(message, reply, self._supervisor.state)

        except Exception:
            logger.exception("Message handler error from=%s", message.from_)
