"""Relay: deliver transcripts to the configured recipient.

WHY: Transcripts go to one fixed chat (usually the operator's own number),
not back to the chat the voice note came from. That decouples who sent the
audio from who reads the text and enables private transcription-to-self.

HOW: Relay resolves the sender's display name, formats the message, checks
the session is ready, and sends through the transport. Any failure is
logged as a RelayError and reported to the caller as False.

RULES:
- Never sends to the originating chat
- Contact name falls back: saved name -> profile name -> chat id
- No outbound send while the session is not ready
- Failures are logged, never retried, never raised
"""

from __future__ import annotations

import logging

from voice_relay.bot.messages import format_transcript
from voice_relay.core.state import SessionHealthState
from voice_relay.session.transport import Message, SessionTransport

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """Raised when a transcript cannot be delivered to the recipient."""


async def reply_if_ready(
    message: Message, text: str, state: SessionHealthState
) -> bool:
    """Reply to message unless the session is down. Returns True if sent."""
    if not state.ready:
        logger.warning("Session not ready; dropping reply to %s", message.from_)
        return False
    try:
        await message.reply(text)
    except Exception as exc:
        logger.error("Failed to reply to %s: %s", message.from_, exc)
        return False
    return True


class Relay:
    """Sends formatted transcripts to a fixed recipient chat."""

    def __init__(
        self,
        transport: SessionTransport,
        recipient: str,
        state: SessionHealthState,
    ) -> None:
        self._transport = transport
        self._recipient = recipient
        self._state = state

    @property
    def recipient(self) -> str:
        return self._recipient

    async def contact_name(self, message: Message) -> str:
        try:
            contact = await message.get_contact()
        except Exception as exc:
            logger.warning("Contact lookup failed for %s: %s", message.from_, exc)
            return message.from_
        logger.debug(
            "Contact info from=%s name=%s pushname=%s is_my_contact=%s",
            message.from_,
            contact.name,
            contact.pushname,
            contact.is_my_contact,
        )
        return contact.display_name(message.from_)

    async def send_transcript(self, message: Message, transcript: str) -> bool:
        """Relay transcript for message. Returns True when delivered."""
        name = await self.contact_name(message)
        text = format_transcript(name, transcript)
        try:
            await self._deliver(text)
        except RelayError as exc:
            logger.error("Relay failed recipient=%s: %s", self._recipient, exc)
            return False
        logger.info("Transcript relayed recipient=%s contact=%s", self._recipient, name)
        return True

    async def _deliver(self, text: str) -> None:
        if not self._state.ready:
            raise RelayError("session not ready")
        try:
            await self._transport.send_message(self._recipient, text)
        except Exception as exc:
            raise RelayError(str(exc) or type(exc).__name__) from exc
