"""Contracts the bot needs from the messaging-client session.

WHY: The supervisor and the message handler only depend on a handful of
session capabilities: events, a liveness probe, re-initialization and
sending text. Defining them as abstract classes keeps the core independent
from any concrete client and lets tests drive it with fakes.

HOW: SessionTransport is an ABC with an event registry (on/emit) and three
abstract coroutines. Message is an ABC for one inbound message. Handlers
registered with on() may be plain functions or coroutine functions; emit()
awaits coroutine results so each event runs to completion before the next.

RULES:
- Event names are limited to SESSION_EVENTS; registering another name raises
- get_state() may raise; callers convert failures into probe results
- emit() does not swallow handler exceptions
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from voice_relay.session.models import ChatInfo, ContactInfo, MediaPayload

logger = logging.getLogger(__name__)

SESSION_EVENTS = frozenset({
    "ready",
    "qr",
    "authenticated",
    "auth_failure",
    "disconnected",
    "loading_screen",
    "change_state",
    "message_create",
})


class TransportError(Exception):
    """Raised when the session transport cannot complete a request."""


class ProbeError(TransportError):
    """Raised when the liveness probe (get_state) fails."""


class Message(ABC):
    """One inbound message as delivered by the session.

    Attributes:
        id: Message identifier assigned by the messaging client.
        from_: Chat identifier the message came from.
        type: Media-kind tag ("chat", "ptt", "audio", "image", "sticker", ...).
        has_media: Whether the message carries a downloadable attachment.
        body: Text body, empty for media-only messages.
    """

    def __init__(
        self,
        id: str,
        from_: str,
        type: str,
        has_media: bool = False,
        body: str = "",
    ) -> None:
        self.id = id
        self.from_ = from_
        self.type = type
        self.has_media = has_media
        self.body = body

    @abstractmethod
    async def download_media(self) -> Optional[MediaPayload]:
        """Fetch the attachment. Returns None when nothing is available."""

    @abstractmethod
    async def reply(self, text: str) -> None:
        """Reply in the originating chat."""

    @abstractmethod
    async def get_chat(self) -> ChatInfo:
        """Return the originating chat."""

    @abstractmethod
    async def get_contact(self) -> ContactInfo:
        """Return the sender's contact card."""


class SessionTransport(ABC):
    """Abstract messaging-client session.

    To plug in a new client:
    1. Subclass SessionTransport
    2. Implement get_state(), initialize() and send_message()
    3. Call emit() for each event the client produces
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Callable[..., Any]]] = {}

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        """Register a handler for a session event."""
        if event not in SESSION_EVENTS:
            raise ValueError("Unknown session event '{}'".format(event))
        self._handlers.setdefault(event, []).append(handler)

    async def emit(self, event: str, *args: Any) -> None:
        """Invoke every handler registered for event, in registration order."""
        if event not in SESSION_EVENTS:
            raise ValueError("Unknown session event '{}'".format(event))
        for handler in self._handlers.get(event, []):
            result = handler(*args)
            if inspect.isawaitable(result):
                await result

    @abstractmethod
    async def get_state(self) -> str:
        """Return the current connection state (see SessionState)."""

    @abstractmethod
    async def initialize(self) -> None:
        """Start, or restart, pairing and connection of the session."""

    @abstractmethod
    async def send_message(self, chat_id: str, text: str) -> None:
        """Send a text message to chat_id."""
