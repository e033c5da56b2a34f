"""Messaging-client session contracts and data objects."""

from voice_relay.session.models import (
    ChatInfo,
    ContactInfo,
    MediaPayload,
    SessionState,
)
from voice_relay.session.transport import (
    SESSION_EVENTS,
    Message,
    ProbeError,
    SessionTransport,
    TransportError,
)

__all__ = [
    "SESSION_EVENTS",
    "ChatInfo",
    "ContactInfo",
    "MediaPayload",
    "Message",
    "ProbeError",
    "SessionState",
    "SessionTransport",
    "TransportError",
]
