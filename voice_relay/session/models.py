"""Plain data objects exchanged with the messaging-client session.

WHY: The session transport returns chat, contact and media information as
loose JSON. Typed dataclasses make the fields the bot relies on explicit and
keep parsing in one place.

HOW: Each dataclass has a from_dict() factory that accepts the camelCase
keys used by the messaging client and tolerates missing optional fields.

RULES:
- MediaPayload.data is base64 text exactly as delivered by the client
- ContactInfo.name / pushname are None when unknown
- Group chat ids end with GROUP_CHAT_SUFFIX
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

GROUP_CHAT_SUFFIX = "@g.us"

VOICE_NOTE_TYPE = "ptt"
AUDIO_TYPE = "audio"

NAVIGATION_REASON = "NAVIGATION"


class SessionState:
    """Connection states reported by the session's get_state()."""

    CONNECTED = "CONNECTED"
    OPENING = "OPENING"
    PAIRING = "PAIRING"
    TIMEOUT = "TIMEOUT"
    CONFLICT = "CONFLICT"
    UNPAIRED = "UNPAIRED"
    UNLAUNCHED = "UNLAUNCHED"


def is_group_chat(chat_id: str) -> bool:
    return chat_id.endswith(GROUP_CHAT_SUFFIX)


@dataclass
class MediaPayload:
    """A downloaded attachment: mimetype plus base64-encoded bytes."""

    mimetype: str
    data: str
    filename: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MediaPayload:
        return cls(
            mimetype=data.get("mimetype") or "",
            data=data.get("data") or "",
            filename=data.get("filename"),
        )


@dataclass
class ChatInfo:
    id: str
    is_group: bool = False
    is_muted: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ChatInfo:
        chat_id = data.get("id", "")
        return cls(
            id=chat_id,
            is_group=bool(data.get("isGroup", is_group_chat(chat_id))),
            is_muted=bool(data.get("isMuted", False)),
        )


@dataclass
class ContactInfo:
    id: str
    name: Optional[str] = None
    pushname: Optional[str] = None
    is_my_contact: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ContactInfo:
        return cls(
            id=data.get("id", ""),
            name=data.get("name") or None,
            pushname=data.get("pushname") or None,
            is_my_contact=bool(data.get("isMyContact", False)),
        )

    def display_name(self, fallback: str) -> str:
        """Saved name, then profile name, then the given fallback."""
        return self.name or self.pushname or fallback
