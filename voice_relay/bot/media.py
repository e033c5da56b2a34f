"""Voice-note classification and the download -> transcribe -> relay path.

WHY: Most inbound media (images, stickers, documents) must be ignored
cheaply. Only push-to-talk voice notes and common audio encodings are worth
a download and a paid transcription call.

HOW: is_voice_note() is a pure predicate on the message type and the
downloaded mimetype. MediaProcessor.process() pre-filters on the message
type before any I/O, downloads the attachment, re-checks with the mimetype,
decodes the base64 payload, transcribes it, and hands the text to the Relay.

RULES:
- Types other than "ptt"/"audio" are skipped before download (no I/O)
- Voice note = type "ptt" OR mimetype contains audio/ogg, audio/mpeg, audio/mp4
- Download or decode failures raise MediaError (caller logs and skips)
- Empty transcript -> sender gets EMPTY_TRANSCRIPT_REPLY, nothing relayed
- TranscriptionError -> sender gets VOICE_ERROR_REPLY, no retry
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Optional

from voice_relay.api.client import TranscriptionError
from voice_relay.bot.messages import EMPTY_TRANSCRIPT_REPLY, VOICE_ERROR_REPLY
from voice_relay.bot.relay import Relay, reply_if_ready
from voice_relay.core.state import SessionHealthState
from voice_relay.session.models import AUDIO_TYPE, VOICE_NOTE_TYPE, MediaPayload
from voice_relay.session.transport import Message

logger = logging.getLogger(__name__)

AUDIO_MIMETYPES = ("audio/ogg", "audio/mpeg", "audio/mp4")
"""Mimetype fragments accepted as transcribable audio."""

TRANSCRIBABLE_TYPES = frozenset({VOICE_NOTE_TYPE, AUDIO_TYPE})

_EXTENSIONS = {
    "audio/ogg": ".ogg",
    "audio/mpeg": ".mp3",
    "audio/mp4": ".m4a",
}


class MediaError(Exception):
    """Raised when an attachment cannot be downloaded or decoded."""


def is_voice_note(message_type: Optional[str], mimetype: Optional[str]) -> bool:
    """Return True if the message should be transcribed.

    Never raises; missing values simply do not match.
    """
    if message_type == VOICE_NOTE_TYPE:
        return True
    if not mimetype:
        return False
    return any(fragment in mimetype for fragment in AUDIO_MIMETYPES)


def audio_filename(mimetype: str) -> str:
    """Pick an upload filename whose extension matches the encoding."""
    for fragment, ext in _EXTENSIONS.items():
        if fragment in mimetype:
            return "voice" + ext
    return "voice.ogg"


def decode_audio(media: MediaPayload) -> bytes:
    try:
        return base64.b64decode(media.data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MediaError("invalid base64 payload: {}".format(exc)) from exc


class MediaProcessor:
    """Turns one inbound voice note into a relayed transcript.

    Args:
        transcriber: Object with an async transcribe(audio, filename,
            mimetype) method, normally a WhisperClient.
        relay: Delivers the transcript to the configured recipient.
        state: Session health, consulted before replying to the sender.
    """

    def __init__(self, transcriber: Any, relay: Relay, state: SessionHealthState) -> None:
        self._transcriber = transcriber
        self._relay = relay
        self._state = state

    async def process(self, message: Message) -> None:
        if message.type not in TRANSCRIBABLE_TYPES:
            logger.info("Skipping media type=%s", message.type)
            return

        logger.info("Downloading media from=%s", message.from_)
        try:
            media = await message.download_media()
        except Exception as exc:
            raise MediaError("download failed: {}".format(exc)) from exc

        if media is None or not media.mimetype:
            logger.info("Media unavailable or without mimetype from=%s", message.from_)
            return

        if not is_voice_note(message.type, media.mimetype):
            logger.info("Skipping non-voice audio mimetype=%s", media.mimetype)
            return

        logger.info(
            "Voice note detected from=%s type=%s mimetype=%s size=%d",
            message.from_,
            message.type,
            media.mimetype,
            len(media.data),
        )
        audio = decode_audio(media)

        try:
            transcript = await self._transcriber.transcribe(
                audio,
                filename=audio_filename(media.mimetype),
                mimetype=media.mimetype.split(";")[0].strip(),
            )
        except TranscriptionError as exc:
            logger.error("Voice note transcription failed from=%s: %s", message.from_, exc)
            await reply_if_ready(message, VOICE_ERROR_REPLY, self._state)
            return

        transcript = transcript.strip()
        if not transcript:
            logger.info("Empty transcript from=%s", message.from_)
            await reply_if_ready(message, EMPTY_TRANSCRIPT_REPLY, self._state)
            return

        logger.info("Transcription succeeded from=%s chars=%d", message.from_, len(transcript))
        await self._relay.send_transcript(message, transcript)
