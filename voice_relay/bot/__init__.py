"""Message handling: voice-note classification, transcription path, relay."""

from voice_relay.bot.handlers import BotHandlers
from voice_relay.bot.media import MediaError, MediaProcessor, is_voice_note
from voice_relay.bot.relay import Relay, RelayError

__all__ = [
    "BotHandlers",
    "MediaError",
    "MediaProcessor",
    "Relay",
    "RelayError",
    "is_voice_note",
]
