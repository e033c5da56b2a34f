"""Transcription API client package — async HTTP interface to Whisper.

WHY: The bot needs to turn voice-note audio into text. This package
encapsulates the speech-to-text call behind an async client class.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. Authentication is a
Bearer token loaded from config.

RULES:
- All transcription HTTP calls go through WhisperClient
- Failures surface as TranscriptionError
"""

from voice_relay.api.client import TranscriptionError, WhisperClient

__all__ = ["TranscriptionError", "WhisperClient"]
