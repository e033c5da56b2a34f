"""Async HTTP client for the OpenAI Whisper transcription endpoint.

WHY: Voice notes must be turned into text by a remote speech-to-text
service. This module encapsulates the single multipart request behind a
client class so the message handler (and tests) never deal with HTTP
details.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. WhisperClient is an
async context manager: enter it to get an authenticated client, exit to
close the connection pool. transcribe() posts the audio as multipart form
data and returns the plain-text body.

RULES:
- Always use the async context manager (async with WhisperClient(...) as c:)
- Request timeout is 30s; a timeout is a TranscriptionError, not a hang
- 2xx returns the trimmed body, which may be empty ("no speech recognized")
- Non-2xx or transport failures raise TranscriptionError, never partial text
"""

from __future__ import annotations

import logging

import httpx

from voice_relay.config import (
    TRANSCRIPTION_TIMEOUT_S,
    TRANSCRIPTION_URL,
    WHISPER_MODEL,
    load_api_key,
)

logger = logging.getLogger(__name__)


class TranscriptionError(Exception):
    """Raised when the transcription request fails.

    WHY: Callers need a typed exception to tell an upstream failure apart
    from an empty transcript (which is a normal result).

    RULES:
    - status_code is None for transport errors and timeouts
    - detail carries the upstream response body or the transport message
    """

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        self.detail = detail
        self.status_code = status_code
        if status_code is None:
            message = f"Transcription failed: {detail}"
        else:
            message = f"Transcription failed ({status_code}): {detail}"
        super().__init__(message)


class WhisperClient:
    """Async client for the Whisper audio transcription endpoint.

    RULES:
    - api_key defaults to load_api_key() from .env
    - url and model default to the config module values
    - transport is injectable for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: str | None = None,
        url: str | None = None,
        model: str | None = None,
        timeout: float = TRANSCRIPTION_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key or load_api_key()
        self._url = url or TRANSCRIPTION_URL
        self._model = model or WHISPER_MODEL
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> WhisperClient:
        self._client = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "WhisperClient must be used as an async context manager: "
                "async with WhisperClient() as client: ..."
            )
        return self._client

    async def transcribe(
        self,
        audio: bytes,
        filename: str = "audio.ogg",
        mimetype: str = "audio/ogg",
    ) -> str:
        """Send audio bytes to Whisper and return the trimmed transcript.

        HOW: POSTs multipart form data with fields model, file and
        response_format=text. The endpoint answers with a plain-text body.

        Args:
            audio: Decoded audio bytes.
            filename: Name sent with the file part; Whisper uses the
                extension to pick a decoder.
            mimetype: Content type of the file part.

        Returns:
            The transcript with surrounding whitespace removed. May be "".

        Raises:
            TranscriptionError: on timeout, transport error or non-2xx status.
        """
        client = self._ensure_client()
        logger.info("Sending %d bytes to %s", len(audio), self._url)

        try:
            resp = await client.post(
                self._url,
                data={"model": self._model, "response_format": "text"},
                files={"file": (filename, audio, mimetype)},
            )
        except httpx.TimeoutException as exc:
            raise TranscriptionError(
                "request timed out after {:.0f}s".format(self._timeout)
            ) from exc
        except httpx.HTTPError as exc:
            raise TranscriptionError(str(exc) or type(exc).__name__) from exc

        if not resp.is_success:
            logger.error(
                "Whisper API error status=%d body=%s", resp.status_code, resp.text
            )
            raise TranscriptionError(resp.text, status_code=resp.status_code)

        transcript = resp.text.strip()
        logger.info("Whisper API response chars=%d", len(transcript))
        return transcript
