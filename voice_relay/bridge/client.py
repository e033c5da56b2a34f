"""Session transport backed by an HTTP messaging-client sidecar.

WHY: The messaging client itself (browser automation, pairing, credential
storage) runs as a separate sidecar process. The bot talks to it over a
small REST API for requests and receives its events as webhooks (see
bridge/server.py). This module is the request half.

HOW: BridgeTransport wraps httpx.AsyncClient with optional Bearer auth and
implements SessionTransport. BridgeMessage implements Message by calling
the per-message endpoints on the same client. Non-2xx responses and httpx
errors become TransportError; failures of GET /state become ProbeError,
with the sidecar's response body in the message so fatal-fault signatures
("Session closed", "Protocol error") can be matched.

RULES:
- Use as: async with BridgeTransport(url) as transport: ...
- GET /messages/{id}/media returning 404 means "no media" (None)
- Chat ids are percent-encoded in paths (keeping '@' and '.')
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from voice_relay.bridge.models import MessagePayload
from voice_relay.config import BRIDGE_TIMEOUT_S, BRIDGE_URL
from voice_relay.session.models import ChatInfo, ContactInfo, MediaPayload
from voice_relay.session.transport import (
    Message,
    ProbeError,
    SessionTransport,
    TransportError,
)

logger = logging.getLogger(__name__)


def _path_id(value: str) -> str:
    return quote(value, safe="@.")


class BridgeTransport(SessionTransport):
    """SessionTransport over the sidecar's REST API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = BRIDGE_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__()
        self._base_url = (base_url or BRIDGE_URL).rstrip("/")
        self._token = token
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> BridgeTransport:
        headers = {}
        if self._token:
            headers["Authorization"] = "Bearer {}".format(self._token)
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "BridgeTransport must be used as an async context manager: "
                "async with BridgeTransport() as transport: ..."
            )
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        allow_404: bool = False,
    ) -> Optional[httpx.Response]:
        """Send one request to the sidecar.

        Returns None for a 404 when allow_404 is set.

        Raises:
            TransportError: on httpx errors or any other non-2xx status.
        """
        client = self._ensure_client()
        try:
            resp = await client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            raise TransportError(
                "{} {} failed: {}".format(method, path, str(exc) or type(exc).__name__)
            ) from exc

        if allow_404 and resp.status_code == 404:
            return None
        if not resp.is_success:
            raise TransportError(
                "{} {} returned {}: {}".format(method, path, resp.status_code, resp.text)
            )
        return resp

    # ------------------------------------------------------------------
    # SessionTransport
    # ------------------------------------------------------------------

    async def get_state(self) -> str:
        try:
            resp = await self.request("GET", "/state")
        except TransportError as exc:
            raise ProbeError(str(exc)) from exc
        return str(resp.json().get("state", ""))

    async def initialize(self) -> None:
        logger.info("Requesting session initialize from %s", self._base_url)
        await self.request("POST", "/initialize")

    async def send_message(self, chat_id: str, text: str) -> None:
        await self.request(
            "POST", "/chats/{}/messages".format(_path_id(chat_id)), json={"text": text}
        )

    def build_message(self, payload: MessagePayload) -> BridgeMessage:
        return BridgeMessage(self, payload)


class BridgeMessage(Message):
    """Inbound message whose lazy lookups go through the sidecar."""

    def __init__(self, bridge: BridgeTransport, payload: MessagePayload) -> None:
        super().__init__(
            id=payload.id,
            from_=payload.from_,
            type=payload.type,
            has_media=payload.has_media,
            body=payload.body,
        )
        self._bridge = bridge

    def _path(self, suffix: str) -> str:
        return "/messages/{}/{}".format(_path_id(self.id), suffix)

    async def download_media(self) -> Optional[MediaPayload]:
        resp = await self._bridge.request("GET", self._path("media"), allow_404=True)
        if resp is None:
            return None
        return MediaPayload.from_dict(resp.json())

    async def reply(self, text: str) -> None:
        await self._bridge.request("POST", self._path("reply"), json={"text": text})

    async def get_chat(self) -> ChatInfo:
        resp = await self._bridge.request("GET", self._path("chat"))
        return ChatInfo.from_dict(resp.json())

    async def get_contact(self) -> ContactInfo:
        resp = await self._bridge.request("GET", self._path("contact"))
        return ContactInfo.from_dict(resp.json())
