"""FastAPI app receiving session events and reporting supervisor health.

WHY: The messaging-client sidecar pushes every session event to the bot
over HTTP. Routing those webhooks through FastAPI gives request validation
and OpenAPI docs for free, and the same app exposes GET /health so the
process manager or an operator can see the supervisor's view of liveness.

HOW: create_app() closes over one BridgeTransport and one HealthSupervisor.
POST /events validates the envelope, turns a message_create argument into a
BridgeMessage, and awaits transport.emit(). Event handlers are quick; the
message handler spawns its own task, so the webhook returns immediately.

RULES:
- Unknown event names -> 400
- Argument count outside EVENT_ARITY for the event -> 422
- When a shared token is configured, X-Bridge-Token must match -> else 401
- message_create requires one object argument matching MessagePayload -> else 422
- GET /health never touches the sidecar (reads local state only)
"""

from __future__ import annotations

import logging
from typing import Any, AsyncContextManager, Callable, Dict, Optional, Tuple

from fastapi import FastAPI, Header, HTTPException
from pydantic import ValidationError

from voice_relay import __version__
from voice_relay.bridge.client import BridgeTransport
from voice_relay.bridge.models import (
    EventAccepted,
    EventEnvelope,
    MessagePayload,
    StatusResponse,
)
from voice_relay.core.state import Phase
from voice_relay.core.supervisor import HealthSupervisor
from voice_relay.session.transport import SESSION_EVENTS

logger = logging.getLogger(__name__)

# Allowed (min, max) positional argument counts per session event
EVENT_ARITY: Dict[str, Tuple[int, int]] = {
    "ready": (0, 0),
    "authenticated": (0, 0),
    "qr": (1, 1),
    "auth_failure": (1, 1),
    "disconnected": (1, 1),
    "change_state": (1, 1),
    "loading_screen": (1, 2),
    "message_create": (1, 1),
}


def create_app(
    transport: BridgeTransport,
    supervisor: HealthSupervisor,
    token: Optional[str] = None,
    lifespan: Optional[Callable[[FastAPI], AsyncContextManager[Any]]] = None,
) -> FastAPI:
    """Build the webhook/status app for one transport and supervisor.

    WHY: Factory function lets tests inject fakes and avoids module-level
    singletons.

    Args:
        lifespan: Optional startup/shutdown context passed to FastAPI.
    """
    app = FastAPI(
        lifespan=lifespan,
        title="Voice Relay Bot",
        description=(
            "Receives messaging-session events from the bridge sidecar and "
            "reports the health supervisor's view of the session."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url=None,
    )

    @app.post(
        "/events",
        response_model=EventAccepted,
        status_code=202,
        tags=["events"],
        summary="Dispatch a session event",
    )
    async def post_event(
        envelope: EventEnvelope,
        x_bridge_token: Optional[str] = Header(default=None),
    ) -> EventAccepted:
        if token and x_bridge_token != token:
            raise HTTPException(status_code=401, detail="Invalid bridge token")

        if envelope.event not in SESSION_EVENTS:
            raise HTTPException(
                status_code=400,
                detail="Unknown event '{}'. Known events: {}".format(
                    envelope.event, ", ".join(sorted(SESSION_EVENTS))
                ),
            )

        args = list(envelope.args)
        low, high = EVENT_ARITY[envelope.event]
        if not low <= len(args) <= high:
            expected = str(low) if low == high else "{}-{}".format(low, high)
            raise HTTPException(
                status_code=422,
                detail="Event '{}' expects {} argument(s), got {}".format(
                    envelope.event, expected, len(args)
                ),
            )
        if envelope.event == "message_create":
            if not isinstance(args[0], dict):
                raise HTTPException(
                    status_code=422,
                    detail="message_create expects exactly one message object",
                )
            try:
                payload = MessagePayload.model_validate(args[0])
            except ValidationError as exc:
                raise HTTPException(status_code=422, detail=str(exc)) from exc
            args = [transport.build_message(payload)]

        logger.debug("Dispatching event=%s", envelope.event)
        await transport.emit(envelope.event, *args)
        return EventAccepted(event=envelope.event)

    @app.get(
        "/health",
        response_model=StatusResponse,
        tags=["health"],
        summary="Supervisor health",
    )
    async def health() -> StatusResponse:
        snapshot = supervisor.describe()
        ok = snapshot["phase"] == Phase.READY.value
        return StatusResponse(
            status="ok" if ok else "degraded",
            version=__version__,
            **snapshot,
        )

    return app
