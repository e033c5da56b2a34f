"""Pydantic wire models for the HTTP session bridge.

WHY: The messaging-client sidecar pushes events as JSON and the bot exposes
a status endpoint. Pydantic models validate the inbound payloads and give
the FastAPI app an OpenAPI schema for both directions.

HOW: EventEnvelope is the body of POST /events. MessagePayload is the shape
of the single argument of a message_create event. StatusResponse is the
body of GET /health.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- MessagePayload accepts the client's camelCase keys via aliases
- Python 3.9+ compatible (List from typing)
"""

from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field


class EventEnvelope(BaseModel):
    """One session event forwarded by the bridge sidecar."""

    event: str = Field(
        description="Session event name, e.g. 'ready' or 'message_create'.",
        json_schema_extra={"example": "disconnected"},
    )
    args: List[Any] = Field(
        default_factory=list,
        description="Positional event arguments in emission order.",
    )


class MessagePayload(BaseModel):
    """Inbound message as serialized by the bridge."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Message identifier.")
    from_: str = Field(alias="from", description="Originating chat id.")
    type: str = Field(default="chat", description="Media-kind tag, e.g. 'ptt'.")
    has_media: bool = Field(
        default=False, alias="hasMedia", description="Whether an attachment exists."
    )
    body: str = Field(default="", description="Text body, empty for media.")


class EventAccepted(BaseModel):
    status: str = Field(default="accepted", description="Always 'accepted'.")
    event: str = Field(description="Echo of the dispatched event name.")


class StatusResponse(BaseModel):
    """Health supervisor snapshot.

    WHY: Operators and the process manager can poll liveness without
    reading logs.
    """

    status: str = Field(description="'ok' when ready, otherwise 'degraded'.")
    phase: str = Field(description="Supervisor phase: not_ready, ready or restarting.")
    ready: bool = Field(description="Whether the session is usable.")
    last_activity_at: str = Field(description="ISO timestamp of the last inbound event.")
    idle_seconds: float = Field(description="Seconds since the last inbound event.")
    version: str = Field(description="Bot version string.")
