"""Composition root: build the bot's collaborators and run them on one loop.

WHY: The supervisor, message handlers, transcription client, bridge
transport and webhook server each stay testable on their own because they
receive their dependencies. Something has to create those objects once per
process, in the right order, and own their lifetimes. That is this module.

HOW: run_bot() opens the bridge and Whisper clients as async context
managers, wires handlers and the supervisor to one SessionHealthState,
serves the FastAPI app with uvicorn on the same event loop. Startup and
shutdown work runs in the app lifespan (session_lifespan): the supervisor
timer starts and the first session initialize is requested as a task, so
it proceeds while uvicorn begins accepting webhooks.

RULES:
- One SessionHealthState per process, created NOT_READY
- Process-level uncaught errors are logged with ready state and last
  activity, and never trigger a restart (only the supervisor restarts)
- Shutdown stops the supervisor timer and drains in-flight messages
"""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional

import uvicorn
from fastapi import FastAPI

from voice_relay.api.client import WhisperClient
from voice_relay.bot.handlers import BotHandlers
from voice_relay.bot.media import MediaProcessor
from voice_relay.bot.relay import Relay
from voice_relay.bridge.client import BridgeTransport
from voice_relay.bridge.server import create_app
from voice_relay.config import Settings
from voice_relay.core.scheduler import AsyncioScheduler, Scheduler
from voice_relay.core.state import SessionHealthState
from voice_relay.core.supervisor import HealthSupervisor
from voice_relay.session.transport import SessionTransport, TransportError

logger = logging.getLogger(__name__)


def _diagnostics(state: SessionHealthState) -> Dict[str, Any]:
    return {
        "ready": state.ready,
        "last_activity_at": datetime.fromtimestamp(
            state.last_activity_at, tz=timezone.utc
        ).isoformat(),
    }


def install_exception_hooks(
    state: SessionHealthState,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> None:
    """Log uncaught exceptions with session context instead of dying silently."""

    def _excepthook(exc_type, exc, tb) -> None:  # noqa: ANN001
        diag = _diagnostics(state)
        logger.critical(
            "Uncaught exception ready=%s last_activity_at=%s",
            diag["ready"],
            diag["last_activity_at"],
            exc_info=(exc_type, exc, tb),
        )

    def _loop_handler(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        diag = _diagnostics(state)
        exc = context.get("exception")
        logger.error(
            "Unhandled async error: %s ready=%s last_activity_at=%s",
            context.get("message", "unknown"),
            diag["ready"],
            diag["last_activity_at"],
            exc_info=(type(exc), exc, exc.__traceback__) if exc else None,
        )

    sys.excepthook = _excepthook
    (loop or asyncio.get_running_loop()).set_exception_handler(_loop_handler)


async def initialize_session(transport: SessionTransport) -> None:
    """Ask the session to start pairing/connecting.

    A failure is logged; the supervisor restarts the process if the
    session never becomes ready.
    """
    try:
        await transport.initialize()
    except TransportError as exc:
        logger.error("Initial session initialize failed: %s", exc)


def session_lifespan(
    transport: SessionTransport,
    supervisor: HealthSupervisor,
    scheduler: Scheduler,
    handlers: BotHandlers,
):
    """Build the FastAPI lifespan that owns the supervisor and session start.

    RULES:
    - Startup: supervisor timer on, first initialize scheduled as a task
    - Shutdown: initialize task cancelled, timers cancelled, in-flight
      messages drained, in that order
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        supervisor.start()
        init_task = asyncio.create_task(initialize_session(transport))
        yield
        init_task.cancel()
        try:
            await init_task
        except asyncio.CancelledError:
            pass
        supervisor.stop()
        scheduler.shutdown()
        await handlers.drain()
        logger.info("Voice relay stopped")

    return lifespan


async def run_bot(settings: Settings, log_level: str = "info") -> None:
    """Run the bot until the webhook server stops or the process restarts."""
    state = SessionHealthState(last_activity_at=time.time())
    scheduler = AsyncioScheduler()
    install_exception_hooks(state)

    async with BridgeTransport(
        settings.bridge_url, token=settings.bridge_token or None
    ) as transport, WhisperClient(
        api_key=settings.api_key,
        url=settings.transcription_url,
        model=settings.whisper_model,
    ) as whisper:
        supervisor = HealthSupervisor(state, transport, scheduler, settings.supervisor)
        relay = Relay(transport, settings.recipient, state)
        processor = MediaProcessor(whisper, relay, state)
        handlers = BotHandlers(transport, supervisor, processor, settings.media_timeout_s)
        handlers.register()

        app = create_app(
            transport,
            supervisor,
            token=settings.bridge_token or None,
            lifespan=session_lifespan(transport, supervisor, scheduler, handlers),
        )
        server = uvicorn.Server(
            uvicorn.Config(app, host=settings.host, port=settings.port, log_level=log_level)
        )

        logger.info("Voice relay starting; transcripts go to %s", settings.recipient)
        logger.info("Bridge URL: %s", settings.bridge_url)
        await server.serve()
