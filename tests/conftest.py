"""Shared fakes and fixtures for the voice_relay test suite.

WHY: The supervisor, handlers and media path all depend on a session
transport, a timer source and a clock. Deterministic fakes let tests fire
a 10-minute health check or a 5-second recovery delay instantly.

HOW: FakeClock is a settable callable. FakeScheduler records call_later /
every registrations and can fire them on demand. FakeTransport and
FakeMessage implement the session ABCs with AsyncMock-backed methods so
tests can assert on calls.

RULES:
- No test touches the network or sleeps on real timers
- Async code is driven with asyncio.run() inside synchronous tests
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, List, Optional
from unittest.mock import AsyncMock

import pytest

from voice_relay.config import SupervisorSettings
from voice_relay.core.scheduler import Scheduler, TimerHandle
from voice_relay.core.state import SessionHealthState
from voice_relay.core.supervisor import HealthSupervisor
from voice_relay.session.models import ChatInfo, ContactInfo, MediaPayload
from voice_relay.session.transport import Message, SessionTransport

START_TS = 1_700_000_000.0

RECIPIENT = "56911111111@c.us"

# "hola" encoded as base64 stands in for real audio bytes
AUDIO_B64 = "aG9sYQ=="


class FakeClock:
    def __init__(self, now: float = START_TS) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTimer(TimerHandle):
    def __init__(self, delay: float, callback: Callable[[], Any], recurring: bool) -> None:
        self.delay = delay
        self.callback = callback
        self.recurring = recurring
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler(Scheduler):
    """Records timers; fire() runs a callback and awaits it if needed."""

    def __init__(self) -> None:
        self.timers: List[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        timer = FakeTimer(delay, callback, recurring=False)
        self.timers.append(timer)
        return timer

    def every(self, interval: float, callback: Callable[[], Any]) -> TimerHandle:
        timer = FakeTimer(interval, callback, recurring=True)
        self.timers.append(timer)
        return timer

    def shutdown(self) -> None:
        for timer in self.timers:
            timer.cancel()

    @property
    def one_shots(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.recurring and not t.cancelled]

    def fire(self, timer: FakeTimer) -> Any:
        result = timer.callback()
        if inspect.isawaitable(result):
            return asyncio.run(_await(result))
        return result


async def _await(awaitable: Any) -> Any:
    return await awaitable


class FakeTransport(SessionTransport):
    def __init__(self, state: str = "CONNECTED") -> None:
        super().__init__()
        self.get_state = AsyncMock(return_value=state)
        self.initialize = AsyncMock(return_value=None)
        self.send_message = AsyncMock(return_value=None)

    async def get_state(self) -> str:
        return "CONNECTED"

    async def initialize(self) -> None:
        return None

    async def send_message(self, chat_id: str, text: str) -> None:
        return None


class FakeMessage(Message):
    def __init__(
        self,
        from_: str = "56922222222@c.us",
        type: str = "ptt",
        has_media: bool = True,
        body: str = "",
        media: Optional[MediaPayload] = None,
        chat: Optional[ChatInfo] = None,
        contact: Optional[ContactInfo] = None,
        id: str = "msg-1",
    ) -> None:
        super().__init__(id=id, from_=from_, type=type, has_media=has_media, body=body)
        self.download_media = AsyncMock(return_value=media)
        self.reply = AsyncMock(return_value=None)
        self.get_chat = AsyncMock(return_value=chat or ChatInfo(id=from_))
        self.get_contact = AsyncMock(
            return_value=contact or ContactInfo(id=from_, name="Ana")
        )

    async def download_media(self) -> Optional[MediaPayload]:
        return None

    async def reply(self, text: str) -> None:
        return None

    async def get_chat(self) -> ChatInfo:
        raise NotImplementedError

    async def get_contact(self) -> ContactInfo:
        raise NotImplementedError


def voice_media(mimetype: str = "audio/ogg; codecs=opus") -> MediaPayload:
    return MediaPayload(mimetype=mimetype, data=AUDIO_B64)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def state(clock) -> SessionHealthState:
    return SessionHealthState(last_activity_at=clock())


@pytest.fixture
def exit_calls() -> List[int]:
    return []


@pytest.fixture
def supervisor(state, transport, scheduler, clock, exit_calls) -> HealthSupervisor:
    return HealthSupervisor(
        state,
        transport,
        scheduler,
        settings=SupervisorSettings(),
        clock=clock,
        exit_fn=exit_calls.append,
    )
