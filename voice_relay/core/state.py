"""Session health state, probe results, and recovery actions.

WHY: The supervisor's decisions depend on two facts (is the session ready,
when did we last see activity) and produce one of two recovery actions.
Keeping these as small typed objects, owned by one SessionHealthState
instance that is passed around explicitly, makes every transition testable
without real timers or a real process exit.

HOW: SessionHealthState is a mutable dataclass whose mutators take the
current time as an argument. ProbeResult variants and RecoveryAction
variants are frozen dataclasses, matched with isinstance().

RULES:
- A new state starts NOT_READY with last_activity_at = creation time
- mark_not_ready() is the single place ready becomes False
- Once restart_pending is set the phase is RESTARTING for good and ready
  stays False
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Union


class Phase(str, enum.Enum):
    """Supervisor-visible lifecycle phase."""

    NOT_READY = "not_ready"
    READY = "ready"
    RESTARTING = "restarting"


@dataclass
class SessionHealthState:
    """Liveness facts for the single session this process supervises."""

    last_activity_at: float
    ready: bool = False
    restart_pending: bool = False

    @property
    def phase(self) -> Phase:
        if self.restart_pending:
            return Phase.RESTARTING
        return Phase.READY if self.ready else Phase.NOT_READY

    def mark_ready(self, now: float) -> None:
        """Mark ready, unless a restart is already pending."""
        self.last_activity_at = now
        if not self.restart_pending:
            self.ready = True

    def mark_not_ready(self) -> None:
        self.ready = False

    def touch(self, now: float) -> None:
        """Record inbound activity."""
        self.last_activity_at = now

    def idle_for(self, now: float) -> float:
        return max(0.0, now - self.last_activity_at)


# ---------------------------------------------------------------------------
# Probe results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Connected:
    state: str


@dataclass(frozen=True)
class Disconnected:
    """The probe answered, but with a state other than CONNECTED."""

    reason: str


@dataclass(frozen=True)
class ProbeFailed:
    error: BaseException

    @property
    def message(self) -> str:
        return str(self.error)


ProbeResult = Union[Connected, Disconnected, ProbeFailed]


# ---------------------------------------------------------------------------
# Recovery actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReinitializeAfter:
    """Re-run session initialization in-process after delay seconds."""

    delay: float
    reason: str = ""


@dataclass(frozen=True)
class RestartProcessAfter:
    """Exit the process with exit_code after delay seconds.

    The external process manager is relied upon to relaunch the bot.
    """

    delay: float
    reason: str = ""
    exit_code: int = 1


RecoveryAction = Union[ReinitializeAfter, RestartProcessAfter]
