"""Core supervision: health state, timers, and the recovery state machine."""

from voice_relay.core.state import (
    Phase,
    ReinitializeAfter,
    RestartProcessAfter,
    SessionHealthState,
)
from voice_relay.core.supervisor import HealthSupervisor

__all__ = [
    "HealthSupervisor",
    "Phase",
    "ReinitializeAfter",
    "RestartProcessAfter",
    "SessionHealthState",
]
