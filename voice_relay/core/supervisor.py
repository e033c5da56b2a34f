"""Session health supervisor: liveness tracking, probing, and recovery.

WHY: A long-lived messaging session can fail silently: the client stays
"connected" while the underlying browser session is gone, or the bot sits
unpaired after a logout. Nothing downstream notices, so voice notes are just
lost. The supervisor watches for these conditions and recovers, either by
re-initializing the session in-process or by exiting so the external
process manager relaunches the bot from its persisted credentials.

HOW: Session event handlers call on_ready / on_activity / on_disconnected /
on_auth_failure. A recurring timer calls run_health_check() every 10
minutes. Decision methods (decide_*) return a RecoveryAction without side
effects; apply() turns an action into a scheduled re-initialize or a
scheduled process exit. Time, timers and the exit call are all injected.

RULES:
- NOT_READY -> READY on "ready"; last activity is reset
- READY -> NOT_READY on "disconnected" or a failed probe
- NOT_READY for longer than 30 minutes (since last activity) -> restart in 2s
- Probe error containing a fatal signature -> restart in 5s
- disconnected(NAVIGATION) -> re-initialize in 5s; any other reason -> 10s
- Ready but idle for more than 2 hours -> warning only
- Probe success with a non-CONNECTED state -> warning only, no state change
- A probe exception never escapes run_health_check()
- At most one restart is ever scheduled per process
- While a restart is pending, ticks do nothing and "ready" is ignored
- Repeated disconnects each schedule their own re-initialize (not debounced)
"""

from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from voice_relay.config import SupervisorSettings
from voice_relay.core.scheduler import Scheduler, TimerHandle
from voice_relay.core.state import (
    Connected,
    Disconnected,
    ProbeFailed,
    ProbeResult,
    RecoveryAction,
    ReinitializeAfter,
    RestartProcessAfter,
    SessionHealthState,
)
from voice_relay.session.models import NAVIGATION_REASON, SessionState
from voice_relay.session.transport import SessionTransport

logger = logging.getLogger(__name__)


def exit_process(exit_code: int) -> None:
    """Flush logging and terminate the process immediately.

    The exit code is non-zero for recovery restarts so the process manager
    treats it as a crash and relaunches.
    """
    logger.critical("Restarting process exit_code=%d", exit_code)
    logging.shutdown()
    os._exit(exit_code)


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


class HealthSupervisor:
    """Owns a SessionHealthState and keeps the session alive.

    Args:
        state: The process-wide health state; mutated only here and by the
            session event handlers that call into this class.
        transport: Session used for probing and re-initialization.
        scheduler: Timer source for the recurring check and recovery delays.
        settings: Thresholds and delays (defaults from config).
        clock: Returns the current epoch time in seconds.
        exit_fn: Called with the exit code when a restart fires.
    """

    def __init__(
        self,
        state: SessionHealthState,
        transport: SessionTransport,
        scheduler: Scheduler,
        settings: Optional[SupervisorSettings] = None,
        clock: Callable[[], float] = time.time,
        exit_fn: Callable[[int], None] = exit_process,
    ) -> None:
        self.state = state
        self._transport = transport
        self._scheduler = scheduler
        self._settings = settings or SupervisorSettings()
        self._clock = clock
        self._exit_fn = exit_fn
        self._timer: Optional[TimerHandle] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin the recurring health check."""
        if self._timer is not None:
            return
        logger.info(
            "Health supervisor started interval=%ds", self._settings.check_interval_s
        )
        self._timer = self._scheduler.every(
            self._settings.check_interval_s, self.run_health_check
        )

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # ------------------------------------------------------------------
    # Session events
    # ------------------------------------------------------------------

    def on_ready(self) -> None:
        self.state.mark_ready(self._clock())
        if self.state.restart_pending:
            logger.warning("Session ready during pending restart; staying RESTARTING")
            return
        logger.info("Session ready status=READY")

    def on_activity(self) -> None:
        self.state.touch(self._clock())

    def on_disconnected(self, reason: str) -> RecoveryAction:
        """Mark the session not ready and schedule a re-initialize."""
        now = self._clock()
        logger.warning(
            "Session disconnected reason=%s timestamp=%s was_ready=%s idle=%.0fs",
            reason,
            _iso(now),
            self.state.ready,
            self.state.idle_for(now),
        )
        self.state.mark_not_ready()
        action = self.decide_disconnect(reason)
        self.apply(action)
        return action

    def on_auth_failure(self, message: str) -> RecoveryAction:
        """Authentication failures cannot be fixed in-process; restart now."""
        logger.error("Session authentication failed: %s", message)
        self.state.mark_not_ready()
        action = RestartProcessAfter(
            delay=0.0,
            reason="auth_failure",
            exit_code=self._settings.restart_exit_code,
        )
        self.apply(action)
        return action

    # ------------------------------------------------------------------
    # Decisions (no side effects)
    # ------------------------------------------------------------------

    def decide_disconnect(self, reason: str) -> ReinitializeAfter:
        if reason == NAVIGATION_REASON:
            return ReinitializeAfter(self._settings.navigation_reinit_s, reason)
        return ReinitializeAfter(self._settings.disconnect_reinit_s, reason)

    def decide_idle(self, now: float) -> Optional[RestartProcessAfter]:
        """Restart when the session has been NOT_READY for too long."""
        if self.state.ready:
            return None
        if self.state.idle_for(now) > self._settings.not_ready_restart_s:
            return RestartProcessAfter(
                delay=self._settings.not_ready_grace_s,
                reason="not_ready_timeout",
                exit_code=self._settings.restart_exit_code,
            )
        return None

    def decide_probe(self, result: ProbeResult) -> Optional[RestartProcessAfter]:
        """Restart only for probe failures that carry a fatal signature."""
        if not isinstance(result, ProbeFailed):
            return None
        if self.is_fatal(result.message):
            return RestartProcessAfter(
                delay=self._settings.fatal_probe_grace_s,
                reason="fatal_probe_error",
                exit_code=self._settings.restart_exit_code,
            )
        return None

    def is_fatal(self, message: str) -> bool:
        return any(sig in message for sig in self._settings.fatal_signatures)

    # ------------------------------------------------------------------
    # Health check tick
    # ------------------------------------------------------------------

    async def probe(self) -> ProbeResult:
        """Ask the transport for its state; never raises."""
        try:
            state = await self._transport.get_state()
        except Exception as exc:
            return ProbeFailed(exc)
        if state == SessionState.CONNECTED:
            return Connected(state)
        return Disconnected(str(state))

    async def run_health_check(self) -> Optional[RecoveryAction]:
        """One supervisor tick. Returns the recovery action taken, if any."""
        if self.state.restart_pending:
            logger.info("Health check skipped; process restart pending")
            return None

        now = self._clock()
        idle = self.state.idle_for(now)
        logger.info(
            "Health check status=%s last_activity=%dm ago",
            "READY" if self.state.ready else "NOT_READY",
            round(idle / 60),
        )

        if self.state.ready and idle > self._settings.stale_warning_s:
            logger.warning(
                "No activity for %.1fh while ready; connection might be stale",
                idle / 3600,
            )

        action: Optional[RecoveryAction] = self.decide_idle(now)
        if action is not None:
            logger.critical(
                "Session NOT_READY for %dm; forcing process restart", round(idle / 60)
            )
            self.apply(action)
            return action

        if not self.state.ready:
            return None

        result = await self.probe()
        if isinstance(result, Connected):
            logger.info("Connection state=%s", result.state)
            return None
        if isinstance(result, Disconnected):
            # Left as a warning: the session may still deliver messages.
            logger.warning(
                "Client not in %s state (state=%s); might need restart",
                SessionState.CONNECTED,
                result.reason,
            )
            return None

        logger.error("Connection probe failed: %s", result.message)
        self.state.mark_not_ready()
        logger.warning("Connection seems broken; status=NOT_READY")
        action = self.decide_probe(result)
        if action is not None:
            logger.critical("Detected closed browser session; scheduling restart")
            self.apply(action)
        return action

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def apply(self, action: RecoveryAction) -> Optional[TimerHandle]:
        """Schedule the side effect described by action."""
        if isinstance(action, ReinitializeAfter):
            logger.info(
                "Scheduling re-initialize in %.0fs reason=%s", action.delay, action.reason
            )
            return self._scheduler.call_later(action.delay, self._reinitialize)

        if self.state.restart_pending:
            logger.info("Restart already pending; ignoring reason=%s", action.reason)
            return None
        self.state.restart_pending = True
        self.state.mark_not_ready()
        logger.critical(
            "Scheduling process restart in %.0fs reason=%s exit_code=%d",
            action.delay,
            action.reason,
            action.exit_code,
        )
        return self._scheduler.call_later(
            action.delay, lambda: self._exit_fn(action.exit_code)
        )

    async def _reinitialize(self) -> None:
        if self.state.restart_pending:
            return
        logger.info("Re-initializing session")
        try:
            await self._transport.initialize()
        except Exception:
            logger.exception("Session re-initialize failed")

    def describe(self) -> dict:
        """Snapshot used for diagnostics and the status endpoint."""
        now = self._clock()
        return {
            "phase": self.state.phase.value,
            "ready": self.state.ready,
            "last_activity_at": _iso(self.state.last_activity_at),
            "idle_seconds": self.state.idle_for(now),
        }
