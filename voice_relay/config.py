"""Configuration constants, supervisor timings, and .env loading.

WHY: Centralizes every configurable value so the bot's recovery behaviour
and endpoints are easy to find and override. The supervisor thresholds are
plain module constants, not buried in logic, so operators can tune them
without touching the state machine.

HOW: python-dotenv loads the .env file on import. Optional settings are read
with os.getenv and a default. The two required settings (API key and
recipient) are validated by load_settings(), which raises ConfigError with a
hint on what to add to .env.

RULES:
- OPENAI_API_KEY and MY_PHONE_NUMBER are required, never defaulted
- Missing required settings raise ConfigError before any session starts
- Timing constants are in seconds
- All optional defaults can be overridden via environment variables
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load .env from the project root (where the bot is started from)
load_dotenv()


class ConfigError(ValueError):
    """Raised when a required setting is missing or empty."""


# ---------------------------------------------------------------------------
# Transcription endpoint
# ---------------------------------------------------------------------------

TRANSCRIPTION_URL = os.getenv(
    "TRANSCRIPTION_URL", "https://api.openai.com/v1/audio/transcriptions"
)
WHISPER_MODEL = os.getenv("WHISPER_MODEL", "whisper-1")
TRANSCRIPTION_TIMEOUT_S = 30.0

# ---------------------------------------------------------------------------
# Session bridge and status server
# ---------------------------------------------------------------------------

BRIDGE_URL = os.getenv("BRIDGE_URL", "http://localhost:3000")
BRIDGE_TOKEN = os.getenv("BRIDGE_TOKEN", "")
BRIDGE_TIMEOUT_S = 30.0
RELAY_HOST = os.getenv("RELAY_HOST", "127.0.0.1")
RELAY_PORT = 8080
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ---------------------------------------------------------------------------
# Supervisor timings (seconds)
# ---------------------------------------------------------------------------

HEALTH_CHECK_INTERVAL_S = 10 * 60
STALE_WARNING_S = 2 * 60 * 60
NOT_READY_RESTART_S = 30 * 60
NOT_READY_RESTART_GRACE_S = 2.0
FATAL_PROBE_RESTART_GRACE_S = 5.0
NAVIGATION_REINIT_DELAY_S = 5.0
DISCONNECT_REINIT_DELAY_S = 10.0
MEDIA_PROCESSING_TIMEOUT_S = 30.0

FATAL_ERROR_SIGNATURES: tuple[str, ...] = ("Session closed", "Protocol error")
"""Probe error substrings that mean the transport cannot recover in-process."""

RESTART_EXIT_CODE = 1


@dataclass
class SupervisorSettings:
    """Timings and fault signatures used by the health supervisor.

    Defaults mirror the module constants; tests override individual fields.
    """

    check_interval_s: float = HEALTH_CHECK_INTERVAL_S
    stale_warning_s: float = STALE_WARNING_S
    not_ready_restart_s: float = NOT_READY_RESTART_S
    not_ready_grace_s: float = NOT_READY_RESTART_GRACE_S
    fatal_probe_grace_s: float = FATAL_PROBE_RESTART_GRACE_S
    navigation_reinit_s: float = NAVIGATION_REINIT_DELAY_S
    disconnect_reinit_s: float = DISCONNECT_REINIT_DELAY_S
    fatal_signatures: tuple[str, ...] = field(
        default_factory=lambda: FATAL_ERROR_SIGNATURES
    )
    restart_exit_code: int = RESTART_EXIT_CODE


@dataclass
class Settings:
    """Resolved runtime configuration for one bot process."""

    api_key: str
    recipient: str
    transcription_url: str = TRANSCRIPTION_URL
    whisper_model: str = WHISPER_MODEL
    bridge_url: str = BRIDGE_URL
    bridge_token: str = BRIDGE_TOKEN
    host: str = RELAY_HOST
    port: int = RELAY_PORT
    media_timeout_s: float = MEDIA_PROCESSING_TIMEOUT_S
    supervisor: SupervisorSettings = field(default_factory=SupervisorSettings)


def _require(name: str, hint: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigError(
            "{} environment variable is required. {}".format(name, hint)
        )
    return value


def _port(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        port = int(raw)
    except ValueError:
        raise ConfigError(
            "{} must be an integer port, got {!r}.".format(name, raw)
        ) from None
    if not 0 < port < 65536:
        raise ConfigError("{} must be between 1 and 65535, got {}.".format(name, port))
    return port


def load_api_key() -> str:
    """Load the OpenAI API key from the environment.

    RULES:
    - Raises ConfigError if the key is missing or empty
    - Never returns a default/placeholder value
    """
    return _require("OPENAI_API_KEY", "Add OPENAI_API_KEY to your .env file.")


def load_recipient() -> str:
    """Load the chat id that receives every transcript."""
    return _require(
        "MY_PHONE_NUMBER",
        "Add MY_PHONE_NUMBER to your .env file (format: 569XXXXXXXX@c.us).",
    )


def load_settings() -> Settings:
    """Build Settings from the environment.

    WHY: The bot must refuse to start without credentials and a recipient;
    failing here keeps the process manager from relaunching a bot that
    could never deliver anything.

    RULES:
    - API key is checked first, then the recipient
    - Raises ConfigError on the first missing required setting
    - Malformed or out-of-range RELAY_PORT raises ConfigError
    """
    return Settings(
        api_key=load_api_key(),
        recipient=load_recipient(),
        transcription_url=os.getenv("TRANSCRIPTION_URL", TRANSCRIPTION_URL),
        whisper_model=os.getenv("WHISPER_MODEL", WHISPER_MODEL),
        bridge_url=os.getenv("BRIDGE_URL", BRIDGE_URL),
        bridge_token=os.getenv("BRIDGE_TOKEN", BRIDGE_TOKEN),
        host=os.getenv("RELAY_HOST", RELAY_HOST),
        port=_port("RELAY_PORT", RELAY_PORT),
    )
