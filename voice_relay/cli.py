"""Command-line entry point for the voice relay bot.

WHY: The bot runs under a process manager that relaunches it whenever it
exits non-zero. The CLI is the single place that turns configuration
problems into exit code 1, sets up logging, and starts the event loop.

HOW: build_parser() defines the flags, main() configures logging with
logging.basicConfig, loads Settings (ConfigError -> exit 1), applies flag
overrides, and runs app.run_bot() with asyncio.run().

RULES:
- Missing OPENAI_API_KEY or MY_PHONE_NUMBER -> exit 1 before any session starts
- --check-config validates settings and exits 0 without starting the bot
- Ctrl-C is a clean shutdown (exit 0)
- Supervisor restarts exit with code 1 from inside the running bot
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from voice_relay import __version__
from voice_relay.config import LOG_LEVEL, RELAY_HOST, RELAY_PORT, ConfigError, load_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser (separate from main() for tests)."""
    parser = argparse.ArgumentParser(
        prog="voice_relay",
        description="Transcribe inbound voice notes with Whisper and relay the "
                    "text to a configured recipient.",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Interface for the event webhook server (default: RELAY_HOST or {}).".format(
            RELAY_HOST
        ),
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the event webhook server (default: RELAY_PORT or {}).".format(
            RELAY_PORT
        ),
    )
    parser.add_argument(
        "--log-level",
        default=LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging level (default: %(default)s).",
    )
    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate configuration and exit.",
    )
    parser.add_argument("--version", action="version", version=__version__)
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m voice_relay`` and the voice-relay script.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)

    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    if args.host is not None:
        settings.host = args.host
    if args.port is not None:
        settings.port = args.port

    if args.check_config:
        logger.info("Configuration OK; recipient=%s", settings.recipient)
        return

    from voice_relay.app import run_bot

    logger.info("Voice relay %s starting (Whisper model %s)", __version__, settings.whisper_model)
    try:
        asyncio.run(run_bot(settings, log_level=args.log_level.lower()))
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")


if __name__ == "__main__":
    main()
