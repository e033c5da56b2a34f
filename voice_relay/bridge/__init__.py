"""HTTP bridge to the messaging-client sidecar.

WHY: The messaging client runs as a separate process. This package is the
bot's side of that link: a SessionTransport over REST (client.py) and a
FastAPI webhook receiver plus health endpoint (server.py).

RULES:
- Requests to the sidecar go through BridgeTransport only
- Events from the sidecar arrive at POST /events only
"""

from voice_relay.bridge.client import BridgeMessage, BridgeTransport
from voice_relay.bridge.server import create_app

__all__ = ["BridgeMessage", "BridgeTransport", "create_app"]
