"""User-facing chat texts: transcript relay format, replies, and commands.

WHY: Everything the bot writes into a chat lives here so wording (Spanish,
with WhatsApp *bold* / _italic_ markup) can change without touching the
handlers.

RULES:
- format_transcript() output is exactly: *Audio de <name>*\\n\\n_"<text>"_
- COMMANDS maps an exact message body to its reply
"""

from __future__ import annotations

from typing import Dict

EMPTY_TRANSCRIPT_REPLY = "❌ Ups no se pudo traducir"
VOICE_ERROR_REPLY = "❌ Error procesando mensaje de voz"

PING_REPLY = "\U0001f3d3 pong"
HELP_REPLY = (
    "\U0001f4f1 Mandame un audio y te lo paso a texto!\n\n"
    "\U0001f3d3 Comandos:\n"
    "• `!ping` - Pruébame\n"
    "• `!help` - Muestra este mensaje"
)

COMMANDS: Dict[str, str] = {
    "!ping": PING_REPLY,
    "!help": HELP_REPLY,
}


def format_transcript(contact_name: str, transcript: str) -> str:
    """Compose the relay message for one transcribed voice note."""
    return '*Audio de {}*\n\n_"{}"_'.format(contact_name, transcript)
