"""Voice Relay — transcribe inbound voice notes and relay the text.

WHY: Voice notes are slow to listen to and impossible to search. This bot
attaches to one messaging session, sends every inbound voice note to
OpenAI Whisper, and forwards the transcript to one configured recipient.
A health supervisor keeps the long-lived session alive, restarting the
process when it cannot recover in place.

HOW: Four parts — a session transport (bridge sidecar over HTTP), the
message path (classify, transcribe, relay), the Whisper API client, and the
health supervisor driven by a recurring timer. All run on one asyncio loop.

RULES:
- Transcripts go to the configured recipient, never back to the sender
- Only the supervisor decides to restart the process
- Exit code 1 means "relaunch me"; the process manager is external
"""

__version__ = "0.1.0"
