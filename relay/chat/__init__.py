"""Layla relay Telegram chat integration layer.

Public API:
  build_application  — construct a fully-wired PTB Application
  ChatAdapter        — address detection, dispatch and chunking for chat messages
  handle_message     — the main message handler (for testing / custom wiring)
  event_from_update  — extract a ChatMessageEvent from a Telegram Update

Typical usage:
    from relay.chat import ChatAdapter, build_application
    app = build_application(token, ChatAdapter(dispatcher))
"""

from relay.chat.bot import build_application
from relay.chat.handlers import (
    ChatAdapter,
    ChatMessageEvent,
    TransportError,
    event_from_update,
    handle_message,
)

__all__ = [
    "ChatAdapter",
    "ChatMessageEvent",
    "TransportError",
    "build_application",
    "event_from_update",
    "handle_message",
]
