"""Telegram bot application factory for the Layla relay.

This module provides build_application() — the single function responsible for
constructing a fully-wired python-telegram-bot Application instance.

Responsibilities:
  - Accept a bot token and a ChatAdapter and return a ready-to-run Application
  - Register all message and command handlers
  - Keep configuration concerns out of the handler layer

Usage (from __main__.py):
    from relay.chat.bot import build_application

    app = build_application(settings.chat_token.get_secret_value(), adapter)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from telegram.ext import (
    Application,
    ApplicationBuilder,
    CommandHandler,
    MessageHandler,
    filters,
)

from relay.chat.handlers import handle_help, handle_message, handle_start

if TYPE_CHECKING:
    from telegram.ext import ContextTypes

    from relay.chat.handlers import ChatAdapter

logger = logging.getLogger(__name__)


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Last-resort error handler — log and keep polling."""
    logger.error("Unhandled error while processing update %r", update, exc_info=context.error)


def build_application(token: str, adapter: ChatAdapter) -> Application:
    """Build and return a configured Telegram Application.

    Registers:
      - /start  → handle_start  (greeting)
      - /help   → handle_help   (usage guide)
      - Text messages (non-command) → handle_message (mention / prefix dispatch)

    Command handlers are registered before the catch-all message handler so
    PTB's handler priority (group 0, first match) routes /start and /help
    correctly without them reaching handle_message.

    Args:
        token: Telegram Bot API token (from RelaySettings.chat_token).
        adapter: The ChatAdapter shared by every message handler invocation.

    Returns:
        A fully configured Application. The caller drives its lifecycle.
    """
    application: Application = ApplicationBuilder().token(token).build()
    application.bot_data["chat_adapter"] = adapter

    application.add_handler(CommandHandler("start", handle_start))
    application.add_handler(CommandHandler("help", handle_help))

    # "!ask ..." is not a Telegram command, so it reaches this handler too.
    application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message))

    application.add_error_handler(handle_error)

    return application
