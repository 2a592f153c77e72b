"""Telegram message handlers for the Layla relay chat layer.

Responsibilities:
  - Turn a Telegram Update into a ChatMessageEvent (author, text, mentions, chat)
  - Decide whether the bot is being addressed (mention or command prefix)
  - Dispatch the question through the shared QueryDispatcher
  - Split long answers into transport-sized chunks and send them in order
  - Handle errors gracefully — users never see raw tracebacks

Architecture decisions reflected here:
  - The ChatAdapter is created once at startup and kept in
    ``application.bot_data["chat_adapter"]``. It holds the dispatcher, which
    holds the process-wide rate limiter — no module-level singletons.
  - Address detection and question extraction are pure functions of the
    event, so they are tested without any Telegram objects.
  - The handler is the boundary between Telegram and the dispatcher — it owns
    error handling. Generation failures become a chat message; delivery
    failures are logged and the rest of that reply is dropped (no retries).
  - A typing action is sent before dispatch so the user sees immediate feedback,
    even while the question is queued behind the rate limiter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from telegram import MessageEntity
from telegram.constants import ChatAction
from telegram.error import TelegramError

from relay.core.adapter import InboundAdapter
from relay.core.chunking import DEFAULT_MAX_MESSAGE_LEN, split_message
from relay.core.dispatcher import GenerationError

if TYPE_CHECKING:
    from telegram import Bot, Update
    from telegram.ext import Application, ContextTypes

    from relay.core.dispatcher import QueryDispatcher

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_PREFIX = "!ask"

ERROR_TEMPLATE = "❌ Sorry, I encountered an error: {error}"


class TransportError(Exception):
    """Raised when a chat message cannot be delivered."""


def greeting_text(command_prefix: str = DEFAULT_COMMAND_PREFIX) -> str:
    return (
        "👋 Hi! I'm Layla, your AI assistant! "
        f"Ask me anything or use `{command_prefix} <your question>`"
    )


def chat_help_text(command_prefix: str = DEFAULT_COMMAND_PREFIX) -> str:
    """Usage text for the /help command."""
    return (
        "🤖 Layla - AI Assistant\n\n"
        "Ways to ask me something:\n"
        f"• {command_prefix} [question] - Ask me anything\n"
        "• Mention me with your question\n"
        "• /help - Show this help message\n\n"
        f"Example: {command_prefix} what is the meaning of life"
    )


# ── Events ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ChatMessageEvent:
    """A chat message as the relay sees it.

    ``mentions`` holds only the tokens in ``text`` that address this bot
    (``@username`` mentions, or the display text of a text_mention).
    """

    author_id: int | None
    author_is_bot: bool
    from_self: bool
    text: str
    mentions: tuple[str, ...]
    channel_id: int


def _bot_mentions(message, bot: Bot) -> list[str]:
    tokens: list[str] = []
    username = (bot.username or "").casefold()
    entities = message.parse_entities([MessageEntity.MENTION, MessageEntity.TEXT_MENTION])
    for entity, token in entities.items():
        if entity.type == MessageEntity.MENTION:
            if username and token.lstrip("@").casefold() == username:
                tokens.append(token)
        elif entity.user is not None and entity.user.id == bot.id:
            tokens.append(token)
    return tokens


def event_from_update(update: Update, bot: Bot) -> ChatMessageEvent | None:
    """Build a ChatMessageEvent from a Telegram update.

    Returns None for updates without a text message or chat (stickers, photos,
    channel posts with no chat, etc.).
    """
    message = update.effective_message
    chat = update.effective_chat
    if message is None or chat is None or not message.text:
        return None

    user = update.effective_user
    return ChatMessageEvent(
        author_id=user.id if user is not None else None,
        author_is_bot=bool(user is not None and user.is_bot),
        from_self=bool(user is not None and user.id == bot.id),
        text=message.text,
        mentions=tuple(_bot_mentions(message, bot)),
        channel_id=chat.id,
    )


# ── Adapter ───────────────────────────────────────────────────────────────────


class ChatAdapter(InboundAdapter):
    """Chat-side adapter: address detection, dispatch, chunking.

    Args:
        dispatcher: Shared QueryDispatcher.
        command_prefix: Text prefix that activates the bot without a mention.
        max_message_length: Chunk limit for outbound messages.
    """

    def __init__(
        self,
        dispatcher: QueryDispatcher,
        *,
        command_prefix: str = DEFAULT_COMMAND_PREFIX,
        max_message_length: int = DEFAULT_MAX_MESSAGE_LEN,
    ) -> None:
        super().__init__(dispatcher)
        self.command_prefix = command_prefix
        self.max_message_length = max_message_length

    @property
    def greeting(self) -> str:
        return greeting_text(self.command_prefix)

    @property
    def help_text(self) -> str:
        return chat_help_text(self.command_prefix)

    def extract_question(self, event: ChatMessageEvent) -> str | None:
        """Return the question addressed to the bot.

        Returns:
            None if the message should be ignored entirely (own or bot-authored,
            or not addressed to us); otherwise the question with the prefix and
            mention tokens removed — possibly the empty string.
        """
        if event.from_self or event.author_is_bot:
            return None

        has_prefix = event.text.startswith(self.command_prefix)
        if not event.mentions and not has_prefix:
            return None

        content = event.text
        if has_prefix:
            content = content[len(self.command_prefix) :]
        content = content.strip()
        for token in event.mentions:
            content = content.replace(token, "")
        return content.strip()

    async def respond(self, text: str) -> str:
        return await self.dispatcher.ask(text)

    async def reply_chunks(self, question: str) -> list[str]:
        """Ask the dispatcher and return the messages to send, in order.

        Generation failures become a single error message; they never propagate.
        """
        try:
            answer = await self.respond(question)
        except GenerationError as exc:
            logger.warning("Generation failed for chat question: %s", exc)
            return [ERROR_TEMPLATE.format(error=exc)[: self.max_message_length]]
        return split_message(answer, self.max_message_length)


def get_chat_adapter(application: Application) -> ChatAdapter:
    """Return the ChatAdapter registered by build_application()."""
    adapter = application.bot_data.get("chat_adapter")
    if adapter is None:
        raise RuntimeError("No chat_adapter in bot_data — use build_application()")
    return adapter


# ── Delivery ──────────────────────────────────────────────────────────────────


async def send_chunks(bot: Bot, chat_id: int, chunks: list[str]) -> None:
    """Send chunks to a chat in order.

    Raises:
        TransportError: On the first chunk Telegram refuses. Later chunks are
            not sent.
    """
    for index, chunk in enumerate(chunks):
        try:
            await bot.send_message(chat_id=chat_id, text=chunk)
        except TelegramError as exc:
            raise TransportError(
                f"failed to deliver chunk {index + 1}/{len(chunks)} to chat {chat_id}: {exc}"
            ) from exc


# ── Handlers ──────────────────────────────────────────────────────────────────


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle an incoming text message.

    Flow:
      1. Build the event; ignore non-text updates.
      2. Ignore own/bot messages and messages not addressed to the bot.
      3. Empty question → greeting, no dispatch.
      4. Send a typing action, dispatch, chunk, send in order.
      5. Delivery failures are logged — never propagated to PTB.
    """
    event = event_from_update(update, context.bot)
    if event is None:
        return

    adapter = get_chat_adapter(context.application)
    question = adapter.extract_question(event)
    if question is None:
        return

    try:
        if not question:
            await send_chunks(context.bot, event.channel_id, [adapter.greeting])
            return

        try:
            await context.bot.send_chat_action(chat_id=event.channel_id, action=ChatAction.TYPING)
        except TelegramError:
            logger.warning("Could not send typing action to chat %s", event.channel_id)

        chunks = await adapter.reply_chunks(question)
        await send_chunks(context.bot, event.channel_id, chunks)
    except TransportError:
        logger.exception("Reply delivery failed for chat %s", event.channel_id)


async def handle_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle the /start command with the greeting. Does not dispatch."""
    if update.effective_message is None:
        raise ValueError("handle_start called on an update with no effective_message")
    await update.effective_message.reply_text(get_chat_adapter(context.application).greeting)


async def handle_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle the /help command with the chat usage text."""
    if update.effective_message is None:
        raise ValueError("handle_help called on an update with no effective_message")
    await update.effective_message.reply_text(get_chat_adapter(context.application).help_text)
