"""Task adapter for the agent network.

Tasks from the network are plain strings. The adapter parses them with
parse_command() and decides what to do:

  help              → static help text
  ask <question>    → dispatch <question>
  explain <concept> → dispatch <concept>
  ask / explain     → usage text (nothing to dispatch)
  anything else     → dispatch the whole task as a question
  empty             → "please provide a command"

The network transport has no length limit, so answers are returned whole.
Dispatcher failures are wrapped in TaskError with a verb-specific message.
"""

from __future__ import annotations

import logging

from relay.core.adapter import InboundAdapter
from relay.core.commands import (
    ASK,
    ASK_USAGE_TEXT,
    EXPLAIN_USAGE_TEXT,
    HELP,
    HELP_TEXT,
    NO_COMMAND_TEXT,
    parse_command,
)
from relay.core.dispatcher import GenerationError

logger = logging.getLogger(__name__)


class TaskError(Exception):
    """A network task could not be answered."""


class TaskAdapter(InboundAdapter):
    """Agent-network adapter — command parsing in front of the dispatcher."""

    async def respond(self, text: str) -> str:
        """Answer one task.

        Raises:
            TaskError: If the dispatcher fails.
        """
        command = parse_command(text)
        if command is None:
            return NO_COMMAND_TEXT

        if not command.is_known:
            question, failure = text, "failed to process task"
        elif command.verb == HELP:
            return HELP_TEXT
        elif command.verb == ASK:
            if not command.argument:
                return ASK_USAGE_TEXT
            question, failure = command.argument, "failed to process question"
        else:
            if not command.argument:
                return EXPLAIN_USAGE_TEXT
            question, failure = command.argument, "failed to explain concept"

        try:
            return await self.dispatcher.ask(question)
        except GenerationError as exc:
            raise TaskError(f"{failure}: {exc}") from exc
