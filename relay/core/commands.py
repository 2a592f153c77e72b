"""Command parsing for agent-network tasks.

Tasks arrive as opaque strings like ``"ask what is a black hole"``. The first
whitespace-delimited word is the verb (case-folded); the rest is the argument.
Only ``ask``, ``explain`` and ``help`` are verbs — anything else means the
whole task is a question.

Pure functions, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass

ASK = "ask"
EXPLAIN = "explain"
HELP = "help"

KNOWN_VERBS: frozenset[str] = frozenset({ASK, EXPLAIN, HELP})

NO_COMMAND_TEXT = "Please provide a command. Available commands: ask, explain, help"
ASK_USAGE_TEXT = "Please provide a question. Usage: ask [your question]"
EXPLAIN_USAGE_TEXT = "Please provide a concept to explain. Usage: explain [concept]"

HELP_TEXT = (
    "🤖 Layla - AI Assistant\n\n"
    "Available commands:\n"
    "• ask [question] - Ask me anything\n"
    "• explain [concept] - Get detailed explanation of a concept\n"
    "• help - Show this help message\n\n"
    "Example: ask what is the meaning of life"
)


@dataclass(frozen=True)
class Command:
    """A parsed task: the case-folded verb and the remaining words."""

    verb: str
    argument: str = ""

    @property
    def is_known(self) -> bool:
        return self.verb in KNOWN_VERBS


def parse_command(task: str) -> Command | None:
    """Split a task into a Command.

    Args:
        task: Raw task text.

    Returns:
        The Command, or None when the task is empty or whitespace-only.
    """
    parts = task.split()
    if not parts:
        return None
    return Command(verb=parts[0].casefold(), argument=" ".join(parts[1:]))
