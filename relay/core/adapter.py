"""Shared interface for inbound adapters.

The chat adapter and the agent-network adapter both turn inbound text into
an answer by way of the same QueryDispatcher. Transport glue (Telegram
handlers, the uAgents protocol) owns delivery; adapters own the decision of
what to ask and what to say back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from relay.core.dispatcher import QueryDispatcher


class InboundAdapter(ABC):
    """Handle an inbound question and produce a textual answer or raise."""

    def __init__(self, dispatcher: QueryDispatcher) -> None:
        self.dispatcher = dispatcher

    @abstractmethod
    async def respond(self, text: str) -> str:
        """Return the answer for ``text``.

        Implementations raise their own error type when the dispatcher fails.
        """
