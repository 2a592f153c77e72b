"""Layla relay core — rate limiting, command parsing, chunking, dispatch.

Public API:
  RateLimiter      — fixed-interval limiter shared by all inbound adapters
  parse_command    — split a task into a Command (verb + argument)
  split_message    — split a long reply into transport-sized chunks
  QueryDispatcher  — rate-limited gateway to the generation API
  InboundAdapter   — shared interface for the chat and agent-network adapters
"""

from relay.core.adapter import InboundAdapter
from relay.core.chunking import DEFAULT_MAX_MESSAGE_LEN, split_message
from relay.core.commands import Command, parse_command
from relay.core.dispatcher import SAFETY_REFUSAL, GenerationError, QueryDispatcher
from relay.core.ratelimit import RateLimiter

__all__ = [
    "DEFAULT_MAX_MESSAGE_LEN",
    "SAFETY_REFUSAL",
    "Command",
    "GenerationError",
    "InboundAdapter",
    "QueryDispatcher",
    "RateLimiter",
    "parse_command",
    "split_message",
]
