"""Split long replies into transport-sized chunks.

Splitting strategy:
  1. If the text fits in one message, return it as-is.
  2. Otherwise, look backward from the limit (at most 200 characters) for a
     newline or space and cut just before it. The boundary character starts
     the next chunk, so joining the chunks gives back the original text.
  3. If no boundary is in that window, hard-split at the limit.
"""

from __future__ import annotations

# The chat transport rejects messages longer than this.
DEFAULT_MAX_MESSAGE_LEN: int = 2000

# How far back from the limit to look for a clean break.
BOUNDARY_WINDOW: int = 200

_BOUNDARY_CHARS = ("\n", " ")


def _find_split(text: str, max_len: int) -> int:
    for i in range(max_len - 1, max(max_len - BOUNDARY_WINDOW, 0), -1):
        if text[i] in _BOUNDARY_CHARS:
            return i
    return max_len


def split_message(text: str, max_len: int = DEFAULT_MAX_MESSAGE_LEN) -> list[str]:
    """Split ``text`` into chunks of at most ``max_len`` characters.

    Empty string is returned as a single-element list so the caller always
    has at least one chunk to send.

    Args:
        text: The full reply.
        max_len: Per-chunk limit. Must be positive.

    Returns:
        Ordered chunks whose concatenation equals ``text``.

    Raises:
        ValueError: If max_len is not positive.
    """
    if max_len <= 0:
        raise ValueError(f"max_len must be positive, got {max_len}")

    if len(text) <= max_len:
        return [text]

    chunks: list[str] = []
    remaining = text
    while len(remaining) > max_len:
        split_at = _find_split(remaining, max_len)
        chunks.append(remaining[:split_at])
        remaining = remaining[split_at:]

    if remaining:
        chunks.append(remaining)
    return chunks
