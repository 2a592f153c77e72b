"""Query dispatcher — the single path from a question to the generation API.

Both inbound adapters (chat and agent network) hand their questions here.
The dispatcher:
  1. waits on the shared RateLimiter (may suspend),
  2. builds the prompt: system preamble, a blank line, then "User: <question>",
  3. calls the model through pydantic-ai's direct request API under a deadline,
  4. returns the first text part of the response.

Outcomes:
  - text                    → returned as-is
  - content-safety block    → SAFETY_REFUSAL (a normal result, not an error)
  - failure / timeout /
    no candidates / no parts → GenerationError

Architecture decisions reflected here:
  - The dispatcher is stateless apart from its collaborators. The rate limiter
    is injected so both adapters share one instance.
  - The model object is built once at startup (build_model) with the API key
    from settings; nothing here reads the environment.
  - The deadline covers only the upstream call, not the time spent queued on
    the rate limiter.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import logfire
from pydantic_ai.direct import model_request  # re-exported for easy mocking in tests
from pydantic_ai.exceptions import ContentFilterError, UnexpectedModelBehavior
from pydantic_ai.messages import ModelRequest, ModelResponse, TextPart
from pydantic_ai.models.google import GoogleModel, GoogleModelSettings
from pydantic_ai.providers.google import GoogleProvider

if TYPE_CHECKING:
    from pydantic_ai.models import Model

    from relay.config import RelaySettings
    from relay.core.ratelimit import RateLimiter

logger = logging.getLogger(__name__)

# logfire.configure() is called once in relay/__main__.py.
logfire.instrument_pydantic_ai()

DEFAULT_TIMEOUT_SECONDS: float = 30.0

SAFETY_REFUSAL = (
    "I apologize, but I cannot provide a response to that query due to content safety filters."
)

_SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
)

# Provider error messages that mean "blocked by policy" rather than "broken".
# Matched against the message only: the response body always carries safety_ratings.
_SAFETY_MARKERS = ("content filter", "safety")


class GenerationError(Exception):
    """Raised when the generation API fails or returns nothing usable."""


def default_model_settings() -> GoogleModelSettings:
    """Sampling and safety settings applied to every request."""
    return GoogleModelSettings(
        temperature=0.7,
        max_tokens=1000,
        google_safety_settings=[
            {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
            for category in _SAFETY_CATEGORIES
        ],
    )


def build_model(settings: RelaySettings) -> Model:
    """Build the Gemini model with the configured API key."""
    provider = GoogleProvider(api_key=settings.generation_api_key.get_secret_value())
    return GoogleModel(settings.llm_model, provider=provider)


def build_prompt(system_prompt: str, question: str) -> str:
    return f"{system_prompt}\n\nUser: {question}"


def _is_safety_block(exc: UnexpectedModelBehavior) -> bool:
    if isinstance(exc, ContentFilterError):
        return True
    text = exc.message.lower()
    return any(marker in text for marker in _SAFETY_MARKERS)


def extract_text(response: ModelResponse) -> str:
    """Return the first text part of a model response.

    Raises:
        GenerationError: If the response carries no text parts and was not
            blocked by the provider's content filter.
    """
    for part in response.parts:
        if isinstance(part, TextPart):
            return part.content
    if response.finish_reason == "content_filter":
        return SAFETY_REFUSAL
    raise GenerationError("no response from model")


class QueryDispatcher:
    """Rate-limited gateway to the generation API.

    Args:
        model: A pydantic-ai Model (GoogleModel in production, any Model in tests).
        rate_limiter: Shared limiter; ``wait()`` is awaited before every call.
        system_prompt: Preamble placed before each question.
        timeout_seconds: Deadline for a single upstream call.
        model_settings: Overrides for default_model_settings().
    """

    def __init__(
        self,
        model: Model,
        rate_limiter: RateLimiter,
        *,
        system_prompt: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        model_settings: GoogleModelSettings | None = None,
    ) -> None:
        self.model = model
        self.rate_limiter = rate_limiter
        self.system_prompt = system_prompt
        self.timeout_seconds = timeout_seconds
        self.model_settings = model_settings if model_settings is not None else default_model_settings()

    async def ask(self, question: str, *, timeout: float | None = None) -> str:
        """Send one question to the model and return the answer text.

        Args:
            question: The user's question, already stripped of commands/mentions.
            timeout: Per-call deadline in seconds. Defaults to ``timeout_seconds``.

        Returns:
            The generated text, or SAFETY_REFUSAL when the provider blocks it.

        Raises:
            GenerationError: On upstream failure, deadline expiry, or empty output.
        """
        deadline = self.timeout_seconds if timeout is None else timeout

        await self.rate_limiter.wait()

        prompt = build_prompt(self.system_prompt, question)
        with logfire.span("dispatcher.ask", question_len=len(question), timeout=deadline):
            try:
                response = await asyncio.wait_for(
                    model_request(
                        self.model,
                        [ModelRequest.user_text_prompt(prompt)],
                        model_settings=self.model_settings,
                    ),
                    timeout=deadline,
                )
            except TimeoutError as exc:
                logger.warning("Generation call exceeded %.1fs deadline", deadline)
                raise GenerationError(f"request timed out after {deadline:g}s") from exc
            except UnexpectedModelBehavior as exc:
                if _is_safety_block(exc):
                    logfire.info("Generation blocked by content filter")
                    return SAFETY_REFUSAL
                raise GenerationError(f"no response from model: {exc.message}") from exc
            except Exception as exc:  # noqa: BLE001
                logger.exception("Generation call failed")
                raise GenerationError(str(exc) or type(exc).__name__) from exc

            return extract_text(response)
