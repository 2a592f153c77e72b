"""Layla relay configuration — centralized environment variable management.

All runtime configuration comes from environment variables (or a .env file in
development). This module is the single place where those variables are
declared, validated, and typed.

No module should call os.environ directly — import settings from here instead.

Usage:
    from relay.config import get_settings

    settings = get_settings()
    rpm = settings.requests_per_minute

Environment variables:

  Required:
    CHAT_TOKEN            — Telegram Bot API token for the chat adapter.
    GENERATION_API_KEY    — Google Gemini API key used by the query dispatcher.
    AGENT_PRIVATE_KEY     — Seed for the uAgents identity on the agent network.

  Optional:
    AGENT_OWNER_ADDRESS   — Owner address advertised for the network agent.
                            If unset, the address derived from the key is used.
    AGENT_TOKEN_ID        — Numeric token id of the registered agent.
    SYSTEM_PROMPT         — Preamble prepended to every question.
    LLM_MODEL             — Gemini model name. Default: "gemini-2.5-flash".
    REQUESTS_PER_MINUTE   — Outbound generation budget. Default: 8.
    GENERATION_TIMEOUT_SECONDS — Per-call deadline. Default: 30.
    MAX_MESSAGE_LENGTH    — Chat chunk limit. Default: 2000.
    COMMAND_PREFIX        — Chat prefix that activates the bot. Default: "!ask".
    AGENT_NAME / AGENT_PORT / AGENT_MAILBOX — uAgents runtime options.
    LOGFIRE_TOKEN         — Logfire project token. If unset, logfire runs locally.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = (
    "You are Layla, a helpful AI assistant in a chat server. Be friendly, concise, "
    "and helpful. Answer questions accurately and engage naturally with users."
)


class ConfigError(Exception):
    """Raised when startup configuration is missing or invalid."""


class RelaySettings(BaseSettings):
    """Centralized configuration for the Layla relay.

    Field names map to env vars by uppercasing: chat_token → CHAT_TOKEN.

    Instantiate via get_settings() to benefit from caching and to get a
    ConfigError instead of a raw pydantic ValidationError.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Credentials ─────────────────────────────────────────────────────────

    chat_token: SecretStr
    """Telegram Bot API token. SecretStr prevents accidental logging."""

    generation_api_key: SecretStr
    """Gemini API key, handed to the Google provider explicitly."""

    agent_private_key: SecretStr
    """Seed for the network agent. The agent address is derived from it."""

    # ── Agent network ────────────────────────────────────────────────────────

    agent_owner_address: str | None = None
    agent_token_id: int | None = None
    agent_name: str = "Layla"
    agent_port: int = Field(default=8000, gt=0, lt=65536)
    agent_mailbox: bool = True

    # ── Generation ───────────────────────────────────────────────────────────

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    llm_model: str = "gemini-2.5-flash"

    requests_per_minute: int = Field(default=8, gt=0)
    """Outbound budget. 8 RPM stays inside the free-tier 10 RPM limit."""

    generation_timeout_seconds: float = Field(default=30.0, gt=0)

    # ── Chat ─────────────────────────────────────────────────────────────────

    max_message_length: int = Field(default=2000, gt=0)
    command_prefix: str = "!ask"

    # ── Observability ────────────────────────────────────────────────────────

    logfire_token: SecretStr | None = None

    # ── Validators ───────────────────────────────────────────────────────────

    @field_validator(
        "agent_owner_address", "agent_token_id", "logfire_token", mode="before"
    )
    @classmethod
    def empty_as_unset(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("system_prompt", mode="before")
    @classmethod
    def default_system_prompt(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return DEFAULT_SYSTEM_PROMPT
        return v


def describe_validation_error(exc: ValidationError) -> str:
    """Turn a settings ValidationError into one readable line per problem."""
    problems: list[str] = []
    for error in exc.errors():
        name = str(error["loc"][0]).upper() if error["loc"] else "<settings>"
        if error["type"] == "missing":
            problems.append(f"Required environment variable {name} is not set")
        else:
            problems.append(f"Invalid value for {name}: {error['msg']}")
    return "; ".join(problems)


@lru_cache(maxsize=1)
def get_settings() -> RelaySettings:
    """Return the cached RelaySettings instance.

    Reads from environment on first call, then caches for the process lifetime.
    Call clear_settings_cache() in tests to reset between test cases.

    Raises:
        ConfigError: If a required variable is missing or a value is invalid.
    """
    try:
        return RelaySettings()  # pyright: ignore[reportCallIssue]  — BaseSettings reads from env
    except ValidationError as exc:
        raise ConfigError(describe_validation_error(exc)) from exc


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() re-reads the env."""
    get_settings.cache_clear()
