"""Entry point for the Layla relay.

Runs the Telegram bot (long polling) and the uAgents network agent on one
event loop until SIGINT or SIGTERM. Intended to be run as a module:

    python -m relay

or via the installed ``layla-relay`` script.

Configuration is read from environment variables (or a .env file in
development). Missing required variables abort startup with exit code 1.

Logfire tracing is configured here so every dispatch during the process
lifetime is captured under a single service.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import logfire
from telegram import Update

from relay.chat.bot import build_application
from relay.chat.handlers import ChatAdapter
from relay.config import ConfigError, RelaySettings, get_settings
from relay.core.dispatcher import QueryDispatcher, build_model
from relay.core.ratelimit import RateLimiter
from relay.network.agent import build_network_agent
from relay.network.tasks import TaskAdapter

# ── Logging ───────────────────────────────────────────────────────────────────

logging.basicConfig(
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)


# ── Lifecycle ─────────────────────────────────────────────────────────────────


def _log_agent_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Network agent stopped with an error", exc_info=exc)
    else:
        logger.warning("Network agent stopped")


async def serve(settings: RelaySettings) -> None:
    """Wire the components and run until a shutdown signal arrives."""
    rate_limiter = RateLimiter(settings.requests_per_minute)
    dispatcher = QueryDispatcher(
        build_model(settings),
        rate_limiter,
        system_prompt=settings.system_prompt,
        timeout_seconds=settings.generation_timeout_seconds,
    )

    application = build_application(
        settings.chat_token.get_secret_value(),
        ChatAdapter(
            dispatcher,
            command_prefix=settings.command_prefix,
            max_message_length=settings.max_message_length,
        ),
    )
    network_agent = build_network_agent(settings, TaskAdapter(dispatcher))

    if settings.agent_owner_address is None:
        logger.warning(
            "⚠️  AGENT_OWNER_ADDRESS not set - using address derived from key: %s",
            network_agent.address,
        )
    if settings.agent_token_id is None:
        logger.warning("⚠️  AGENT_TOKEN_ID not set - agent network features may be limited")

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with application:
        await application.start()
        # drop_pending_updates: ignore messages queued while the bot was offline.
        await application.updater.start_polling(
            allowed_updates=Update.ALL_TYPES,
            drop_pending_updates=True,
        )
        logger.info("🤖 Layla is running as @%s", application.bot.username)
        logger.info("💬 Usage: mention the bot or use %s <question>", settings.command_prefix)

        agent_task = asyncio.create_task(network_agent.run_async(), name="network-agent")
        agent_task.add_done_callback(_log_agent_exit)
        logger.info("🌐 Network agent starting at %s", network_agent.address)

        try:
            await stop.wait()
        finally:
            logger.info("🛑 Shutting down gracefully...")
            agent_task.cancel()
            await asyncio.gather(agent_task, return_exceptions=True)
            await application.updater.stop()
            await application.stop()


# ── Entrypoint ────────────────────────────────────────────────────────────────


def main() -> None:
    """Load settings, configure tracing, and serve until interrupted."""
    try:
        settings = get_settings()
    except ConfigError as exc:
        logger.critical("❌ %s", exc)
        sys.exit(1)

    # Token is optional; if unset logfire runs in local/dev mode.
    logfire_token = settings.logfire_token
    logfire.configure(
        token=logfire_token.get_secret_value() if logfire_token else None,
        service_name="layla-relay",
    )

    logger.info("Starting Layla relay (model: %s)", settings.llm_model)
    asyncio.run(serve(settings))


if __name__ == "__main__":
    main()
