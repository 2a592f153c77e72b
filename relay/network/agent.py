"""uAgents wiring for the agent network.

Registers a chat-protocol handler on a uAgents Agent: every inbound
ChatMessage is acknowledged, its text content is run through the TaskAdapter,
and the answer goes back to the sender as a ChatMessage.

The agent identity comes from AGENT_PRIVATE_KEY (used as the seed), so the
address is stable across restarts.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import uuid4

from uagents import Agent, Context, Protocol
from uagents_core.contrib.protocols.chat import (
    ChatAcknowledgement,
    ChatMessage,
    EndSessionContent,
    TextContent,
    chat_protocol_spec,
)

from relay.network.tasks import TaskError

if TYPE_CHECKING:
    from relay.config import RelaySettings
    from relay.network.tasks import TaskAdapter

logger = logging.getLogger(__name__)


def create_text_chat(text: str, end_session: bool = False) -> ChatMessage:
    content: list = [TextContent(type="text", text=text)]
    if end_session:
        content.append(EndSessionContent(type="end-session"))
    return ChatMessage(timestamp=datetime.now(timezone.utc), msg_id=uuid4(), content=content)


def collect_text(msg: ChatMessage) -> str:
    """Concatenate the text parts of a chat message; other content is ignored."""
    return "".join(c.text for c in msg.content if isinstance(c, TextContent))


async def answer_task(adapter: TaskAdapter, task: str) -> str:
    """Run a task through the adapter, turning TaskError into a reply."""
    try:
        return await adapter.respond(task)
    except TaskError as exc:
        logger.warning("Network task failed: %s", exc)
        return f"❌ {exc}"


async def handle_chat_message(
    ctx: Context, sender: str, msg: ChatMessage, adapter: TaskAdapter
) -> None:
    """Acknowledge, answer and reply to one inbound chat message."""
    await ctx.send(
        sender,
        ChatAcknowledgement(timestamp=datetime.now(timezone.utc), acknowledged_msg_id=msg.msg_id),
    )

    task = collect_text(msg)
    if not task.strip():
        return

    reply = await answer_task(adapter, task)
    await ctx.send(sender, create_text_chat(reply))


def build_chat_protocol(adapter: TaskAdapter) -> Protocol:
    """Return a chat Protocol whose handlers delegate to ``adapter``."""
    chat_proto = Protocol(spec=chat_protocol_spec)

    @chat_proto.on_message(ChatMessage)
    async def on_chat(ctx: Context, sender: str, msg: ChatMessage):
        await handle_chat_message(ctx, sender, msg, adapter)

    @chat_proto.on_message(ChatAcknowledgement)
    async def on_ack(ctx: Context, sender: str, msg: ChatAcknowledgement):
        logger.debug("Ack from %s for %s", sender, msg.acknowledged_msg_id)

    return chat_proto


def build_network_agent(settings: RelaySettings, adapter: TaskAdapter) -> Agent:
    """Create the uAgents Agent and include the chat protocol.

    The caller drives the agent with ``await agent.run_async()``.
    """
    agent = Agent(
        name=settings.agent_name,
        seed=settings.agent_private_key.get_secret_value(),
        port=settings.agent_port,
        mailbox=settings.agent_mailbox,
    )
    agent.include(build_chat_protocol(adapter), publish_manifest=True)
    return agent
