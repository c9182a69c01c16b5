"""CLI demonstration of discovery and delegation between two agents."""
from __future__ import annotations

import asyncio
import logging

from agentlink.agents.base import AgentDefinition
from agentlink.agents.echo import EchoAgent
from agentlink.config import config
from agentlink.core.event_bus import EventBus
from agentlink.orchestration.integration import A2AIntegration


async def main() -> None:
    integration = A2AIntegration(EventBus())
    alice = EchoAgent(AgentDefinition(id="alice", name="Alice"))
    bob = EchoAgent(AgentDefinition(id="bob", name="Bob", tools=["search"]))
    await integration.initialize([alice, bob])

    capabilities = await alice.a2a.discover_capabilities()
    print(f"Alice sees capabilities: {[cap.id for cap in capabilities]}")

    reply = await alice.a2a.send_message("bob", "Hello agent")
    print(f"Received {reply.type.value} from {reply.sender.id}: {reply.content}")

    result = await alice.a2a.delegate_task("bob", {"description": "find x"})
    print(f"Task {result.task_id} finished as {result.status.value}: {result.result}")

    failed = await alice.a2a.delegate_task("nobody", {"description": "lost"})
    print(f"Task {failed.task_id} finished as {failed.status.value}: {failed.error.message}")

    integration.close()


def run() -> None:
    logging.basicConfig(level=config.log_level)
    asyncio.run(main())


if __name__ == "__main__":
    run()
