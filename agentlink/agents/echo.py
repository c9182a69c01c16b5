"""Simple agent implementation used for demonstrations and tests."""
from __future__ import annotations

from typing import Any, Dict

from agentlink.agents.base import Agent
from agentlink.core.models import A2AMessage, A2ATask


class EchoAgent(Agent):
    """Agent that echoes requests and reports delegated tasks back verbatim."""

    async def handle_request(self, message: A2AMessage) -> str:
        self.task_count += 1
        return f"{self.name} heard {message.content}"

    async def execute_task(self, task: A2ATask) -> Dict[str, Any]:
        self.task_count += 1
        return {
            "echo": task.description,
            "parameters": dict(task.parameters),
            "agent_name": self.name,
        }
