# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Runtime - wires the shared services together.

A runtime owns one registry, one message bus, one human queue and one session
store, registers the primitive and universal tools, and loads the agent
definition documents found in its objects directory.
"""
import asyncio
import logging

from pathlib import Path
from typing import Any

from ..agents.agent import Agent
from ..agents.loader import load_definition, load_directory
from ..capabilities.base import Capability, Context
from ..capabilities.registry import Registry
from ..config import Settings, settings as default_settings
from ..errors import NotFoundError
from ..events.message_bus import MessageBus
from ..human.human_queue import HumanQueue
from ..llm.factory import create_provider
from ..llm.providers.base_provider import BaseProvider
from ..storage.session_store import MEMORY, SessionStore
from ..tools import primitive_tools, universal_tools
from ..tools.base_tool import BaseTool
from ..types.agent_types import AgentDefinition

logger = logging.getLogger(__name__)


class Runtime:
    """The environment every capability reaches through its Context."""

    def __init__(
        self,
        settings: Settings | None = None,
        llm: BaseProvider | None = None,
        session_store: SessionStore | None = None,
        objects_dir: Path | str | None = None,
    ):
        self.settings = settings or default_settings

        self._owns_store = session_store is None
        self.session_store = session_store or SessionStore(
            self.settings.SESSION_DB or MEMORY
        )
        self.bus = MessageBus(
            capacity=self.settings.BUS_CAPACITY, session_store=self.session_store
        )
        self.human_queue = HumanQueue()
        self.registry = Registry()

        self.llm = llm or create_provider(
            self.settings.LLM_PROVIDER,
            model=self.settings.LLM_MODEL,
            timeout=self.settings.HTTP_TIMEOUT,
        )

        for tool_cls in primitive_tools + universal_tools:
            self.registry.register(tool_cls.as_capability())

        objects_dir = objects_dir or self.settings.OBJECTS_DIR
        self.objects_dir = Path(objects_dir) if objects_dir else None
        if self.objects_dir is not None and self.objects_dir.is_dir():
            self.load_agents(self.objects_dir)

    def context(
        self, calling_agent: str | None = None, session_id: str | None = None
    ) -> Context:
        return Context(env=self, calling_agent=calling_agent, session_id=session_id)

    # Agents -------------------------------------------------------------------

    def add_agent(self, definition: AgentDefinition) -> Agent:
        agent = Agent(
            definition,
            llm=self.llm,
            session_store=self.session_store,
            max_iterations=self.settings.MAX_ITERATIONS,
            delegation_timeout=self.settings.DELEGATION_TIMEOUT,
        )
        self.registry.register(agent)
        logger.info(f"Registered agent {agent.name}")
        return agent

    def load_agent(self, path: Path | str) -> Agent:
        return self.add_agent(load_definition(path))

    def load_agents(self, directory: Path | str) -> list[Agent]:
        return [self.add_agent(d) for d in load_directory(directory)]

    def agent(self, name: str) -> Agent:
        """The registered agent with this name; raises NotFoundError otherwise."""
        capability = self.registry.get(name)
        if capability is None or capability.KIND != "agent":
            raise NotFoundError("agent", name)
        return capability

    # Tools --------------------------------------------------------------------

    def register_tool(self, tool_cls: type[BaseTool]) -> Capability:
        """Register a host-provided tool class as a custom primitive."""
        capability = self.registry.register(tool_cls.as_capability())
        logger.info(f"Registered {capability.KIND} {capability.name}")
        return capability

    # Sending ------------------------------------------------------------------

    def send(self, name: str, message: Any) -> str:
        """Deliver a human message to a capability and return its reply."""
        capability = self.registry.resolve(name)
        return capability.receive(message, self.context())

    async def asend(self, name: str, message: Any) -> str:
        """Run ``send`` in a worker thread so the event loop stays responsive."""
        return await asyncio.to_thread(self.send, name, message)

    # Lifecycle ----------------------------------------------------------------

    def close(self) -> None:
        self.human_queue.close()
        if self._owns_store:
            self.session_store.close()

    def __enter__(self) -> "Runtime":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
