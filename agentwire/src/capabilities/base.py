# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The uniform capability contract shared by primitive tools and agents.

From the model's perspective an agent and a tool are indistinguishable
entries in the same capability list; both are reached through
``receive(message, context)``.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar
from dataclasses import dataclass, replace

from ..types.llm_types import ToolSchema

if TYPE_CHECKING:
    from ..runtime.environment import Runtime
    from ..events.message_bus import MessageBus
    from ..human.human_queue import HumanQueue
    from ..storage.session_store import SessionStore
    from .registry import Registry


@dataclass(frozen=True)
class Context:
    """The only channel through which a capability reaches the rest of the system.

    ``calling_agent`` is None for calls that originate from a human (or any
    other external transport); ``session_id`` is the caller's active session.
    """

    env: "Runtime"
    calling_agent: str | None = None
    current_capability: str | None = None
    session_id: str | None = None

    @property
    def registry(self) -> "Registry":
        return self.env.registry

    @property
    def bus(self) -> "MessageBus":
        return self.env.bus

    @property
    def human_queue(self) -> "HumanQueue":
        return self.env.human_queue

    @property
    def session_store(self) -> "SessionStore | None":
        return self.env.session_store

    def for_call(
        self, calling_agent: str, capability: str, session_id: str | None
    ) -> "Context":
        return replace(
            self,
            calling_agent=calling_agent,
            current_capability=capability,
            session_id=session_id,
        )


class Capability(ABC):
    """Anything that can be named in an agent's capability list."""

    KIND: ClassVar[str] = "capability"

    name: str
    description: str

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    @abstractmethod
    def receive(self, message: Any, context: Context) -> str:
        """Handle one invocation and return its textual result."""
        pass

    def descriptor(self) -> ToolSchema:
        return ToolSchema(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
