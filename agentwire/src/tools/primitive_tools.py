# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Universal tools for discovering and managing primitives.

Built-in primitives ship with the runtime; custom primitives are tool classes
the host registers with ``Runtime.register_tool``. Agents cannot author new
primitive code themselves. They ask the human for one with request_primitive.
"""
import difflib
import logging

from typing import Literal
from pydantic import Field

from .base_tool import BaseTool
from .capability_tools import SELF, _failure, _success, resolve_agent
from .directory_tools import ListFiles
from .file_tools import ReadFile, WriteFile
from .http_tools import HttpGet
from .human_tools import HUMAN
from ..types.agent_types import AGENT_NAME_PATTERN
from ..types.tool_types import ToolOutput

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

BUILTIN_PRIMITIVES = frozenset(t.TOOL_NAME for t in (ReadFile, WriteFile, ListFiles, HttpGet))

APPROVE = {"approve", "approved", "yes", "y"}
REJECT = {"reject", "rejected", "no", "n"}


def _format(primitives) -> list[str]:
    return [f"- **{p.name}**: {p.description.splitlines()[0]}" for p in primitives]


class ListPrimitives(BaseTool):
    TOOL_NAME = "list_primitives"
    TOOL_DESCRIPTION = """List primitives (deterministic tools).

Filter with 'stdlib' (built into the runtime), 'custom' (registered by the
host), 'active' (declared by you) or 'available' (everything, the default)."""

    UNIVERSAL = True

    filter: Literal["available", "active", "stdlib", "custom"] = Field(
        default="available", description="Which primitives to list"
    )

    def run(self) -> ToolOutput:
        primitives = self._context.registry.primitives()
        stdlib = [p for p in primitives if p.name in BUILTIN_PRIMITIVES]
        custom = [p for p in primitives if p.name not in BUILTIN_PRIMITIVES]

        if self.filter == "stdlib":
            return self._titled("Stdlib Primitives (built-in)", stdlib)
        if self.filter == "custom":
            if not custom:
                return _success(
                    self,
                    "No custom primitives found. Ask the human for one with request_primitive.",
                )
            return self._titled("Custom Primitives (environment-specific)", custom)
        if self.filter == "active":
            return self._active(primitives)

        lines = []
        if stdlib:
            lines += ["## Stdlib Primitives (built-in)", *_format(stdlib), ""]
        if custom:
            lines += ["## Custom Primitives (environment-specific)", *_format(custom), ""]
        return _success(self, "\n".join(lines).rstrip() or "No primitives available.")

    def _active(self, primitives):
        agent, error = resolve_agent(self, SELF)
        if error:
            return _failure(self, error)
        declared = set(agent.capabilities)
        active = [p for p in primitives if p.name in declared]
        if not active:
            return _success(
                self,
                f"No primitives currently active on {agent.name}.\n"
                "Use add_primitive to add primitives to your capabilities.",
            )
        return self._titled(f"Active Primitives on {agent.name}", active)

    def _titled(self, title: str, primitives):
        if not primitives:
            return _success(self, f"{title}: (none)")
        return _success(self, "\n".join([f"## {title}", "", *_format(primitives)]))


class AddPrimitive(BaseTool):
    TOOL_NAME = "add_primitive"
    TOOL_DESCRIPTION = """Add a registered primitive to your own capabilities.

Use list_primitives first to see what's available."""

    UNIVERSAL = True

    primitive: str = Field(..., description="Name of the primitive to add, e.g. 'read_file'")

    def run(self) -> ToolOutput:
        agent, error = resolve_agent(self, SELF)
        if error:
            return _failure(self, error)

        registry = self._context.registry
        capability = registry.get(self.primitive)
        if capability is None:
            available = [p.name for p in registry.primitives()]
            close = difflib.get_close_matches(self.primitive, available, n=3, cutoff=0.8)
            if close:
                return _failure(
                    self, f"Primitive '{self.primitive}' not found. Did you mean: {', '.join(close)}?"
                )
            return _failure(
                self,
                f"Primitive '{self.primitive}' not found. "
                f"Available primitives: {', '.join(available) or '(none)'}",
            )
        if capability.KIND == "agent":
            return _failure(
                self,
                f"'{self.primitive}' is not a primitive (it's an agent). Use add_capability for agents.",
            )
        if capability.KIND == "universal":
            return _failure(
                self,
                f"'{self.primitive}' is a universal capability and is already available to all agents.",
            )

        if not agent.add_capability(self.primitive):
            return _success(self, f"You already have the '{self.primitive}' primitive.")
        return _success(self, f"Added '{self.primitive}' to your capabilities. You can now use it.")


class DeletePrimitive(BaseTool):
    TOOL_NAME = "delete_primitive"
    TOOL_DESCRIPTION = """Unregister a custom primitive from the runtime.

This is destructive: no agent can call the primitive afterwards. Use it to
recover from a broken custom primitive. Built-in primitives and universal
capabilities cannot be deleted."""

    UNIVERSAL = True

    primitive: str = Field(..., description="Name of the primitive to delete")
    confirm: bool = Field(
        default=False, description="Must be true to confirm the deletion"
    )

    def run(self) -> ToolOutput:
        if not self.confirm:
            return _failure(
                self,
                "Must set confirm=true to delete a primitive. This is a destructive operation.",
            )
        if self.primitive in BUILTIN_PRIMITIVES:
            return _failure(self, f"Cannot delete built-in primitive '{self.primitive}'.")

        registry = self._context.registry
        capability = registry.get(self.primitive)
        if capability is None:
            return _failure(self, f"Primitive '{self.primitive}' not found")
        if capability.KIND == "universal":
            return _failure(self, f"Cannot delete universal capability '{self.primitive}'.")
        if capability.KIND != "primitive":
            return _failure(self, f"'{self.primitive}' is not a primitive")

        registry.unregister(self.primitive)
        logger.info(f"{self._context.calling_agent} deleted primitive {self.primitive}")
        return _success(self, f"Deleted primitive '{self.primitive}' and removed it from the registry.")


class RequestPrimitive(BaseTool):
    TOOL_NAME = "request_primitive"
    TOOL_DESCRIPTION = """Ask the human for a new primitive.

Use this when you need a tool that doesn't exist. The request waits in the
human queue until the human approves or rejects it. Once the human has
registered an approved primitive it is added to your capabilities."""

    UNIVERSAL = True

    name: str = Field(..., description="Suggested name for the primitive (lowercase, underscores)")
    description: str = Field(..., description="What the primitive should do")
    reason: str = Field(..., description="Why you need the primitive")

    def question(self) -> str:
        return (
            f"**Primitive Request: {self.name}**\n\n"
            f"**Description:** {self.description}\n\n"
            f"**Reason:** {self.reason}"
        )

    def run(self) -> ToolOutput:
        context = self._context
        if not AGENT_NAME_PATTERN.match(self.name):
            return _failure(
                self,
                "Name must be lowercase letters, numbers, and underscores, starting with a letter.",
            )
        if self.name in context.registry:
            return _failure(self, f"A capability named '{self.name}' already exists.")

        asker = context.calling_agent or HUMAN
        context.bus.publish(
            asker,
            HUMAN,
            f"[primitive request] {self.name}: {self.description}",
            session_id=context.session_id,
        )
        answer = context.human_queue.enqueue(asker, self.question(), ["approve", "reject"])
        context.bus.publish(HUMAN, asker, answer, session_id=context.session_id)
        logger.info(f"Human answered primitive request {self.name} from {asker}: {answer}")

        reply = str(answer).strip()
        if reply.lower() in REJECT:
            return _success(self, "Request rejected by human.")
        if reply.lower() not in APPROVE:
            if not reply:
                return _success(self, "Request deferred.")
            return _success(self, f"The human responded: {reply}")

        capability = context.registry.get(self.name)
        if capability is None or capability.KIND != "primitive" or context.calling_agent is None:
            return _success(
                self,
                f"Request approved. The human will provide '{self.name}'; "
                "check list_primitives and add it with add_primitive once it is registered.",
            )
        agent, error = resolve_agent(self, SELF)
        if error:
            return _failure(self, error)
        agent.add_capability(self.name)
        return _success(self, f"Primitive '{self.name}' approved and added to your capabilities.")
