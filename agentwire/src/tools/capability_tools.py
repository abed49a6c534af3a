# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Universal tools through which agents inspect and extend the registry they
draw from, and edit each other's personas and capability lists.

Every edit to an agent goes through that agent's own methods, and therefore
through its turn lock.
"""
import re
import logging

from typing import Literal
from pydantic import Field

from .base_tool import BaseTool
from ..agents.loader import save_definition
from ..types.agent_types import AGENT_NAME_PATTERN, AgentDefinition
from ..types.tool_types import ToolOutput

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

SELF = "self"


def resolve_agent(tool: BaseTool, target: str):
    """Return (agent, None) or (None, error message)."""
    context = tool._context
    if target == SELF:
        target = context.calling_agent
    if not target:
        return None, "'self' can only be used from inside an agent"

    capability = context.registry.get(target)
    if capability is None:
        return None, f"Agent '{target}' not found"
    if capability.KIND != "agent":
        return None, f"'{target}' is not an agent"
    return capability, None


def _failure(tool: BaseTool, message: str) -> ToolOutput:
    return ToolOutput(tool_name=tool.TOOL_NAME, success=False, errors=message)


def _success(tool: BaseTool, message: str) -> ToolOutput:
    return ToolOutput(tool_name=tool.TOOL_NAME, success=True, output=message)


class CreateCapability(BaseTool):
    TOOL_NAME = "create_capability"
    TOOL_DESCRIPTION = """Create a new LLM-backed agent and register it so it can be called.

The new agent gets its own persona (identity and behavior) and list of
capabilities. Once created, add it to your own capabilities with
add_capability if you want to call it."""

    UNIVERSAL = True

    name: str = Field(
        ..., description="Name for the agent (lowercase letters, digits and underscores)"
    )
    description: str = Field(..., description="Brief description of what the agent does")
    capabilities: list[str] = Field(
        default_factory=list, description="Capabilities the new agent may use"
    )
    identity: str = Field(
        default="You are a helpful assistant.",
        description="Who the agent is: its personality and role",
    )
    behavior: str = Field(
        default="Help the user with their request.",
        description="How the agent should behave",
    )

    def persona(self) -> str:
        title = " ".join(part.capitalize() for part in self.name.split("_"))
        return f"# {title}\n\n## Identity\n\n{self.identity}\n\n## Behavior\n\n{self.behavior}\n"

    def run(self) -> ToolOutput:
        runtime = self._context.env

        if not AGENT_NAME_PATTERN.match(self.name):
            return _failure(
                self,
                "Name must be lowercase letters, numbers, and underscores, starting with a letter.",
            )
        if self.name in runtime.registry:
            return _failure(self, f"A capability named '{self.name}' already exists.")

        unknown = [c for c in self.capabilities if c not in runtime.registry]
        definition = AgentDefinition(
            name=self.name,
            description=self.description,
            capabilities=self.capabilities,
            body=self.persona(),
        )
        if runtime.objects_dir is not None:
            definition.path = runtime.objects_dir / f"{self.name}.md"
            save_definition(definition)

        runtime.add_agent(definition)
        logger.info(f"{self._context.calling_agent} created agent {self.name}")

        return ToolOutput(
            tool_name=self.TOOL_NAME,
            success=True,
            output=(
                f"Created agent '{self.name}' with capabilities: "
                f"{', '.join(self.capabilities) or '(none)'}. It's now available."
            ),
            warnings=f"Unknown capabilities: {', '.join(unknown)}" if unknown else None,
        )


class AddCapability(BaseTool):
    TOOL_NAME = "add_capability"
    TOOL_DESCRIPTION = """Add a registered capability to an agent's declared capabilities.

Use target 'self' to extend your own capabilities."""

    UNIVERSAL = True

    target: str = Field(..., description="Name of the agent to modify, or 'self'")
    capability: str = Field(..., description="Name of the capability to add")

    def run(self) -> ToolOutput:
        agent, error = resolve_agent(self, self.target)
        if error:
            return _failure(self, error)
        if self.capability not in self._context.registry:
            return _failure(self, f"Capability '{self.capability}' does not exist")
        if not agent.add_capability(self.capability):
            return _success(self, f"'{agent.name}' already has the '{self.capability}' capability")
        return _success(
            self, f"Added '{self.capability}' to '{agent.name}'. It can now use this capability."
        )


class RemoveCapability(BaseTool):
    TOOL_NAME = "remove_capability"
    TOOL_DESCRIPTION = """Remove a capability from an agent's declared capabilities."""

    UNIVERSAL = True

    target: str = Field(..., description="Name of the agent to modify, or 'self'")
    capability: str = Field(..., description="Name of the capability to remove")

    def run(self) -> ToolOutput:
        agent, error = resolve_agent(self, self.target)
        if error:
            return _failure(self, error)
        if not agent.remove_capability(self.capability):
            return _success(
                self,
                f"'{agent.name}' does not have '{self.capability}' in its declared capabilities.",
            )
        return _success(self, f"Removed '{self.capability}' from '{agent.name}'.")


class ListCapabilities(BaseTool):
    TOOL_NAME = "list_capabilities"
    TOOL_DESCRIPTION = """List the capabilities registered in the runtime.

Filter with type 'primitives' or 'agents'; the default lists everything."""

    UNIVERSAL = True

    type: Literal["all", "primitives", "agents"] = Field(
        default="all", description="Which kind of capability to list"
    )

    def run(self) -> ToolOutput:
        registry = self._context.registry
        if self.type == "primitives":
            capabilities = [c for c in registry.list() if c.KIND != "agent"]
        elif self.type == "agents":
            capabilities = registry.agents()
        else:
            capabilities = registry.list()

        if not capabilities:
            return _success(self, "No capabilities found.")

        labels = {"agent": "[Agent]", "universal": "[Universal]"}
        lines = [
            f"- {c.name} {labels.get(c.KIND, '[Primitive]')}: {c.description.splitlines()[0]}"
            for c in capabilities
        ]
        return _success(self, "Available capabilities:\n" + "\n".join(lines))


def replace_section(body: str, heading: str, content: str) -> str:
    """Replace a markdown section, up to the next heading of the same or higher
    level, appending it when the heading is absent."""
    heading = heading.strip()
    if not heading.startswith("#"):
        heading = f"## {heading}"
    level = len(heading) - len(heading.lstrip("#"))

    lines = body.splitlines()
    start = end = None
    for i, line in enumerate(lines):
        stripped = line.strip().lower()
        if start is None:
            if stripped == heading.lower() or stripped.startswith(f"{heading.lower()} "):
                start = i
        elif re.match(r"^#+\s", line):
            if len(line) - len(line.lstrip("#")) <= level:
                end = i
                break

    if start is None:
        return _append(body, f"{heading}\n\n{content}")

    before = "\n".join(lines[:start]).rstrip()
    after = "\n".join(lines[end:]).lstrip() if end is not None else ""
    section = f"{lines[start].strip()}\n\n{content}"
    return "\n\n".join(part for part in (before, section, after) if part)


def _append(body: str, content: str) -> str:
    return f"{body.rstrip()}\n\n{content}" if body.strip() else content


def _prepend(body: str, content: str) -> str:
    return f"{content}\n\n{body.lstrip()}" if body.strip() else content


class ModifyPrompt(BaseTool):
    TOOL_NAME = "modify_prompt"
    TOOL_DESCRIPTION = """Modify an agent's persona (the body of its prompt).

Operations: 'append' adds to the end, 'prepend' adds to the beginning,
'replace_section' replaces one markdown section (give its heading in
'section'), 'rewrite' replaces the whole persona. Does not change
capabilities; use add_capability for that."""

    UNIVERSAL = True

    target: str = Field(..., description="Name of the agent to modify, or 'self'")
    operation: Literal["append", "prepend", "replace_section", "rewrite"] = Field(
        ..., description="Type of modification"
    )
    content: str = Field(..., description="The new content")
    section: str | None = Field(
        default=None,
        description="The section heading to replace, e.g. '## Learnings' (replace_section only)",
    )

    def run(self) -> ToolOutput:
        agent, error = resolve_agent(self, self.target)
        if error:
            return _failure(self, error)

        body = agent.body
        if self.operation == "append":
            new_body = _append(body, self.content)
        elif self.operation == "prepend":
            new_body = _prepend(body, self.content)
        elif self.operation == "replace_section":
            if not self.section:
                return _failure(self, "'section' is required for replace_section")
            new_body = replace_section(body, self.section, self.content)
        else:
            new_body = self.content

        agent.update_body(new_body)
        logger.info(f"{self.operation} applied to the prompt of {agent.name}")

        saved = "" if agent.definition.path is None else " and saved to file"
        return _success(self, f"Applied {self.operation} to '{agent.name}' prompt{saved}.")
