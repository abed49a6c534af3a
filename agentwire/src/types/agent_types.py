# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import re

from enum import Enum
from pathlib import Path
from pydantic import BaseModel, Field, field_validator

AGENT_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


class AgentStatus(str, Enum):
    """Possible states of an agent between and during turns."""

    IDLE = "idle"
    THINKING = "thinking"
    CALLING_TOOL = "calling_tool"


class AgentDefinition(BaseModel):
    """A declared agent: frontmatter metadata plus the persona body."""

    name: str
    description: str = ""
    capabilities: list[str] = Field(default_factory=list)
    body: str = ""
    path: Path | None = None

    @field_validator("name")
    @classmethod
    def _non_empty_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("agent name must not be empty")
        return value

    @field_validator("capabilities", mode="before")
    @classmethod
    def _capability_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value


class AgentMetrics(BaseModel):
    """Running counters for one agent across its turns."""

    turns: int = 0
    llm_calls: int = 0
    tool_calls: int = 0
    failed_tool_calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
