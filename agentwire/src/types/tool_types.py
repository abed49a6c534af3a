# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import json

from abc import ABC, abstractmethod
from typing import Any, ClassVar
from pydantic import BaseModel, ConfigDict

from ..errors import ERROR_PREFIX


class ToolOutput(BaseModel):
    """Represents the result of a primitive tool execution."""

    tool_name: str
    success: bool
    duration: float = 0.0  # on tool error paths, duration is often 0
    output: dict[str, Any] | list | str | None = None
    warnings: str | None = None
    errors: str | None = None

    def __str__(self):
        if not self.success:
            return f"{ERROR_PREFIX} {self.errors or self.output or 'unknown failure'}"

        if isinstance(self.output, (dict, list)):
            text = json.dumps(self.output, indent=2, default=str)
        else:
            text = self.output if self.output is not None else ""
        if self.warnings:
            text += f"\nWarnings: {self.warnings}"
        return text


class ToolInterface(BaseModel, ABC):
    """Abstract interface for all primitive tools"""

    # Class variables
    TOOL_NAME: ClassVar[str]
    TOOL_DESCRIPTION: ClassVar[str]

    model_config = ConfigDict(extra="forbid")

    @abstractmethod
    def run(self) -> ToolOutput:
        """Execute the tool's functionality"""
        pass
