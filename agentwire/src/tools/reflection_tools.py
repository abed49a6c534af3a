# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from pydantic import Field

from .base_tool import BaseTool
from ..types.tool_types import ToolOutput

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class Think(BaseTool):
    TOOL_NAME = "think"
    TOOL_DESCRIPTION = """Internal reasoning step. Use this to think through a problem before acting.

The thought is recorded on the message bus but has no other effect."""

    UNIVERSAL = True

    thought: str = Field(..., description="Your reasoning")

    def run(self) -> ToolOutput:
        logger.debug(f"{self._context.calling_agent} thought: {self.thought}")
        return ToolOutput(tool_name=self.TOOL_NAME, success=True, output="Thought recorded.")
