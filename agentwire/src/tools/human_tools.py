# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from pydantic import Field, field_validator

from .base_tool import BaseTool
from ..types.tool_types import ToolOutput

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

HUMAN = "human"


class AskHuman(BaseTool):
    """Escalate a question to the human and wait for the answer."""

    TOOL_NAME = "ask_human"
    TOOL_DESCRIPTION = """Ask the human a question and wait for their response.

Use this when you need confirmation, a decision or information that only the
human can provide. Optionally provide a short list of suggested answers. Your
turn is suspended until the human responds."""

    UNIVERSAL = True

    question: str = Field(..., description="The question to ask the human")
    options: list[str] | None = Field(
        default=None,
        description="Optional suggested answers for the human to choose from",
    )

    @field_validator("options", mode="before")
    @classmethod
    def _split_options(cls, value):
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()] or None
        return value

    def run(self) -> ToolOutput:
        context = self._context
        asker = context.calling_agent or HUMAN

        context.bus.publish(asker, HUMAN, self.question, session_id=context.session_id)
        answer = context.human_queue.enqueue(asker, self.question, self.options)
        context.bus.publish(HUMAN, asker, answer, session_id=context.session_id)

        logger.info(f"Human answered {asker}: {answer}")
        return ToolOutput(tool_name=self.TOOL_NAME, success=True, output=str(answer))
