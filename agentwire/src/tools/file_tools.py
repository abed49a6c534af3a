# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from pathlib import Path
from pydantic import Field

from .base_tool import BaseTool
from ..types.tool_types import ToolOutput

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MAX_READ_CHARS = 100_000


class ReadFile(BaseTool):
    TOOL_NAME = "read_file"
    TOOL_DESCRIPTION = """Read the contents of a text file and return them.

Only plain text files are supported. Very long files are truncated."""

    path: str = Field(..., description="Path of the file to read")

    def run(self) -> ToolOutput:
        path = Path(self.path).expanduser()
        if not path.exists():
            return ToolOutput(
                tool_name=self.TOOL_NAME,
                success=False,
                errors=f"File not found: {path}",
            )
        if not path.is_file():
            return ToolOutput(
                tool_name=self.TOOL_NAME,
                success=False,
                errors=f"Not a file: {path}",
            )

        try:
            content = path.read_text()
        except UnicodeDecodeError:
            return ToolOutput(
                tool_name=self.TOOL_NAME,
                success=False,
                errors=f"{path} is not a text file",
            )

        warnings = None
        if len(content) > MAX_READ_CHARS:
            content = content[:MAX_READ_CHARS]
            warnings = f"File truncated to the first {MAX_READ_CHARS} characters"
        return ToolOutput(
            tool_name=self.TOOL_NAME, success=True, output=content, warnings=warnings
        )


class WriteFile(BaseTool):
    TOOL_NAME = "write_file"
    TOOL_DESCRIPTION = """Write text content to a file, replacing it if it exists.

Parent directories are created as needed."""

    path: str = Field(..., description="Path of the file to write")
    content: str = Field(..., description="The full text content to write")

    def run(self) -> ToolOutput:
        path = Path(self.path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.content)
        logger.info(f"Wrote {len(self.content)} characters to {path}")
        return ToolOutput(
            tool_name=self.TOOL_NAME,
            success=True,
            output=f"Wrote {len(self.content)} characters to {path}",
        )
