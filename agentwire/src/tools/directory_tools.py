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


class ListFiles(BaseTool):
    """Tool to list the entries of a directory."""

    TOOL_NAME = "list_files"
    TOOL_DESCRIPTION = """List the files and directories inside a directory.

Directories are shown with a trailing slash. Hidden entries are skipped unless requested."""

    path: str = Field(default=".", description="The directory path to list")
    show_hidden: bool = Field(
        default=False,
        description="Whether to include hidden files and directories",
    )

    def run(self) -> ToolOutput:
        directory = Path(self.path).expanduser()
        if not directory.is_dir():
            return ToolOutput(
                tool_name=self.TOOL_NAME,
                success=False,
                errors=f"Not a directory: {directory}",
            )

        entries = []
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            if entry.name.startswith(".") and not self.show_hidden:
                continue
            entries.append(f"{entry.name}/" if entry.is_dir() else entry.name)

        output = "\n".join(entries) if entries else "(empty directory)"
        return ToolOutput(tool_name=self.TOOL_NAME, success=True, output=output)
