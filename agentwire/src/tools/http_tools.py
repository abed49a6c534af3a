# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import httpx
import logging

from pydantic import Field

from .base_tool import BaseTool
from ..types.tool_types import ToolOutput

logger = logging.getLogger(__name__)

MAX_BODY_CHARS = 10_000


class HttpGet(BaseTool):
    TOOL_NAME = "http_get"
    TOOL_DESCRIPTION = """Fetch a URL with an HTTP GET request and return the response body.

Bodies longer than 10000 characters are truncated."""

    url: str = Field(..., description="The absolute http(s) URL to fetch")
    timeout: float = Field(default=30.0, description="Request timeout in seconds")

    def run(self) -> ToolOutput:
        if not self.url.startswith(("http://", "https://")):
            return ToolOutput(
                tool_name=self.TOOL_NAME,
                success=False,
                errors=f"Unsupported URL scheme: {self.url}",
            )

        try:
            response = httpx.get(self.url, timeout=self.timeout, follow_redirects=True)
        except httpx.HTTPError as e:
            return ToolOutput(
                tool_name=self.TOOL_NAME,
                success=False,
                errors=f"Request failed: {e}",
            )

        body = response.text
        warnings = None
        if len(body) > MAX_BODY_CHARS:
            body = body[:MAX_BODY_CHARS]
            warnings = f"Body truncated to {MAX_BODY_CHARS} characters"

        if response.status_code >= 400:
            return ToolOutput(
                tool_name=self.TOOL_NAME,
                success=False,
                errors=f"HTTP {response.status_code}: {body[:500]}",
            )
        return ToolOutput(
            tool_name=self.TOOL_NAME,
            success=True,
            output=f"HTTP {response.status_code}\n\n{body}",
            warnings=warnings,
        )
