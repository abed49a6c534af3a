# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Shared scratch data for one delegation tree.

Every thread descending from the same root thread sees the same key/value
entries, so a coordinator can leave findings for the agents it delegates to
(and vice versa) without pasting them into messages.
"""
import json
import logging

from typing import Any
from pydantic import Field

from .base_tool import BaseTool
from ..types.tool_types import ToolOutput

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

ENV_DATA = "env_data"


class EnvDataTool(BaseTool):
    """Common scoping for the env data tools. Not registered itself."""

    TOOL_NAME = "env_data"
    TOOL_DESCRIPTION = "Shared environment data"

    UNIVERSAL = True

    def scope(self) -> tuple[str | None, str | None]:
        """Return (root thread id, None) or (None, error message)."""
        store = self._context.session_store
        if store is None:
            return None, "Session store not available"
        session_id = self._context.session_id
        root = store.resolve_root_thread(session_id) if session_id else None
        if root is None:
            return None, "Could not resolve thread scope (no active session)"
        return root, None

    @property
    def actor(self) -> str:
        return self._context.calling_agent or "unknown"

    def announce(self, action: str, key: str) -> None:
        self._context.bus.publish(
            self.actor,
            ENV_DATA,
            {"action": action, "key": key},
            session_id=self._context.session_id,
        )

    def failure(self, message: str) -> ToolOutput:
        return ToolOutput(tool_name=self.TOOL_NAME, success=False, errors=message)

    def success(self, output: Any) -> ToolOutput:
        return ToolOutput(tool_name=self.TOOL_NAME, success=True, output=output)


class StoreEnvData(EnvDataTool):
    TOOL_NAME = "store_env_data"
    TOOL_DESCRIPTION = """Store a value in the environment data shared by every agent in this delegation chain.

Overwrites any existing value under the same key. Give a short description so
others can tell what the key holds without fetching it."""

    key: str = Field(..., description="The key to store the value under")
    short_description: str = Field(..., description="One line describing the value")
    value: Any = Field(..., description="Any JSON value")

    def run(self) -> ToolOutput:
        root, error = self.scope()
        if error:
            return self.failure(error)
        self._context.session_store.store_env_data(
            root, self.key, self.short_description, self.value, self.actor
        )
        self.announce("store", self.key)
        return self.success(f"Stored '{self.key}' in environment data.")


class GetEnvData(EnvDataTool):
    TOOL_NAME = "get_env_data"
    TOOL_DESCRIPTION = """Retrieve a key's full value from the shared environment data.

Use list_env_data first to see what keys are available."""

    key: str = Field(..., description="The key to retrieve")

    def run(self) -> ToolOutput:
        root, error = self.scope()
        if error:
            return self.failure(error)
        entry = self._context.session_store.get_env_data(root, self.key)
        if entry is None:
            return self.success(f"Key '{self.key}' not found in environment data.")
        self.announce("get", self.key)
        return self.success(json.dumps(entry.value, indent=2, default=str))


class ListEnvData(EnvDataTool):
    TOOL_NAME = "list_env_data"
    TOOL_DESCRIPTION = """List the keys and short descriptions in the shared environment data.

Values are not included; use get_env_data to fetch one."""

    def run(self) -> ToolOutput:
        root, error = self.scope()
        if error:
            return self.failure(error)
        entries = self._context.session_store.list_env_data(root)
        if not entries:
            return self.success("No environment data stored for this delegation chain.")
        return self.success(
            [entry.to_dict(include_value=False) for entry in entries]
        )


class UpdateEnvData(EnvDataTool):
    TOOL_NAME = "update_env_data"
    TOOL_DESCRIPTION = """Update an existing key's value in the shared environment data.

Fails if the key does not exist; use store_env_data to create new entries."""

    key: str = Field(..., description="The key to update")
    value: Any = Field(..., description="The new JSON value")
    short_description: str | None = Field(
        default=None, description="Optional new description"
    )

    def run(self) -> ToolOutput:
        root, error = self.scope()
        if error:
            return self.failure(error)
        updated = self._context.session_store.update_env_data(
            root, self.key, self.value, self.actor, self.short_description
        )
        if not updated:
            return self.success(
                f"Key '{self.key}' not found in environment data. Use store_env_data to create it."
            )
        self.announce("update", self.key)
        return self.success(f"Updated '{self.key}' in environment data.")


class DeleteEnvData(EnvDataTool):
    TOOL_NAME = "delete_env_data"
    TOOL_DESCRIPTION = """Delete a key from the shared environment data."""

    key: str = Field(..., description="The key to delete")

    def run(self) -> ToolOutput:
        root, error = self.scope()
        if error:
            return self.failure(error)
        if not self._context.session_store.delete_env_data(root, self.key):
            return self.success(f"Key '{self.key}' not found in environment data.")
        self.announce("delete", self.key)
        return self.success(f"Deleted '{self.key}' from environment data.")
