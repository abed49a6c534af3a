# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Provider-agnostic representation of chat requests, responses and the
tool-call / tool-result units exchanged with the model.
"""
import os
import json
import logging

from enum import Enum
from typing import Any
from datetime import datetime
from json_repair import repair_json
from pydantic import BaseModel, Field, model_validator

from .common import Role

logger = logging.getLogger(__name__)


class StopReason(str, Enum):
    COMPLETE = "complete"
    TOOL_USE = "tool_use"
    LENGTH = "length"
    ERROR = "error"


def new_call_id(name: str) -> str:
    """Locally invented tool call id, for providers that do not supply one."""
    return f"call_{name}_{os.urandom(4).hex()}"


def decode_arguments(raw: Any) -> dict[str, Any]:
    """Reconstruct a tool-call argument object from its wire encoding."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Repairing malformed tool arguments: {raw[:200]}")
            decoded = repair_json(raw, return_objects=True)
        if isinstance(decoded, dict):
            return decoded
        return {"value": decoded}
    raise TypeError(f"Cannot decode tool arguments of type {type(raw).__name__}")


class ToolCall(BaseModel):
    """A model-issued request to invoke a capability.

    Accepts a ToolCall, a mapping or any object exposing ``id``/``name`` and one
    of ``arguments``/``args``/``input``. Calls replayed from the session store
    arrive as mappings, fresh calls from an adapter arrive as objects.
    """

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: Any) -> Any:
        if isinstance(data, ToolCall):
            return data.model_dump()
        if not isinstance(data, dict):
            data = {
                key: getattr(data, key)
                for key in ("id", "name", "arguments", "args", "input")
                if hasattr(data, key)
            }
        data = {str(k): v for k, v in data.items()}

        raw_args = None
        for key in ("arguments", "args", "input"):
            if key in data:
                raw_args = data[key]
                break
        name = data.get("name")
        if not name:
            raise ValueError("tool call is missing a name")
        return {
            "id": data.get("id") or new_call_id(name),
            "name": name,
            "arguments": decode_arguments(raw_args),
        }

    @classmethod
    def coerce(cls, value: Any) -> "ToolCall":
        if isinstance(value, ToolCall):
            return value
        return cls.model_validate(value)


class ToolResult(BaseModel):
    """The outcome of one dispatched ToolCall, fed back to the model."""

    call_id: str
    name: str
    content: str

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = {str(k): v for k, v in data.items()}
            if "call_id" not in data and "tool_call_id" in data:
                data["call_id"] = data.pop("tool_call_id")
            if not isinstance(data.get("content", ""), str):
                data["content"] = json.dumps(data["content"])
        return data


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    model: str | None = None
    provider: str | None = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class Message(BaseModel):
    """One entry of an agent's conversation history."""

    role: Role
    content: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_results: list[ToolResult] = Field(default_factory=list)
    sender: str | None = None
    usage: TokenUsage | None = None
    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="before")
    @classmethod
    def _normalise_lists(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            for key in ("tool_calls", "tool_results"):
                if data.get(key) is None:
                    data[key] = []
        return data

    @model_validator(mode="after")
    def _check_invariants(self) -> "Message":
        if self.role == Role.ASSISTANT and not self.content and not self.tool_calls:
            raise ValueError("assistant message without content must carry tool calls")
        if self.role == Role.TOOL and not self.tool_results:
            raise ValueError("tool message must carry tool results")
        return self

    @classmethod
    def user(cls, content: str, sender: str | None = None) -> "Message":
        return cls(role=Role.USER, content=content, sender=sender)

    @classmethod
    def assistant(
        cls,
        content: str | None = None,
        tool_calls: list[ToolCall] | None = None,
        usage: TokenUsage | None = None,
        sender: str | None = None,
    ) -> "Message":
        return cls(
            role=Role.ASSISTANT,
            content=content,
            tool_calls=tool_calls or [],
            usage=usage,
            sender=sender,
        )

    @classmethod
    def tool(cls, results: list[ToolResult]) -> "Message":
        return cls(role=Role.TOOL, tool_results=results)


class ToolSchema(BaseModel):
    """Name, description and JSON-schema parameter spec of a capability."""

    name: str
    description: str
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def sanitized_parameters(self) -> dict[str, Any]:
        """Parameters with ``items`` filled in for array properties lacking one."""
        return _sanitize_schema(self.parameters)


def _sanitize_schema(schema: Any) -> Any:
    if isinstance(schema, list):
        return [_sanitize_schema(item) for item in schema]
    if not isinstance(schema, dict):
        return schema
    cleaned = {key: _sanitize_schema(value) for key, value in schema.items()}
    if cleaned.get("type") == "array" and "items" not in cleaned:
        cleaned["items"] = {"type": "string"}
    return cleaned


class LLMRequest(BaseModel):
    system: str = ""
    messages: list[Message] = Field(default_factory=list)
    tools: list[ToolSchema] = Field(default_factory=list)


class LLMResponse(BaseModel):
    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    usage: TokenUsage = Field(default_factory=TokenUsage)
    stop_reason: StopReason | None = None
    raw: Any = Field(default=None, exclude=True)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)
