# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Anthropic messages-API provider."""

import anthropic
import logging

from typing import Any

from .base_provider import BaseProvider
from ...errors import ProviderError
from ...types.common import Role
from ...types.llm_types import (
    LLMRequest,
    LLMResponse,
    Message,
    StopReason,
    TokenUsage,
    ToolCall,
    ToolResult,
    ToolSchema,
)

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseProvider):
    """Provider implementation for Anthropic's Claude models.

    The system prompt is a top-level parameter, tool calls are ``tool_use``
    content blocks, and tool results go back as ``tool_result`` blocks inside
    a synthetic user turn.
    """

    provider_name = "anthropic"
    default_model = "claude-haiku-4-5"

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        timeout: float = 60.0,
        max_tokens: int = 4096,
        client: Any = None,
    ):
        super().__init__(model)
        self._api_key = api_key
        self._timeout = timeout
        self.max_tokens = max_tokens
        self._client = client

    @property
    def client(self) -> anthropic.Anthropic:
        if self._client is None:
            self._client = anthropic.Anthropic(api_key=self._api_key, timeout=self._timeout)
        return self._client

    def map_stop_reason(self, response: dict) -> StopReason:
        match response.get("stop_reason"):
            case "tool_use":
                return StopReason.TOOL_USE
            case "max_tokens":
                return StopReason.LENGTH
            case "end_turn" | "stop_sequence" | None:
                return StopReason.COMPLETE
            case other:
                logger.warning(f"Unrecognized anthropic stop reason: {other}")
                return StopReason.COMPLETE

    def _create_token_usage(self, response: dict) -> TokenUsage:
        usage = response.get("usage") or {}
        return TokenUsage(
            input_tokens=usage.get("input_tokens") or 0,
            output_tokens=usage.get("output_tokens") or 0,
            model=response.get("model") or self.model,
            provider=self.provider_name,
        )

    def pydantic_to_native_tool(self, tool: ToolSchema) -> dict:
        return {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.sanitized_parameters(),
        }

    def _prepare_messages(self, messages: list[Message]) -> list[dict]:
        ant_messages: list[dict] = []
        for msg in messages:
            if msg.role == Role.ASSISTANT:
                blocks: list[dict] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for tc in msg.tool_calls:
                    blocks.append(
                        {"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.arguments}
                    )
                role = "assistant"
            elif msg.role == Role.TOOL:
                blocks = [
                    {
                        "type": "tool_result",
                        "tool_use_id": result.call_id,
                        "content": result.content,
                    }
                    for result in msg.tool_results
                ]
                role = "user"
            else:
                blocks = [{"type": "text", "text": msg.content or ""}]
                role = "user"

            # The API requires strictly alternating roles
            if ant_messages and ant_messages[-1]["role"] == role:
                ant_messages[-1]["content"].extend(blocks)
            else:
                ant_messages.append({"role": role, "content": blocks})
        return ant_messages

    def deserialize_messages(self, provider_messages: list[dict]) -> list[Message]:
        messages: list[Message] = []
        names: dict[str, str] = {}
        for raw in provider_messages:
            content = raw.get("content")
            blocks = [{"type": "text", "text": content}] if isinstance(content, str) else content or []

            if raw.get("role") == "assistant":
                text = "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
                calls = [
                    ToolCall(id=b.get("id"), name=b.get("name"), input=b.get("input"))
                    for b in blocks
                    if b.get("type") == "tool_use"
                ]
                names.update({tc.id: tc.name for tc in calls})
                messages.append(Message.assistant(text or None, calls))
                continue

            results = [
                ToolResult(
                    call_id=b["tool_use_id"],
                    name=names.get(b["tool_use_id"], "unknown"),
                    content=self._result_text(b.get("content")),
                )
                for b in blocks
                if b.get("type") == "tool_result"
            ]
            if results:
                messages.append(Message.tool(results))
            texts = [b.get("text", "") for b in blocks if b.get("type") == "text"]
            if texts:
                messages.append(Message.user("".join(texts)))
        return messages

    @staticmethod
    def _result_text(content: Any) -> str:
        if isinstance(content, list):
            return "".join(b.get("text", "") for b in content if isinstance(b, dict))
        return content or ""

    def _build_payload(self, request: LLMRequest) -> dict:
        payload: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": self.serialize_messages(request.messages),
        }
        if request.system:
            payload["system"] = request.system
        if request.tools:
            payload["tools"] = [self.pydantic_to_native_tool(t) for t in request.tools]
        return payload

    def _send(self, payload: dict) -> dict:
        try:
            response = self.client.messages.create(**payload)
        except anthropic.APIStatusError as e:
            raise ProviderError(self.provider_name, e.status_code, e.response.text) from e
        except anthropic.AnthropicError as e:
            raise ProviderError(self.provider_name, None, str(e)) from e
        return self._as_dict(response)

    def _parse_response(self, raw: Any) -> LLMResponse:
        response = self._as_dict(raw)
        text_parts = []
        tool_calls = []
        for block in response.get("content") or []:
            if block.get("type") == "text":
                text_parts.append(block.get("text", ""))
            elif block.get("type") == "tool_use":
                tool_calls.append(
                    ToolCall(id=block.get("id"), name=block.get("name"), input=block.get("input"))
                )
            else:
                logger.debug(f"Skipping anthropic content block: {block.get('type')}")
        return LLMResponse(
            content="".join(text_parts),
            tool_calls=tool_calls,
            usage=self._create_token_usage(response),
            stop_reason=self.map_stop_reason(response),
            raw=response,
        )
