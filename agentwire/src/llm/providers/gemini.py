# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Gemini REST api LLM provider implementation."""

import httpx
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
    new_call_id,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.WARNING)

# JSON-schema keywords the Gemini function declaration schema rejects
_UNSUPPORTED_SCHEMA_KEYS = {"additionalProperties", "$schema", "$defs", "title", "default"}


class GeminiProvider(BaseProvider):
    """Provider implementation for Gemini's generateContent REST endpoint.

    The model role is ``model``, tool calls are ``functionCall`` parts and
    results are ``functionResponse`` parts in a user turn. Gemini may omit
    call ids; missing ones are invented locally.
    """

    provider_name = "gemini"
    default_model = "gemini-2.5-flash"

    base_url = "https://generativelanguage.googleapis.com/v1beta/models/{model_id}:generateContent"

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        timeout: float = 60.0,
        client: httpx.Client | None = None,
    ):
        super().__init__(model)
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
        return self._client

    def map_stop_reason(self, response: dict) -> StopReason:
        candidates = response.get("candidates") or []
        if not candidates or "finishReason" not in candidates[-1]:
            return StopReason.COMPLETE

        finish_reason = candidates[-1]["finishReason"]

        match finish_reason:
            case "STOP":
                return StopReason.COMPLETE
            case "MAX_TOKENS":
                return StopReason.LENGTH
            case (
                "FINISH_REASON_UNSPECIFIED"
                | "SAFETY"
                | "LANGUAGE"
                | "OTHER"
                | "BLOCKLIST"
                | "PROHIBITED_CONTENT"
                | "SPII"
                | "MALFORMED_FUNCTION_CALL"
            ):
                logger.warning(f"Gemini stop reason: {finish_reason}")
                return StopReason.ERROR
            case "RECITATION":
                return StopReason.COMPLETE
            case _:
                logger.warning(f"Unrecognized gemini stop reason: {finish_reason}")
                return StopReason.COMPLETE

    def _role_mapping(self, role: Role) -> str:
        match role:
            case Role.ASSISTANT:
                return "model"
            case Role.USER | Role.TOOL:
                return "user"
            case _:
                logger.warning(f"Unexpected role: {role}")
                return "user"

    def _create_token_usage(self, response: dict) -> TokenUsage:
        usage_meta = response.get("usageMetadata") or {}
        return TokenUsage(
            input_tokens=usage_meta.get("promptTokenCount", 0),
            output_tokens=usage_meta.get("candidatesTokenCount", 0),
            model=response.get("modelVersion") or self.model,
            provider=self.provider_name,
        )

    def _clean_schema(self, schema: Any) -> Any:
        if isinstance(schema, list):
            return [self._clean_schema(s) for s in schema]
        if not isinstance(schema, dict):
            return schema
        return {
            key: self._clean_schema(value)
            for key, value in schema.items()
            if key not in _UNSUPPORTED_SCHEMA_KEYS
        }

    def pydantic_to_native_tool(self, tool: ToolSchema) -> dict:
        declaration: dict[str, Any] = {"name": tool.name, "description": tool.description}
        parameters = self._clean_schema(tool.sanitized_parameters())
        if parameters.get("properties"):
            declaration["parameters"] = parameters
        return declaration

    def _prepare_messages(self, messages: list[Message]) -> list[dict]:
        contents = []
        for msg in messages:
            parts: list[dict] = []
            if msg.role == Role.TOOL:
                for result in msg.tool_results:
                    parts.append(
                        {
                            "functionResponse": {
                                "id": result.call_id,
                                "name": result.name,
                                "response": {"name": result.name, "content": result.content},
                            }
                        }
                    )
            else:
                if msg.content:
                    parts.append({"text": msg.content})
                for tc in msg.tool_calls:
                    parts.append(
                        {"functionCall": {"id": tc.id, "name": tc.name, "args": tc.arguments}}
                    )
            if not parts:
                parts.append({"text": ""})
            contents.append({"role": self._role_mapping(msg.role), "parts": parts})
        return contents

    def deserialize_messages(self, provider_messages: list[dict]) -> list[Message]:
        messages: list[Message] = []
        ids_by_name: dict[str, list[str]] = {}
        for raw in provider_messages:
            parts = raw.get("parts") or []
            if raw.get("role") == "model":
                text = "".join(p.get("text", "") for p in parts if "text" in p)
                calls = []
                for part in parts:
                    if "functionCall" in part:
                        calls.append(self._parse_function_call(part["functionCall"]))
                for tc in calls:
                    ids_by_name.setdefault(tc.name, []).append(tc.id)
                messages.append(Message.assistant(text or None, calls))
                continue

            results = []
            for part in parts:
                if "functionResponse" not in part:
                    continue
                fr = part["functionResponse"]
                name = fr.get("name", "unknown")
                call_id = fr.get("id")
                if not call_id:
                    pending = ids_by_name.get(name) or []
                    call_id = pending.pop(0) if pending else new_call_id(name)
                response = fr.get("response") or {}
                content = response.get("content", response.get("result", ""))
                results.append(
                    ToolResult(call_id=call_id, name=name, content=content)
                )
            if results:
                messages.append(Message.tool(results))
            texts = [p["text"] for p in parts if p.get("text")]
            if texts:
                messages.append(Message.user("".join(texts)))
        return messages

    @staticmethod
    def _parse_function_call(fc: dict) -> ToolCall:
        args = dict(fc.get("args") or {})
        args.pop("_dummy", None)
        return ToolCall(id=fc.get("id"), name=fc.get("name", "unknown_tool"), arguments=args)

    def _build_payload(self, request: LLMRequest) -> dict:
        payload: dict[str, Any] = {"contents": self.serialize_messages(request.messages)}
        if request.system:
            payload["system_instruction"] = {"parts": [{"text": request.system}]}
        if request.tools:
            payload["tools"] = [
                {
                    "functionDeclarations": [
                        self.pydantic_to_native_tool(t) for t in request.tools
                    ]
                }
            ]
            # AUTO lets the model choose between a function call and a text answer
            payload["tool_config"] = {"function_calling_config": {"mode": "AUTO"}}
        return payload

    def _send(self, payload: dict) -> dict:
        # NOTE: the key isn't sent in the clear thanks to HTTPS
        url = self.base_url.format(model_id=self.model)
        headers = {"Content-Type": "application/json", "x-goog-api-key": self._api_key or ""}
        try:
            response = self.client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise ProviderError(self.provider_name, None, str(e)) from e

        if not response.is_success:
            raise ProviderError(self.provider_name, response.status_code, response.text)
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.provider_name, response.status_code, response.text) from e

    def _parse_response(self, raw: Any) -> LLMResponse:
        candidates = raw.get("candidates") or []
        if not candidates:
            raise ProviderError(self.provider_name, None, f"No candidates in response: {raw}")

        text_parts = []
        tool_calls = []
        for part in (candidates[0].get("content") or {}).get("parts") or []:
            if "text" in part:
                text_parts.append(part["text"])
            elif "functionCall" in part:
                tool_calls.append(self._parse_function_call(part["functionCall"]))
            else:
                logger.warning(f"Unhandled gemini response content block type: {part}")

        return LLMResponse(
            content="".join(text_parts),
            tool_calls=tool_calls,
            usage=self._create_token_usage(raw),
            stop_reason=self.map_stop_reason(raw),
            raw=raw,
        )
