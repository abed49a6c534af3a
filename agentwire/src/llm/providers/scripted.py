# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
A deterministic provider that replays canned responses.

Useful for demos and tests that need to drive full agent turns without a
network connection.
"""

import threading

from typing import Any, Callable, Iterable

from .base_provider import BaseProvider
from ...errors import ProviderError
from ...types.llm_types import (
    LLMRequest,
    LLMResponse,
    Message,
    StopReason,
    TokenUsage,
    ToolCall,
    ToolSchema,
)

Responder = Callable[[LLMRequest], LLMResponse | str]


def text_response(content: str, input_tokens: int = 10, output_tokens: int = 5) -> LLMResponse:
    return LLMResponse(
        content=content,
        usage=TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens),
        stop_reason=StopReason.COMPLETE,
    )


def tool_response(*calls: ToolCall | dict, input_tokens: int = 10, output_tokens: int = 5) -> LLMResponse:
    return LLMResponse(
        tool_calls=[ToolCall.coerce(c) for c in calls],
        usage=TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens),
        stop_reason=StopReason.TOOL_USE,
    )


class ScriptedProvider(BaseProvider):
    """Replays a fixed list of responses, or defers to a responder callable.

    Every request is recorded in ``requests``. Messages are kept in the
    normalized shape, so the wire translations are identities.
    """

    provider_name = "scripted"
    default_model = "scripted"

    def __init__(
        self,
        script: Iterable[LLMResponse | str] | Responder = (),
        model: str | None = None,
    ):
        super().__init__(model)
        self._responder: Responder | None = script if callable(script) else None
        self._script: list[LLMResponse | str] = [] if callable(script) else list(script)
        self.requests: list[LLMRequest] = []
        self._lock = threading.Lock()

    def extend(self, *responses: LLMResponse | str) -> None:
        """Queue more scripted responses."""
        with self._lock:
            self._script.extend(responses)

    def pydantic_to_native_tool(self, tool: ToolSchema) -> dict:
        return tool.model_dump()

    def _prepare_messages(self, messages: list[Message]) -> list[dict]:
        return [m.model_dump(mode="json") for m in messages]

    def deserialize_messages(self, provider_messages: list[dict]) -> list[Message]:
        return [Message.model_validate(m) for m in provider_messages]

    def _build_payload(self, request: LLMRequest) -> dict:
        return {"request": request.model_copy(deep=True)}

    def _send(self, payload: dict) -> Any:
        request = payload["request"]
        with self._lock:
            self.requests.append(request)
            if self._responder is None:
                if not self._script:
                    raise ProviderError(self.provider_name, None, "script exhausted")
                return self._script.pop(0)
        return self._responder(request)

    def _parse_response(self, raw: Any) -> LLMResponse:
        response = text_response(raw) if isinstance(raw, str) else raw
        usage = response.usage.model_copy(
            update={
                "model": response.usage.model or self.model,
                "provider": response.usage.provider or self.provider_name,
            }
        )
        return response.model_copy(update={"usage": usage})
