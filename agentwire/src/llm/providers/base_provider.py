# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Base provider interface for LLM interactions."""

import logging

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from ...errors import ProviderError
from ...types.llm_types import (
    LLMRequest,
    LLMResponse,
    Message,
    StopReason,
    ToolSchema,
)

logger = logging.getLogger(__name__)


class BaseProvider(ABC):
    """Abstract base class for LLM providers.

    A provider owns three translations: normalized messages to the provider's
    wire format (``_prepare_messages``), the wire format back to normalized
    messages (``deserialize_messages``), and the provider's response to an
    ``LLMResponse`` (``_parse_response``). Transport failures must surface as
    ``ProviderError``.
    """

    provider_name: ClassVar[str]
    default_model: ClassVar[str]

    def __init__(self, model: str | None = None):
        self.model = model or self.default_model

    def map_stop_reason(self, response: Any) -> StopReason:
        """Map provider-specific stop information to standard format."""
        # Default implementation assumes a normal completion
        return StopReason.COMPLETE

    def chat(self, request: LLMRequest) -> LLMResponse:
        """Run one completion for a normalized request."""
        logger.debug(
            f"{self.provider_name} request: {len(request.messages)} messages, "
            f"{len(request.tools)} tools"
        )
        try:
            payload = self._build_payload(request)
            raw = self._send(payload)
            return self._parse_response(raw)
        except ProviderError:
            raise
        except Exception as e:
            logger.error(f"{self.provider_name} call failed: {type(e).__name__}: {e}")
            raise ProviderError(self.provider_name, None, f"{type(e).__name__}: {e}") from e

    def serialize_messages(self, messages: list[Message]) -> list[dict]:
        return self._prepare_messages([self._coerce_message(m) for m in messages])

    @staticmethod
    def _coerce_message(message: Message | dict) -> Message:
        if isinstance(message, Message):
            return message
        return Message.model_validate(message)

    @staticmethod
    def _call_names(messages: list[Message]) -> dict[str, str]:
        """call id -> capability name, over every call in ``messages``."""
        return {tc.id: tc.name for m in messages for tc in m.tool_calls}

    @staticmethod
    def _as_dict(raw: Any) -> dict:
        if hasattr(raw, "model_dump"):
            return raw.model_dump()
        return raw

    # Abstract methods --------------------------------------------------------

    @abstractmethod
    def _prepare_messages(self, messages: list[Message]) -> list[dict]:
        """Maps our framework-specific message list into provider-specific messages

        Note that this might involve agglomerating content blocks, or splitting
        out into multiple messages.
        """
        pass

    @abstractmethod
    def deserialize_messages(self, provider_messages: list[dict]) -> list[Message]:
        """Inverse of ``_prepare_messages``."""
        pass

    @abstractmethod
    def pydantic_to_native_tool(self, tool: ToolSchema) -> dict:
        """Converts a capability descriptor into this provider's tool schema."""
        pass

    @abstractmethod
    def _build_payload(self, request: LLMRequest) -> dict:
        pass

    @abstractmethod
    def _send(self, payload: dict) -> Any:
        """Perform the HTTP exchange, raising ProviderError on failure."""
        pass

    @abstractmethod
    def _parse_response(self, raw: Any) -> LLMResponse:
        pass
