# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Provider factory.

Maps a provider name (``openai``, ``anthropic``, ``gemini``, ``ollama``,
``openrouter``) onto a configured adapter. Ollama and OpenRouter speak the
OpenAI wire format and reuse the OpenAI adapter with a different base URL.
"""

import os
import logging

from typing import Any

from .providers import AnthropicProvider, BaseProvider, GeminiProvider, OpenAIProvider

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "anthropic"

PROVIDERS: dict[str, dict[str, Any]] = {
    "openai": {
        "adapter": OpenAIProvider,
        "env_key": "OPENAI_API_KEY",
        "default_model": "gpt-4.1",
    },
    "anthropic": {
        "adapter": AnthropicProvider,
        "env_key": "ANTHROPIC_API_KEY",
        "default_model": "claude-haiku-4-5",
    },
    "gemini": {
        "adapter": GeminiProvider,
        "env_key": "GEMINI_API_KEY",
        "default_model": "gemini-2.5-flash",
    },
    "ollama": {
        "adapter": OpenAIProvider,
        "env_key": None,
        "api_key": "ollama",
        "base_url": "http://localhost:11434/v1",
        "default_model": "llama3.2",
    },
    "openrouter": {
        "adapter": OpenAIProvider,
        "env_key": "OPENROUTER_API_KEY",
        "base_url": "https://openrouter.ai/api/v1",
        "default_model": "anthropic/claude-haiku-4.5",
    },
}


def available_providers() -> dict[str, bool]:
    """Provider name -> whether credentials are present in the environment."""
    return {
        name: info["env_key"] is None or bool(os.getenv(info["env_key"]))
        for name, info in PROVIDERS.items()
    }


def create_provider(
    provider: str | None = None,
    model: str | None = None,
    api_key: str | None = None,
    client: Any = None,
    timeout: float = 60.0,
) -> BaseProvider:
    name = (provider or DEFAULT_PROVIDER).lower()
    info = PROVIDERS.get(name)
    if info is None:
        raise ValueError(
            f"Unknown LLM provider: {name}. Available: {', '.join(PROVIDERS)}"
        )

    if api_key is None:
        api_key = info.get("api_key") or (os.getenv(info["env_key"]) if info["env_key"] else None)
    model = model or info["default_model"]
    adapter = info["adapter"]
    logger.info(f"Using {name} provider with model {model}")

    if adapter is OpenAIProvider:
        return OpenAIProvider(
            model=model,
            api_key=api_key,
            base_url=info.get("base_url"),
            timeout=timeout,
            client=client,
            provider_name=name,
        )
    return adapter(model=model, api_key=api_key, timeout=timeout, client=client)
