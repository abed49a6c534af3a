# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""LLM integration module.

This module provides a unified interface for interacting with various LLM
providers including Anthropic, OpenAI, Gemini and OpenAI-compatible local
servers.
"""

import logging

from .factory import create_provider, available_providers, PROVIDERS
from .metering import calculate_cost, PRICING
from .providers import BaseProvider, ScriptedProvider

# Quieten LLM API call logs to make stdout more useful
logging.getLogger("httpx").setLevel(logging.WARNING)

__all__ = [
    "BaseProvider",
    "ScriptedProvider",
    "create_provider",
    "available_providers",
    "calculate_cost",
    "PROVIDERS",
    "PRICING",
]
