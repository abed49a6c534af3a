# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Per-model token pricing, in USD per one million tokens."""

# (input, output)
PRICING: dict[str, tuple[float, float]] = {
    # OpenAI
    "gpt-4.1": (2.00, 8.00),
    "gpt-4.1-mini": (0.40, 1.60),
    "gpt-4.1-nano": (0.10, 0.40),
    "gpt-4o": (2.50, 10.00),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-5.2": (2.00, 8.00),
    "o1": (15.00, 60.00),
    "o3-mini": (1.10, 4.40),
    # Anthropic
    "claude-opus-4": (15.00, 75.00),
    "claude-sonnet-4-5": (3.00, 15.00),
    "claude-haiku-4-5": (1.00, 5.00),
    # Gemini
    "gemini-2.5-pro": (1.25, 10.00),
    "gemini-2.5-flash": (0.15, 0.60),
    "gemini-3-flash-preview": (0.15, 0.60),
}


def lookup_rates(model: str | None) -> tuple[float, float] | None:
    """Exact match first, then the longest known prefix (for dated model ids)."""
    if not model:
        return None
    if model in PRICING:
        return PRICING[model]
    prefixes = [known for known in PRICING if model.startswith(known)]
    if not prefixes:
        return None
    return PRICING[max(prefixes, key=len)]


def calculate_cost(model: str | None, input_tokens: int, output_tokens: int) -> float:
    """Estimated USD cost of one call. Unknown models cost nothing."""
    rates = lookup_rates(model)
    if rates is None:
        return 0.0
    input_rate, output_rate = rates
    return (input_tokens * input_rate + output_tokens * output_rate) / 1_000_000
