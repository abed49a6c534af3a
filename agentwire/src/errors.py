# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Error taxonomy shared by the registry, the execution loop, the provider
adapters and the stores.

Only ProviderError, LoopLimitExceeded and errors raised while building a
request terminate an agent turn. Everything raised inside a dispatched
capability is rendered into a tool result instead (see ``error_text``).
"""


class AgentwireError(Exception):
    """Base class for all errors raised by this package."""


class NotFoundError(AgentwireError):
    """A capability, session or human request id does not exist."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class DuplicateNameError(AgentwireError):
    """A capability with this name is already registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Capability '{name}' is already registered")


class ProviderError(AgentwireError):
    """Transport, auth or rate-limit failure talking to an LLM provider."""

    def __init__(self, provider: str, status: int | None, body: str):
        self.provider = provider
        self.status = status
        self.body = body
        super().__init__(f"{provider} error {status}: {body}")


class ValidationError(AgentwireError):
    """Malformed or missing tool arguments."""

    def __init__(self, capability: str, detail: str):
        self.capability = capability
        self.detail = detail
        super().__init__(f"Invalid arguments for '{capability}': {detail}")


class LoopLimitExceeded(AgentwireError):
    """The tool-call iteration ceiling was reached before a final answer."""

    def __init__(self, agent: str, limit: int):
        self.agent = agent
        self.limit = limit
        super().__init__(
            f"Agent '{agent}' exceeded the limit of {limit} tool-call iterations"
        )


class AgentBusyError(AgentwireError):
    """A delegated call gave up waiting for the callee's current turn to end."""

    def __init__(self, agent: str, timeout: float):
        self.agent = agent
        self.timeout = timeout
        super().__init__(
            f"Agent '{agent}' is busy and did not become free within {timeout:g}s. "
            "It may be waiting on a call back to you."
        )


class HumanQueueClosed(AgentwireError):
    """The human queue was shut down while a request was still pending."""


ERROR_PREFIX = "Error:"


def error_text(exc: BaseException | str) -> str:
    """Render an exception (or message) as tool-result / turn-result text."""
    if isinstance(exc, str):
        detail = exc
    elif isinstance(exc, AgentwireError):
        detail = str(exc)
    else:
        detail = f"{type(exc).__name__}: {exc}"
    return f"{ERROR_PREFIX} {detail}"
