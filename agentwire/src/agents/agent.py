# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The LLM-backed capability and its tool-calling execution loop.

One turn runs BUILD_REQUEST -> AWAIT_MODEL -> (DISPATCH_CALLS -> AWAIT_MODEL)*
-> DONE. Every call and result is published on the bus and persisted to the
session store in the order it happens. A failing capability never aborts the
loop; only provider failures and the iteration ceiling end a turn early.
"""
import json
import logging
import threading

from typing import Any

from .agent_calling import HUMAN, execute_agent_call
from .loader import save_definition
from ..capabilities.base import Capability, Context
from ..errors import (
    AgentBusyError,
    AgentwireError,
    HumanQueueClosed,
    LoopLimitExceeded,
    ValidationError,
    error_text,
)
from ..llm.providers.base_provider import BaseProvider
from ..storage.session_store import SessionStore
from ..types.agent_types import AgentDefinition, AgentMetrics, AgentStatus
from ..types.common import Role, ThreadType
from ..types.llm_types import (
    LLMRequest,
    LLMResponse,
    Message,
    ToolCall,
    ToolResult,
    ToolSchema,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

EMPTY_RESPONSE = "(no response)"
INTERRUPTED = "Turn interrupted before this call completed"


class Agent(Capability):
    """
    An LLM-backed capability with a persona, a conversation history and a
    tool-calling loop.

    Turns against one agent are serialized by a reentrant lock, which also
    guards live edits (prompt and capability changes) and session switches.
    The lock is reentrant so an agent may edit itself, or be called back by
    an agent it delegated to, on the same thread.
    """

    KIND = "agent"

    def __init__(
        self,
        definition: AgentDefinition,
        llm: BaseProvider,
        session_store: SessionStore | None = None,
        max_iterations: int = 25,
        delegation_timeout: float | None = None,
    ):
        self.definition = definition
        self.llm = llm
        self.session_store = session_store
        self.max_iterations = max_iterations
        self.delegation_timeout = delegation_timeout

        self.session_id: str | None = None
        self.history: list[Message] = []
        self.status = AgentStatus.IDLE
        self.metrics = AgentMetrics()

        self._turn_lock = threading.RLock()

    # Capability interface -----------------------------------------------------

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def description(self) -> str:
        return self.definition.description or f"Agent {self.definition.name}"

    @property
    def body(self) -> str:
        return self.definition.body

    @property
    def capabilities(self) -> list[str]:
        return list(self.definition.capabilities)

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "message": {
                    "type": "string",
                    "description": f"The message or request to send to {self.name}",
                }
            },
            "required": ["message"],
        }

    def receive(self, message: Any, context: Context) -> str:
        """Run one turn. Calls from another agent go to a delegation thread."""
        text = self._message_text(message)
        if context.calling_agent is not None:
            return execute_agent_call(self, text, context)

        with self._turn_lock:
            self._ensure_session()
            context.bus.publish(HUMAN, self.name, text, session_id=self.session_id)
            result = self._run_turn(text, HUMAN, context)
            context.bus.publish(self.name, HUMAN, result, session_id=self.session_id)
            return result

    def receive_in_thread(
        self,
        message: str,
        context: Context,
        thread_id: str | None,
        sender: str | None = None,
    ) -> str:
        """Run a turn against another thread, restoring the active one afterwards.

        Waits at most ``delegation_timeout`` seconds for a turn already in
        progress, then raises AgentBusyError.
        """
        timeout = -1 if self.delegation_timeout is None else self.delegation_timeout
        if not self._turn_lock.acquire(timeout=timeout):
            logger.warning(f"{sender} gave up waiting for {self.name} after {timeout}s")
            raise AgentBusyError(self.name, timeout)
        try:
            saved_session, saved_history = self.session_id, self.history
            self.session_id = thread_id
            self.history = self._load_history(thread_id)
            try:
                return self._run_turn(message, sender or HUMAN, context)
            finally:
                self.session_id, self.history = saved_session, saved_history
        finally:
            self._turn_lock.release()

    def _message_text(self, message: Any) -> str:
        if isinstance(message, str):
            return message
        if isinstance(message, dict):
            if "message" in message:
                value = message["message"]
                return value if isinstance(value, str) else json.dumps(value)
            if not message:
                raise ValidationError(self.name, "missing required field 'message'")
            return json.dumps(message)
        if message is None:
            raise ValidationError(self.name, "missing required field 'message'")
        return str(message)

    # Prompt construction ------------------------------------------------------

    def allowed_capabilities(self, context: Context) -> list[str]:
        """Declared capabilities followed by the universal ones, de-duplicated."""
        names = self.capabilities
        for capability in context.registry.list():
            if capability.KIND == "universal" and capability.name not in names:
                names.append(capability.name)
        return names

    def can_call(self, name: str, context: Context) -> bool:
        return name in self.allowed_capabilities(context)

    def tool_schemas(self, context: Context) -> list[ToolSchema]:
        schemas = []
        for name in self.allowed_capabilities(context):
            capability = context.registry.get(name)
            if capability is None:
                logger.warning(f"{self.name} declares unknown capability '{name}'")
                continue
            schemas.append(capability.descriptor())
        return schemas

    def system_prompt(self, context: Context) -> str:
        universal = [
            c.name for c in context.registry.list() if c.KIND == "universal"
        ]
        declared = ", ".join(self.capabilities) or "(none)"
        return (
            f"{self.body}\n\n"
            "## System Context\n\n"
            f'You are an agent named "{self.name}" in a shared runtime. '
            "Tools and other agents are reached through your capabilities; "
            "calling another agent sends it a message and returns its reply.\n\n"
            "### How you get called\n\n"
            "You may receive messages from:\n"
            "- **A human** talking to you directly\n"
            "- **Another agent** that delegated a task to you as part of a larger workflow\n\n"
            "When another agent calls you, the message ends with a [Delegation Context] "
            "block saying who called you and why. Agents in the same workflow may also "
            "leave shared data for you; call list_env_data to see what has been stored.\n\n"
            "### Your capabilities\n\n"
            f'Tools that modify an agent accept "self" or "{self.name}" to target you.\n'
            f"Declared capabilities: {declared}\n"
            f"Always available: {', '.join(universal) or '(none)'}\n"
        )

    def build_request(self, context: Context) -> LLMRequest:
        return LLMRequest(
            system=self.system_prompt(context),
            messages=list(self.history),
            tools=self.tool_schemas(context),
        )

    # Execution loop -----------------------------------------------------------

    def _run_turn(self, text: str, sender: str, context: Context) -> str:
        self.metrics.turns += 1
        self._append(Message.user(text, sender=None if sender == HUMAN else sender))
        try:
            return self._loop(context)
        except HumanQueueClosed:
            self._close_dangling_calls()
            raise
        except AgentwireError as e:
            logger.error(f"Turn of {self.name} terminated: {e}")
            self._close_dangling_calls()
            return error_text(e)
        finally:
            self.status = AgentStatus.IDLE

    def _loop(self, context: Context) -> str:
        for iteration in range(self.max_iterations):
            self.status = AgentStatus.THINKING
            request = self.build_request(context)

            logger.info(f"{self.name}: awaiting completion for iteration {iteration}")
            response = self.llm.chat(request)
            self._update_metrics(response)

            if response.tool_calls:
                self._append(
                    Message.assistant(
                        response.content or None,
                        response.tool_calls,
                        usage=response.usage,
                    )
                )
                results = [self._dispatch(tc, context) for tc in response.tool_calls]
                self._append(Message.tool(results))
                continue

            content = response.content.strip()
            if not content:
                logger.warning(f"{self.name} returned an empty response")
                content = EMPTY_RESPONSE
            self._append(Message.assistant(content, usage=response.usage))
            return content

        raise LoopLimitExceeded(self.name, self.max_iterations)

    def _dispatch(self, call: ToolCall, context: Context) -> ToolResult:
        if not self.can_call(call.name, context):
            return ToolResult(
                call_id=call.id,
                name=call.name,
                content=error_text(
                    f"Capability '{call.name}' is not available to {self.name}. "
                    f"Available: {', '.join(self.allowed_capabilities(context))}"
                ),
            )

        capability = context.registry.get(call.name)
        if capability is None:
            return ToolResult(
                call_id=call.id,
                name=call.name,
                content=error_text(f"Unknown capability: {call.name}"),
            )

        self.status = AgentStatus.CALLING_TOOL
        self.metrics.tool_calls += 1
        context.bus.publish(self.name, call.name, call.arguments, session_id=self.session_id)

        call_context = context.for_call(self.name, call.name, self.session_id)
        try:
            output = capability.receive(call.arguments, call_context)
        except HumanQueueClosed:
            raise
        except Exception as e:
            logger.error(f"Capability {call.name} failed for {self.name}: {e}")
            self.metrics.failed_tool_calls += 1
            output = error_text(e)

        context.bus.publish(call.name, self.name, output, session_id=self.session_id)
        return ToolResult(call_id=call.id, name=call.name, content=str(output))

    def _update_metrics(self, response: LLMResponse) -> None:
        self.metrics.llm_calls += 1
        self.metrics.input_tokens += response.usage.input_tokens
        self.metrics.output_tokens += response.usage.output_tokens

    # History ------------------------------------------------------------------

    def _append(self, message: Message) -> None:
        if message.role == Role.TOOL:
            previous = self.history[-1] if self.history else None
            issued = {tc.id for tc in previous.tool_calls} if previous else set()
            unknown = [r.call_id for r in message.tool_results if r.call_id not in issued]
            if unknown:
                raise ValueError(f"Tool results reference unknown call ids: {unknown}")

        self.history.append(message)
        if self.session_store is not None and self.session_id is not None:
            self.session_store.append_message(self.session_id, message)

    def _close_dangling_calls(self) -> None:
        """Answer calls left without results so the history stays well formed."""
        if not self.history:
            return
        last = self.history[-1]
        if last.role == Role.ASSISTANT and last.tool_calls:
            self._append(
                Message.tool(
                    [
                        ToolResult(call_id=tc.id, name=tc.name, content=error_text(INTERRUPTED))
                        for tc in last.tool_calls
                    ]
                )
            )

    def _load_history(self, session_id: str | None) -> list[Message]:
        if self.session_store is None or session_id is None:
            return []
        return self.session_store.load_history(session_id)

    def _ensure_session(self) -> None:
        if self.session_id is not None or self.session_store is None:
            return
        session = self.session_store.get_or_create_session(self.name)
        self.session_id = session.id
        self.history = self._load_history(session.id)

    # Sessions -----------------------------------------------------------------

    def new_thread(self, name: str | None = None) -> str | None:
        with self._turn_lock:
            self.history = []
            if self.session_store is None:
                self.session_id = None
                return None
            thread_type = ThreadType.CONTINUATION if self.session_id else ThreadType.ROOT
            self.session_id = self.session_store.create_session(
                self.name, thread_type=thread_type, name=name
            )
            return self.session_id

    def switch_session(self, session_id: str) -> None:
        with self._turn_lock:
            if self.session_store is None:
                raise AgentwireError("Session switching requires a session store")
            session = self.session_store.require_session(session_id)
            if session.agent_name != self.name:
                raise AgentwireError(
                    f"Session {session_id} belongs to {session.agent_name}, not {self.name}"
                )
            self.session_id = session_id
            self.history = self._load_history(session_id)

    def fork_thread(self, up_to_message_id: int | None = None, name: str | None = None) -> str:
        with self._turn_lock:
            if self.session_store is None or self.session_id is None:
                raise AgentwireError("Forking requires an active persisted session")
            fork_id = self.session_store.fork_session(
                self.session_id, up_to_message_id=up_to_message_id, name=name
            )
            self.session_id = fork_id
            self.history = self._load_history(fork_id)
            return fork_id

    def reload_history(self) -> None:
        with self._turn_lock:
            self.history = self._load_history(self.session_id)

    # Live edits ---------------------------------------------------------------

    def add_capability(self, name: str) -> bool:
        with self._turn_lock:
            if name in self.definition.capabilities:
                return False
            self.definition.capabilities.append(name)
            self._persist_definition()
            return True

    def remove_capability(self, name: str) -> bool:
        with self._turn_lock:
            if name not in self.definition.capabilities:
                return False
            self.definition.capabilities.remove(name)
            self._persist_definition()
            return True

    def update_body(self, body: str) -> None:
        with self._turn_lock:
            self.definition.body = body
            self._persist_definition()

    def _persist_definition(self) -> None:
        if self.definition.path is not None:
            save_definition(self.definition)

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "capabilities": self.capabilities,
            "status": self.status.value,
            "session_id": self.session_id,
            "messages": len(self.history),
            "metrics": self.metrics.model_dump(),
        }
