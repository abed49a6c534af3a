# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Functions for agent-to-agent delegation"""

import logging

from typing import TYPE_CHECKING

from ..types.common import ThreadType

if TYPE_CHECKING:
    from .agent import Agent
    from ..capabilities.base import Context
    from ..storage.session_store import SessionStore

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

HUMAN = "human"


def delegation_chain(
    store: "SessionStore | None", delegation_thread: str | None, callee: str
) -> str | None:
    """Render the lineage of a delegation thread, e.g.
    ``human → coordinator → solver → you (observer)``."""
    if store is None or delegation_thread is None:
        return None
    lineage = store.thread_lineage(delegation_thread)
    if not lineage:
        return None
    chain = [HUMAN] + [session.agent_name for session in lineage[:-1]]
    chain.append(f"you ({callee})")
    return " → ".join(chain)


def delegation_preamble(
    callee: "Agent", context: "Context", delegation_thread: str | None
) -> str:
    caller_name = context.calling_agent or HUMAN
    caller = context.registry.get(caller_name)

    parts = ["---", "[Delegation Context]", f"Called by: {caller_name}"]
    if caller is not None and caller.description:
        parts.append(f'{caller_name} is: "{caller.description}"')

    chain = delegation_chain(callee.session_store, delegation_thread, callee.name)
    if chain:
        parts.append(f"Delegation chain: {chain}")

    store = callee.session_store
    if store is not None and delegation_thread is not None:
        root = store.resolve_root_thread(delegation_thread)
        if root and store.list_env_data(root):
            parts.append(
                "Shared environment data is available: call list_env_data() to see what has been stored."
            )
    parts.append("---")
    return "\n".join(parts)


def open_delegation_thread(callee: "Agent", context: "Context") -> str | None:
    """Create the child session a delegated turn persists into."""
    store = callee.session_store
    if store is None:
        return None
    thread_id = store.create_session(
        callee.name,
        parent_session_id=context.session_id,
        parent_agent=context.calling_agent,
        thread_type=ThreadType.DELEGATION,
        name=f"Delegation from {context.calling_agent}",
    )
    logger.info(
        f"{context.calling_agent} delegated to {callee.name} in thread {thread_id}"
    )
    return thread_id


def execute_agent_call(callee: "Agent", message: str, context: "Context") -> str:
    """Run a delegated turn of ``callee`` on behalf of ``context.calling_agent``.

    The turn persists into a fresh delegation thread whose parent is the
    caller's session; the callee's own active session is restored afterwards.
    """
    thread_id = open_delegation_thread(callee, context)
    preamble = delegation_preamble(callee, context, thread_id)
    return callee.receive_in_thread(
        f"{message}\n\n{preamble}",
        context,
        thread_id,
        sender=context.calling_agent,
    )
