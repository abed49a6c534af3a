# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Flattened renderings of a thread and all of its descendants."""
import json

from typing import Any, Optional, TYPE_CHECKING
from datetime import datetime

from .models import StoredMessage, ThreadNode
from ..types.common import Role, ThreadType

if TYPE_CHECKING:
    from .session_store import SessionStore

MAX_CONTENT_CHARS = 2000


def _truncate(text: str, limit: int = MAX_CONTENT_CHARS) -> str:
    if len(text) > limit:
        return text[:limit] + "\n... (truncated)"
    return text


def _speaker(message: StoredMessage, agent_name: str) -> str:
    if message.role == Role.USER:
        return message.sender or "human"
    return agent_name


def _render_message(message: StoredMessage, agent_name: str) -> list[str]:
    lines: list[str] = []
    if message.role == Role.TOOL:
        for result in message.tool_results:
            name = result.get("name", "unknown")
            lines.append(f"<details><summary>Result from <code>{name}</code></summary>")
            lines.append("")
            lines.append("```")
            lines.append(_truncate(str(result.get("content", ""))))
            lines.append("```")
            lines.append("</details>")
            lines.append("")
        return lines

    if message.content:
        lines.append(f"**{_speaker(message, agent_name)}:**")
        lines.append("")
        lines.append(_truncate(message.content))
        lines.append("")

    for call in message.tool_calls:
        name = call.get("name", "unknown")
        lines.append(f"<details><summary>Tool call: <code>{name}</code></summary>")
        lines.append("")
        lines.append("```json")
        lines.append(_truncate(json.dumps(call.get("arguments", {}), indent=2)))
        lines.append("```")
        lines.append("</details>")
        lines.append("")
    return lines


def _render_node(store: "SessionStore", node: ThreadNode, depth: int) -> list[str]:
    session = node.session
    if depth == 0:
        heading = f"## {session.agent_name}"
    elif session.thread_type == ThreadType.DELEGATION:
        heading = f"### Delegation → {session.agent_name}"
    else:
        heading = f"### {session.thread_type.value.capitalize()} → {session.agent_name}"

    lines = [heading, ""]
    if session.name:
        lines.append(f"**Thread**: {session.name}")
    if session.parent_agent and depth > 0:
        lines.append(f"*Created by {session.parent_agent}*")
    lines.append(f"*Started {session.created_at:%Y-%m-%d %H:%M:%S}*")
    lines.append("")

    for message in store.get_messages(session.id):
        lines.extend(_render_message(message, session.agent_name))

    for child in node.children:
        lines.extend(_render_node(store, child, depth + 1))
    return lines


def export_thread_tree_markdown(store: "SessionStore", session_id: str) -> Optional[str]:
    """Human-readable export of a thread tree. None for unknown ids."""
    tree = store.thread_tree(session_id)
    if tree is None:
        return None

    root = tree.session
    usage = store.thread_tree_usage(session_id)
    lines = [
        "# Thread Export",
        "",
        f"**Root agent**: {root.agent_name}",
        f"**Threads**: {len(tree.session_ids())}",
        f"**Tokens**: {usage.total_tokens} (est. ${usage.estimated_cost_usd:.4f})",
        f"**Exported**: {datetime.now():%Y-%m-%d %H:%M:%S}",
        "",
        "---",
        "",
    ]
    lines.extend(_render_node(store, tree, depth=0))
    return "\n".join(lines).rstrip() + "\n"


def _node_json(store: "SessionStore", node: ThreadNode) -> dict[str, Any]:
    return {
        "session": node.session.to_dict(),
        "messages": [m.to_dict() for m in store.get_messages(node.session.id)],
        "children": [_node_json(store, child) for child in node.children],
    }


def export_thread_tree_json(store: "SessionStore", session_id: str) -> Optional[dict[str, Any]]:
    """Structured export: nested ``{session, messages, children}``."""
    tree = store.thread_tree(session_id)
    if tree is None:
        return None
    return _node_json(store, tree)
