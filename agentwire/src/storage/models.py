# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Data models for the session/thread store.

These dataclasses represent the rows stored in the database and the
aggregates computed from them.
"""

import json

from typing import Any, Optional
from datetime import datetime
from dataclasses import dataclass, field

from ..types.common import Role, ThreadType
from ..types.llm_types import Message, TokenUsage


@dataclass
class Session:
    """
    A persisted conversation thread belonging to one agent.

    Sessions form a tree: roots have no parent, delegation threads point at
    the delegating agent's session and forks at the session they copied.
    """

    id: str
    agent_name: str
    created_at: datetime
    updated_at: datetime
    name: Optional[str] = None
    parent_session_id: Optional[str] = None
    parent_agent: Optional[str] = None
    thread_type: ThreadType = ThreadType.ROOT
    metadata: dict = field(default_factory=dict)
    message_count: int = 0

    @property
    def is_root(self) -> bool:
        return self.parent_session_id is None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "agent_name": self.agent_name,
            "name": self.name,
            "parent_session_id": self.parent_session_id,
            "parent_agent": self.parent_agent,
            "thread_type": self.thread_type.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "metadata": self.metadata,
            "message_count": self.message_count,
        }

    @classmethod
    def from_row(cls, row) -> "Session":
        keys = row.keys()
        return cls(
            id=row["id"],
            agent_name=row["agent_name"],
            name=row["name"],
            parent_session_id=row["parent_session_id"],
            parent_agent=row["parent_agent"],
            thread_type=ThreadType(row["thread_type"] or ThreadType.ROOT.value),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            message_count=row["message_count"] if "message_count" in keys else 0,
        )


@dataclass
class StoredMessage:
    """A message row, with its database id and owning session."""

    id: int
    session_id: str
    role: Role
    content: Optional[str]
    created_at: datetime
    sender: Optional[str] = None
    tool_calls: list[dict] = field(default_factory=list)
    tool_results: list[dict] = field(default_factory=list)
    usage: Optional[dict] = None

    def to_message(self) -> Message:
        return Message(
            role=self.role,
            content=self.content,
            tool_calls=self.tool_calls,
            tool_results=self.tool_results,
            sender=self.sender,
            usage=TokenUsage(**self.usage) if self.usage else None,
            created_at=self.created_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "sender": self.sender,
            "tool_calls": self.tool_calls,
            "tool_results": self.tool_results,
            "usage": self.usage,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row) -> "StoredMessage":
        return cls(
            id=row["id"],
            session_id=row["session_id"],
            role=Role(row["role"]),
            content=row["content"],
            sender=row["sender"],
            tool_calls=json.loads(row["tool_calls"]) if row["tool_calls"] else [],
            tool_results=json.loads(row["tool_results"]) if row["tool_results"] else [],
            usage=json.loads(row["usage"]) if row["usage"] else None,
            created_at=datetime.fromisoformat(row["created_at"]),
        )


@dataclass
class ModelUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    estimated_cost_usd: float = 0.0
    calls: int = 0

    def __add__(self, other: "ModelUsage") -> "ModelUsage":
        return ModelUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            estimated_cost_usd=self.estimated_cost_usd + other.estimated_cost_usd,
            calls=self.calls + other.calls,
        )


@dataclass
class UsageSummary:
    """Token and cost totals, overall and per model."""

    input_tokens: int = 0
    output_tokens: int = 0
    estimated_cost_usd: float = 0.0
    calls: int = 0
    by_model: dict[str, ModelUsage] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def add_call(self, model: str, input_tokens: int, output_tokens: int, cost: float):
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        self.estimated_cost_usd += cost
        self.calls += 1
        self.by_model[model] = self.by_model.get(model, ModelUsage()) + ModelUsage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            estimated_cost_usd=cost,
            calls=1,
        )

    def __add__(self, other: "UsageSummary") -> "UsageSummary":
        by_model = dict(self.by_model)
        for model, usage in other.by_model.items():
            by_model[model] = by_model.get(model, ModelUsage()) + usage
        return UsageSummary(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            estimated_cost_usd=self.estimated_cost_usd + other.estimated_cost_usd,
            calls=self.calls + other.calls,
            by_model=by_model,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "estimated_cost_usd": round(self.estimated_cost_usd, 6),
            "calls": self.calls,
            "by_model": {
                model: {
                    "input_tokens": u.input_tokens,
                    "output_tokens": u.output_tokens,
                    "estimated_cost_usd": round(u.estimated_cost_usd, 6),
                    "calls": u.calls,
                }
                for model, u in self.by_model.items()
            },
        }


@dataclass
class EnvDataEntry:
    """Key/value data shared by every thread of one delegation tree."""

    root_thread_id: str
    key: str
    short_description: str
    value: Any
    stored_by: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self, include_value: bool = True) -> dict:
        data = {
            "key": self.key,
            "short_description": self.short_description,
            "stored_by": self.stored_by,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if include_value:
            data["value"] = self.value
        return data


@dataclass
class ThreadNode:
    """A session and its descendants."""

    session: Session
    children: list["ThreadNode"] = field(default_factory=list)

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()

    def session_ids(self) -> list[str]:
        return [node.session.id for node in self.walk()]
