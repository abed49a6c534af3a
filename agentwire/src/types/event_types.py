# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import json
import time

from enum import Enum
from typing import Any
from pathlib import Path
from datetime import datetime, timedelta
from dataclasses import field, dataclass

SUMMARY_LENGTH = 200


class PayloadEncoder(json.JSONEncoder):
    """JSON encoder for structured bus payloads."""

    def default(self, obj: Any) -> Any:
        if hasattr(obj, "model_dump"):
            return obj.model_dump(mode="json")
        elif hasattr(obj, "__dataclass_fields__"):
            return {f: getattr(obj, f) for f in obj.__dataclass_fields__}
        elif isinstance(obj, Enum):
            return obj.value
        elif isinstance(obj, datetime):
            return obj.isoformat()
        elif isinstance(obj, Path):
            return str(obj)
        elif isinstance(obj, timedelta):
            return obj.total_seconds()
        return super().default(obj)


def payload_text(message: Any) -> str:
    if isinstance(message, str):
        return message
    return json.dumps(message, cls=PayloadEncoder)


def summarize(message: Any, length: int = SUMMARY_LENGTH) -> str:
    """Collapse a payload to a single line of at most ``length`` characters."""
    text = " ".join(payload_text(message).split())
    if len(text) > length:
        return text[:length] + "..."
    return text


@dataclass
class BusEntry:
    """One routed message between two named entities"""

    sender: str | None
    recipient: str | None
    message: Any
    session_id: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)
    monotonic: float = field(default_factory=time.monotonic)
    summary: str = ""

    def __post_init__(self):
        if not self.summary:
            self.summary = summarize(self.message)

    def format(self) -> str:
        sender = self.sender or "*"
        recipient = self.recipient or "*"
        return f"{self.timestamp:%H:%M:%S}  {sender} → {recipient}: {self.summary}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.sender,
            "to": self.recipient,
            "message": self.message,
            "summary": self.summary,
            "session_id": self.session_id,
            "timestamp": self.timestamp.isoformat(),
        }
