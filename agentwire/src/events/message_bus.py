# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Message bus: the observable log of every inter-capability message."""

import logging
import threading

from collections import deque
from typing import TYPE_CHECKING, Any, Callable

from ..types.event_types import BusEntry

if TYPE_CHECKING:
    from ..storage.session_store import SessionStore

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

Subscriber = Callable[[BusEntry], Any]


class MessageBus:
    """
    In-process publish/subscribe log.

    Features:
    - Bounded in-memory tail (ring buffer of the last ``capacity`` entries)
    - Synchronous fan-out to subscribers in registration order
    - Subscriber failures are isolated from publishers and other subscribers
    - Optional unbounded persistence through an attached SessionStore

    Appends are atomic per call. Entries published from one thread keep their
    relative order; no global order is promised across threads.
    """

    def __init__(self, capacity: int = 1000, session_store: "SessionStore | None" = None):
        self._entries: deque[BusEntry] = deque(maxlen=capacity)
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()
        self.session_store = session_store

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def publish(
        self,
        sender: str | None,
        recipient: str | None,
        message: Any,
        session_id: str | None = None,
    ) -> BusEntry:
        """Append an entry and notify every subscriber before returning."""
        entry = BusEntry(
            sender=sender, recipient=recipient, message=message, session_id=session_id
        )
        logger.debug(f"Bus: {entry.format()}")

        with self._lock:
            self._entries.append(entry)
            subscribers = list(self._subscribers)
            if self.session_store is not None:
                try:
                    self.session_store.add_event(entry)
                except Exception as e:
                    logger.warning(f"Failed to persist bus entry: {e}")

        # Subscribers run outside the lock and may publish
        for callback in subscribers:
            try:
                callback(entry)
            except Exception as e:
                logger.error(f"Error in bus subscriber {callback}: {e}")

        return entry

    def subscribe(self, callback: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def recent(self, n: int = 50) -> list[BusEntry]:
        with self._lock:
            if n <= 0:
                return []
            return list(self._entries)[-n:]

    def entries(self) -> list[BusEntry]:
        with self._lock:
            return list(self._entries)

    def format_log(self, n: int = 20) -> str:
        return "\n".join(entry.format() for entry in self.recent(n))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
