# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Rendezvous between agent threads that need a human decision and the
external transport (terminal, web server) that collects it.

Each request owns its own condition variable, so resolving one request never
delays an unrelated waiter. The queue-level lock only guards the pending map
and is never held while waiting.
"""
import uuid
import logging
import threading

from typing import Any, Callable
from datetime import datetime
from dataclasses import field, dataclass

from ..errors import HumanQueueClosed, NotFoundError

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

QueueListener = Callable[[str, "HumanRequest"], Any]


@dataclass
class HumanRequest:
    """A question waiting on a human answer"""

    capability: str
    question: str
    options: list[str] | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.now)
    response: Any = None
    resolved: bool = False
    cancelled: bool = False

    _cond: threading.Condition = field(
        default_factory=threading.Condition, repr=False, compare=False
    )

    def resolve(self, value: Any) -> bool:
        """Set the response. Only the first call has any effect."""
        with self._cond:
            if self.resolved or self.cancelled:
                return False
            self.response = value
            self.resolved = True
            self._cond.notify_all()
            return True

    def cancel(self) -> bool:
        with self._cond:
            if self.resolved or self.cancelled:
                return False
            self.cancelled = True
            self._cond.notify_all()
            return True

    def wait(self, timeout: float | None = None) -> Any:
        """Block until resolved. Raises HumanQueueClosed if cancelled and
        TimeoutError if ``timeout`` elapses first."""
        with self._cond:
            finished = self._cond.wait_for(
                lambda: self.resolved or self.cancelled, timeout=timeout
            )
            if not finished:
                raise TimeoutError(f"No response to human request {self.id}")
            if self.cancelled:
                raise HumanQueueClosed(f"Human request {self.id} was cancelled")
            return self.response

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "capability": self.capability,
            "question": self.question,
            "options": self.options,
            "created_at": self.created_at.isoformat(),
            "resolved": self.resolved,
        }


class HumanQueue:
    def __init__(self):
        self._pending: dict[str, HumanRequest] = {}
        self._listeners: list[QueueListener] = []
        self._lock = threading.Lock()
        self._closed = False

    def submit(
        self, capability: str, question: str, options: list[str] | None = None
    ) -> HumanRequest:
        """Create and register a pending request without blocking."""
        request = HumanRequest(
            capability=capability, question=question, options=options or None
        )
        with self._lock:
            if self._closed:
                raise HumanQueueClosed("Human queue is closed")
            self._pending[request.id] = request
        logger.info(f"Human request {request.id} from {capability}: {question}")
        self._notify("added", request)
        return request

    def wait(self, request_id: str, timeout: float | None = None) -> Any:
        request = self.get(request_id)
        if request is None:
            raise NotFoundError("human request", request_id)
        return request.wait(timeout=timeout)

    def enqueue(
        self,
        capability: str,
        question: str,
        options: list[str] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Create a request and suspend the calling thread until it is answered.

        There is no timeout unless one is given; ``close()`` interrupts the
        wait with HumanQueueClosed.
        """
        request = self.submit(capability, question, options)
        try:
            return request.wait(timeout=timeout)
        finally:
            with self._lock:
                self._pending.pop(request.id, None)

    def respond(self, request_id: str, value: Any) -> bool:
        """Resolve one request. Unknown or already resolved ids are a no-op."""
        with self._lock:
            request = self._pending.pop(request_id, None)
        if request is None:
            logger.debug(f"Ignoring response to unknown human request {request_id}")
            return False
        if not request.resolve(value):
            return False
        self._notify("resolved", request)
        return True

    def cancel(self, request_id: str) -> bool:
        with self._lock:
            request = self._pending.pop(request_id, None)
        if request is None:
            return False
        if request.cancel():
            self._notify("resolved", request)
            return True
        return False

    def close(self) -> None:
        """Refuse new requests and wake every waiter with HumanQueueClosed."""
        with self._lock:
            self._closed = True
            pending = list(self._pending.values())
            self._pending.clear()
        for request in pending:
            request.cancel()

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, request_id: str) -> HumanRequest | None:
        with self._lock:
            return self._pending.get(request_id)

    def pending(self) -> list[HumanRequest]:
        with self._lock:
            return sorted(self._pending.values(), key=lambda r: r.created_at)

    def pending_for(self, capability: str) -> list[HumanRequest]:
        return [r for r in self.pending() if r.capability == capability]

    def pending_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for request in self.pending():
            counts[request.capability] = counts.get(request.capability, 0) + 1
        return counts

    def count(self) -> int:
        with self._lock:
            return len(self._pending)

    def subscribe(self, callback: QueueListener) -> None:
        """Register ``callback(event, request)``; event is "added" or "resolved"."""
        with self._lock:
            self._listeners.append(callback)

    def _notify(self, event: str, request: HumanRequest) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(event, request)
            except Exception as e:
                logger.error(f"Error in human queue listener {callback}: {e}")
