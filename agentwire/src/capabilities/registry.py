# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from __future__ import annotations

import logging
import threading

from contextlib import contextmanager
from typing import Iterator

from .base import Capability
from ..errors import DuplicateNameError, NotFoundError

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class ReadWriteLock:
    """Many concurrent readers, or one writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class Registry:
    """Name -> Capability catalog shared by every agent of a runtime.

    Read-mostly after load. Lookups may run concurrently from many agent
    threads; register/unregister are serialized against them.
    """

    def __init__(self):
        self._capabilities: dict[str, Capability] = {}
        self._lock = ReadWriteLock()

    def register(self, capability: Capability) -> Capability:
        with self._lock.write():
            if capability.name in self._capabilities:
                raise DuplicateNameError(capability.name)
            self._capabilities[capability.name] = capability
        logger.debug(f"Registered {capability!r}")
        return capability

    def unregister(self, name: str) -> bool:
        with self._lock.write():
            removed = self._capabilities.pop(name, None)
        return removed is not None

    def get(self, name: str) -> Capability | None:
        """Return the capability, or None when no such name is registered."""
        with self._lock.read():
            return self._capabilities.get(name)

    def resolve(self, name: str) -> Capability:
        capability = self.get(name)
        if capability is None:
            raise NotFoundError("capability", name)
        return capability

    def list(self) -> list[Capability]:
        """All capabilities in registration order."""
        with self._lock.read():
            return list(self._capabilities.values())

    def names(self) -> list[str]:
        with self._lock.read():
            return list(self._capabilities)

    def agents(self) -> list[Capability]:
        return [c for c in self.list() if c.KIND == "agent"]

    def primitives(self) -> list[Capability]:
        return [c for c in self.list() if c.KIND == "primitive"]

    def __contains__(self, name: str) -> bool:
        with self._lock.read():
            return name in self._capabilities

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._capabilities)
