# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Session/thread persistence.

Conversation turns are stored per session, sessions are linked into
lineage trees (root, delegation, fork) and usage is accounted per model.
"""

from .models import Session, StoredMessage, UsageSummary, ModelUsage, EnvDataEntry, ThreadNode
from .session_store import SessionStore

__all__ = [
    "Session",
    "StoredMessage",
    "UsageSummary",
    "ModelUsage",
    "EnvDataEntry",
    "ThreadNode",
    "SessionStore",
]
