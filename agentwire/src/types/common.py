# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from enum import Enum


class Role(str, Enum):
    """Conversation roles"""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ThreadType(str, Enum):
    """How a session came into existence"""

    ROOT = "root"
    CONTINUATION = "continuation"
    DELEGATION = "delegation"
    FORK = "fork"
