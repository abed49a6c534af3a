# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
A module of agent tools
"""

from .base_tool import BaseTool, Primitive
from .file_tools import ReadFile, WriteFile
from .directory_tools import ListFiles
from .http_tools import HttpGet
from .human_tools import AskHuman
from .reflection_tools import Think
from .capability_tools import (
    AddCapability,
    CreateCapability,
    ListCapabilities,
    ModifyPrompt,
    RemoveCapability,
)
from .primitive_tools import (
    AddPrimitive,
    DeletePrimitive,
    ListPrimitives,
    RequestPrimitive,
)
from .env_data_tools import (
    DeleteEnvData,
    GetEnvData,
    ListEnvData,
    StoreEnvData,
    UpdateEnvData,
)

# Tools an agent must declare before it can call them
primitive_tools: list[type[BaseTool]] = [
    ReadFile,
    WriteFile,
    ListFiles,
    HttpGet,
]

# Tools every agent may call without declaring them
universal_tools: list[type[BaseTool]] = [
    AskHuman,
    Think,
    CreateCapability,
    AddCapability,
    RemoveCapability,
    ListCapabilities,
    ModifyPrompt,
    ListPrimitives,
    AddPrimitive,
    DeletePrimitive,
    RequestPrimitive,
    StoreEnvData,
    GetEnvData,
    ListEnvData,
    UpdateEnvData,
    DeleteEnvData,
]
