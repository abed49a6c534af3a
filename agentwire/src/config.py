# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read from AGENTWIRE_* variables and a .env file."""

    model_config = SettingsConfigDict(
        env_prefix="AGENTWIRE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    LOG_LEVEL: str = "INFO"

    # LLM
    LLM_PROVIDER: str = "anthropic"
    LLM_MODEL: str | None = None
    MAX_ITERATIONS: int = 25
    # Seconds a delegated call waits for a callee that is mid-turn; None waits forever
    DELEGATION_TIMEOUT: float | None = 300.0
    HTTP_TIMEOUT: float = 60.0

    # Message bus / persistence
    BUS_CAPACITY: int = 1000
    SESSION_DB: str | None = None

    # Agent definitions
    OBJECTS_DIR: str | None = None


settings = Settings()
