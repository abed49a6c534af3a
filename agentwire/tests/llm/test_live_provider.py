# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Round trips against a real provider. Run with --run-llm."""
import pytest

from src.config import Settings
from src.llm import available_providers
from src.runtime import Runtime
from src.types.agent_types import AgentDefinition


@pytest.mark.uses_llm
def test_agent_uses_a_tool_with_a_live_model(tmp_path):
    configured = [name for name, ok in available_providers().items() if ok and name != "ollama"]
    if not configured:
        pytest.skip("no provider credentials in the environment")

    (tmp_path / "secret.txt").write_text("The code word is marmalade.")
    settings = Settings(LLM_PROVIDER=configured[0], SESSION_DB=None, OBJECTS_DIR=None)

    with Runtime(settings=settings) as runtime:
        runtime.add_agent(
            AgentDefinition(
                name="reader",
                capabilities=["read_file"],
                body="You answer questions by reading files. Reply with the single word asked for.",
            )
        )
        reply = runtime.send("reader", f"What is the code word in {tmp_path / 'secret.txt'}?")

        assert "marmalade" in reply.lower()
        assert runtime.agent("reader").metrics.tool_calls >= 1
