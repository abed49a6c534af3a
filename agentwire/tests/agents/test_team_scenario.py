# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""End-to-end scenarios: a small team of agents loaded from definition files."""
import re

from src.llm.providers import ScriptedProvider, text_response, tool_response
from src.types.common import Role, ThreadType
from src.types.agent_types import AgentDefinition

COORDINATOR = """---
name: coordinator
description: Plans the work and delegates it
capabilities: [researcher, writer]
---
You coordinate a researcher and a writer.
"""

RESEARCHER = """---
name: researcher
description: Finds facts
---
You research topics.
"""

WRITER = """---
name: writer
description: Writes files
capabilities:
  - write_file
---
You write things down.
"""


def agent_name(request) -> str:
    return re.search(r'You are an agent named "(\w+)"', request.system).group(1)


def last_result(request) -> str:
    return request.messages[-1].tool_results[-1].content


def write_objects(directory):
    directory.mkdir()
    (directory / "coordinator.md").write_text(COORDINATOR)
    (directory / "researcher.md").write_text(RESEARCHER)
    (directory / "writer.md").write_text(WRITER)


def team_responder(output_path):
    """Scripted behaviour of each team member, keyed on who is asking."""

    def respond(request):
        name = agent_name(request)
        last = request.messages[-1]

        if name == "coordinator":
            if last.role == Role.USER:
                return tool_response(
                    {"id": "r1", "name": "researcher", "arguments": {"message": "Research bees"}}
                )
            if last.tool_results[-1].name == "researcher":
                facts = last_result(request)
                return tool_response(
                    {"id": "w1", "name": "writer", "arguments": {"message": f"Write up: {facts}"}}
                )
            return text_response(f"Published. Writer said: {last_result(request)}")

        if name == "researcher":
            return text_response("Bees pollinate flowers.", input_tokens=50, output_tokens=10)

        if name == "writer":
            if last.role == Role.USER:
                facts = last.content.split("\n")[0].removeprefix("Write up: ")
                return tool_response(
                    {
                        "id": "f1",
                        "name": "write_file",
                        "arguments": {"path": str(output_path), "content": f"# Bees\n\n{facts}\n"},
                    }
                )
            return text_response(f"Saved. {last_result(request)}")

        raise AssertionError(f"unexpected agent {name}")

    return respond


class TestTeamScenario:
    def test_coordinator_researcher_writer(self, make_runtime, store, tmp_path):
        objects = tmp_path / "objects"
        output = tmp_path / "out" / "bees.md"
        write_objects(objects)

        runtime = make_runtime(ScriptedProvider(team_responder(output)), objects_dir=objects)
        assert sorted(a.name for a in runtime.registry.agents()) == ["coordinator", "researcher", "writer"]

        reply = runtime.send("coordinator", "Write a short note about bees")

        assert reply.startswith("Published. Writer said: Saved. Wrote")
        assert output.read_text() == "# Bees\n\nBees pollinate flowers.\n"

        coordinator = runtime.agent("coordinator")
        tree = store.thread_tree(coordinator.session_id)
        children = [node.session for node in tree.children]
        assert [s.agent_name for s in children] == ["researcher", "writer"]
        assert all(s.thread_type == ThreadType.DELEGATION for s in children)

        route = [(e.sender, e.recipient) for e in runtime.bus.entries()]
        assert route == [
            ("human", "coordinator"),
            ("coordinator", "researcher"),
            ("researcher", "coordinator"),
            ("coordinator", "writer"),
            ("writer", "write_file"),
            ("write_file", "writer"),
            ("writer", "coordinator"),
            ("coordinator", "human"),
        ]

        usage = store.thread_tree_usage(coordinator.session_id)
        assert usage.calls == 6
        assert usage.input_tokens == 5 * 10 + 50

        markdown = store.export(coordinator.session_id)
        assert "### Delegation → researcher" in markdown
        assert "### Delegation → writer" in markdown

    def test_writer_cannot_be_reached_when_undeclared(self, make_runtime, tmp_path):
        objects = tmp_path / "objects"
        write_objects(objects)
        (objects / "coordinator.md").write_text(COORDINATOR.replace("[researcher, writer]", "[researcher]"))

        llm = ScriptedProvider(
            [
                tool_response({"id": "w1", "name": "writer", "arguments": {"message": "write"}}),
                "Gave up.",
            ]
        )
        runtime = make_runtime(llm, objects_dir=objects)

        assert runtime.send("coordinator", "go") == "Gave up."
        refused = runtime.agent("coordinator").history[2].tool_results[0].content
        assert refused.startswith("Error: Capability 'writer' is not available to coordinator.")
        assert len(llm.requests) == 2


class TestHumanInTheLoop:
    def test_agent_waits_for_the_human(self, make_runtime):
        llm = ScriptedProvider(
            [
                tool_response(
                    {
                        "id": "h1",
                        "name": "ask_human",
                        "arguments": {"question": "Publish now?", "options": "yes, no"},
                    }
                ),
                "Publishing as instructed.",
            ]
        )
        runtime = make_runtime(llm)
        agent = runtime.add_agent(AgentDefinition(name="publisher"))
        asked = []

        def answer(event, request):
            if event == "added":
                asked.append((request.capability, request.question, request.options))
                runtime.human_queue.respond(request.id, "yes")

        runtime.human_queue.subscribe(answer)

        assert runtime.send("publisher", "Ready?") == "Publishing as instructed."
        assert asked == [("publisher", "Publish now?", ["yes", "no"])]
        assert agent.history[2].tool_results[0].content == "yes"

        route = [(e.sender, e.recipient, e.message) for e in runtime.bus.entries()]
        assert ("publisher", "human", "Publish now?") in route
        assert ("human", "publisher", "yes") in route
