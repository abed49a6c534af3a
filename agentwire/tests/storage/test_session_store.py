# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the sqlite session/thread store."""
import pytest

from src.errors import NotFoundError
from src.storage import SessionStore
from src.types.common import Role, ThreadType
from src.types.event_types import BusEntry
from src.types.llm_types import Message, TokenUsage, ToolCall, ToolResult


def usage(model, input_tokens, output_tokens):
    return TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens, model=model)


class TestSessions:
    def test_create_and_get(self, store):
        session_id = store.create_session("coordinator", name="Planning")
        session = store.get_session(session_id)
        assert session.agent_name == "coordinator"
        assert session.name == "Planning"
        assert session.thread_type == ThreadType.ROOT
        assert session.is_root
        assert store.get_session("missing") is None

    def test_get_or_create_reuses_latest_root(self, store):
        first = store.get_or_create_session("writer")
        again = store.get_or_create_session("writer")
        assert first.id == again.id
        assert store.total_sessions() == 1

    def test_delegation_threads_are_not_resumed(self, store):
        parent = store.create_session("coordinator")
        store.create_session(
            "writer",
            parent_session_id=parent,
            parent_agent="coordinator",
            thread_type=ThreadType.DELEGATION,
        )
        assert store.latest_session("writer") is None
        assert store.latest_session("writer", root_only=False) is not None

    def test_update_and_delete(self, store):
        session_id = store.create_session("writer")
        store.update_session(session_id, name="Draft", metadata={"k": "v"})
        session = store.get_session(session_id)
        assert session.name == "Draft"
        assert session.metadata == {"k": "v"}

        with pytest.raises(NotFoundError):
            store.update_session("missing", name="x")

        assert store.delete_session(session_id) is True
        assert store.get_session(session_id) is None

    def test_search_sessions(self, store):
        a = store.create_session("writer", name="Blog post")
        b = store.create_session("writer")
        store.append_message(b, Message.user("let's talk about giraffes"))
        assert {s.id for s in store.search_sessions("giraffe")} == {b}
        assert {s.id for s in store.search_sessions("Blog")} == {a}


class TestMessages:
    def test_history_round_trip(self, store):
        session_id = store.create_session("writer")
        call = ToolCall(id="c1", name="write_file", arguments={"path": "x.md", "content": "hi"})
        store.append_message(session_id, Message.user("write it", sender="coordinator"))
        store.append_message(session_id, Message.assistant(None, [call], usage=usage("gpt-4o", 10, 2)))
        store.append_message(
            session_id, Message.tool([ToolResult(call_id="c1", name="write_file", content="ok")])
        )
        store.append_message(session_id, Message.assistant("done"))

        history = store.load_history(session_id)
        assert [m.role for m in history] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT]
        assert history[0].sender == "coordinator"
        assert history[1].tool_calls[0] == call
        assert history[1].usage.model == "gpt-4o"
        assert history[2].tool_results[0].call_id == "c1"
        assert store.message_count(session_id) == 4
        assert store.get_session(session_id).message_count == 4

    def test_clear_messages(self, store):
        session_id = store.create_session("writer")
        store.append_message(session_id, Message.user("a"))
        store.append_message(session_id, Message.user("b"))
        assert store.clear_messages(session_id) == 2
        assert store.load_history(session_id) == []
        assert store.total_messages() == 0


class TestLineage:
    def build_tree(self, store):
        root = store.create_session("coordinator")
        child = store.create_session(
            "researcher", parent_session_id=root, parent_agent="coordinator",
            thread_type=ThreadType.DELEGATION,
        )
        grandchild = store.create_session(
            "fetcher", parent_session_id=child, parent_agent="researcher",
            thread_type=ThreadType.DELEGATION,
        )
        return root, child, grandchild

    def test_lineage_and_root(self, store):
        root, child, grandchild = self.build_tree(store)
        assert [s.id for s in store.thread_lineage(grandchild)] == [root, child, grandchild]
        assert store.resolve_root_thread(grandchild) == root
        assert store.resolve_root_thread("missing") is None

    def test_thread_tree(self, store):
        root, child, grandchild = self.build_tree(store)
        tree = store.thread_tree(root)
        assert tree.session_ids() == [root, child, grandchild]
        assert [s.id for s in store.children(root)] == [child]
        assert store.thread_tree("missing") is None

    def test_fork_copies_history_up_to_a_message(self, store):
        source = store.create_session("writer", name="Main")
        first = store.append_message(source, Message.user("one"))
        store.append_message(source, Message.assistant("two"))

        fork = store.fork_session(source, up_to_message_id=first)
        session = store.get_session(fork)
        assert session.thread_type == ThreadType.FORK
        assert session.parent_session_id == source
        assert session.name == "Fork of Main"
        assert [m.content for m in store.load_history(fork)] == ["one"]

        with pytest.raises(NotFoundError):
            store.fork_session(source, up_to_message_id=9999)


class TestUsage:
    def test_usage_per_model(self, store):
        session_id = store.create_session("writer")
        store.append_message(session_id, Message.assistant("a", usage=usage("claude-haiku-4-5", 1_000_000, 0)))
        store.append_message(session_id, Message.assistant("b", usage=usage("mystery-model", 100, 100)))

        summary = store.usage(session_id)
        assert summary.calls == 2
        assert summary.total_tokens == 1_000_200
        assert summary.estimated_cost_usd == pytest.approx(1.0)
        assert summary.by_model["mystery-model"].estimated_cost_usd == 0.0

    def test_tree_usage_sums_descendants(self, store):
        root = store.create_session("coordinator")
        child = store.create_session(
            "writer", parent_session_id=root, thread_type=ThreadType.DELEGATION
        )
        store.append_message(root, Message.assistant("a", usage=usage("gpt-4o", 10, 5)))
        store.append_message(child, Message.assistant("b", usage=usage("gpt-4o", 20, 5)))

        total = store.thread_tree_usage(root)
        assert total.input_tokens == 30
        assert total.output_tokens == 10
        assert total.calls == 2
        assert total.to_dict()["by_model"]["gpt-4o"]["calls"] == 2

    def test_tree_usage_of_unknown_id_is_zero(self, store):
        assert store.thread_tree_usage("missing").total_tokens == 0


class TestEvents:
    def test_add_and_query(self, store):
        store.add_event(BusEntry(sender="a", recipient="b", message="hello", session_id="s1"))
        store.add_event(BusEntry(sender="b", recipient="a", message={"k": 1}, session_id="s2"))

        assert [e["message"] for e in store.get_events("s1")] == ["hello"]
        assert [e["from"] for e in store.recent_events(10)] == ["a", "b"]
        assert len(store.search_events("hello")) == 1
        assert store.total_events() == 2


class TestEnvData:
    def test_crud(self, store):
        root = store.create_session("coordinator")
        store.store_env_data(root, "topic", "What we research", {"name": "bees"}, "coordinator")
        store.store_env_data(root, "audience", "Who reads it", "kids", "coordinator")

        entry = store.get_env_data(root, "topic")
        assert entry.value == {"name": "bees"}
        assert [e.key for e in store.list_env_data(root)] == ["audience", "topic"]
        assert "value" not in store.list_env_data(root)[0].to_dict(include_value=False)

        assert store.update_env_data(root, "topic", "wasps", "researcher") is True
        updated = store.get_env_data(root, "topic")
        assert updated.value == "wasps"
        assert updated.stored_by == "researcher"
        assert updated.short_description == "What we research"
        assert store.update_env_data(root, "missing", 1, "x") is False

        assert store.delete_env_data(root, "topic") is True
        assert store.delete_env_data(root, "topic") is False

    def test_scopes_are_isolated(self, store):
        store.store_env_data("root-a", "k", "d", 1, "x")
        assert store.get_env_data("root-b", "k") is None


def test_file_backed_store_persists(tmp_path):
    path = tmp_path / "sessions.db"
    store = SessionStore(path)
    session_id = store.create_session("writer")
    store.append_message(session_id, Message.user("remember me"))
    store.close()

    reopened = SessionStore(path)
    assert [m.content for m in reopened.load_history(session_id)] == ["remember me"]
    reopened.close()
