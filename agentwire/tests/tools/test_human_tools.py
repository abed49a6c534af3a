# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import threading

import pytest

from src.errors import HumanQueueClosed, ValidationError


@pytest.fixture
def runtime(make_runtime):
    return make_runtime()


def ask(runtime, arguments: dict, agent: str = "planner", session_id: str | None = None) -> str:
    context = runtime.context(calling_agent=agent, session_id=session_id)
    return runtime.registry.resolve("ask_human").receive(arguments, context)


def answer_when_asked(runtime, answer):
    seen = []

    def listener(event, request):
        if event == "added":
            seen.append(request)
            threading.Thread(target=runtime.human_queue.respond, args=(request.id, answer)).start()

    runtime.human_queue.subscribe(listener)
    return seen


class TestAskHuman:
    def test_blocks_until_answered(self, runtime):
        seen = answer_when_asked(runtime, "Tuesday")

        assert ask(runtime, {"question": "Which day?"}) == "Tuesday"
        assert [(r.capability, r.question, r.options) for r in seen] == [("planner", "Which day?", None)]
        assert runtime.human_queue.count() == 0

    @pytest.mark.parametrize(
        "options, expected",
        [("red, green ,blue", ["red", "green", "blue"]), (["a", "b"], ["a", "b"]), (" , ", None)],
    )
    def test_options(self, runtime, options, expected):
        seen = answer_when_asked(runtime, "ok")
        ask(runtime, {"question": "Pick", "options": options})
        assert seen[0].options == expected

    def test_non_string_answers_are_rendered(self, runtime):
        answer_when_asked(runtime, 42)
        assert ask(runtime, {"question": "How many?"}) == "42"

    def test_exchange_is_published(self, runtime, store):
        session = store.create_session("planner")
        answer_when_asked(runtime, "yes")
        ask(runtime, {"question": "Proceed?"}, session_id=session)

        route = [(e.sender, e.recipient, e.message, e.session_id) for e in runtime.bus.entries()]
        assert route == [
            ("planner", "human", "Proceed?", session),
            ("human", "planner", "yes", session),
        ]

    def test_closed_queue_propagates(self, runtime):
        runtime.human_queue.close()
        with pytest.raises(HumanQueueClosed):
            ask(runtime, {"question": "Anyone there?"})

    def test_question_is_required(self, runtime):
        with pytest.raises(ValidationError, match="question: Field required"):
            ask(runtime, {})
