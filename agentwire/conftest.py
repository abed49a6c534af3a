# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import pytest

from src.config import Settings
from src.llm.providers import ScriptedProvider
from src.runtime import Runtime
from src.storage import SessionStore

# Optional: Define custom command-line options for your markers
def pytest_addoption(parser):
    parser.addoption(
        "--run-llm",
        action="store_true",
        default=False,
        help="Run tests marked with 'uses_llm'",
    )

# Skip tests based on markers unless the corresponding option is provided
def pytest_collection_modifyitems(config, items):
    if not config.getoption("--run-llm"):
        skip_llm = pytest.mark.skip(reason="need --run-llm option to run")
        for item in items:
            if "uses_llm" in item.keywords:
                item.add_marker(skip_llm)


@pytest.fixture
def store():
    session_store = SessionStore()
    yield session_store
    session_store.close()


@pytest.fixture
def test_settings():
    return Settings(
        SESSION_DB=None,
        OBJECTS_DIR=None,
        MAX_ITERATIONS=8,
        BUS_CAPACITY=100,
    )


@pytest.fixture
def make_runtime(store, test_settings):
    """Build a runtime whose agents are driven by a ScriptedProvider."""
    runtimes = []

    def _make(script=(), objects_dir=None) -> Runtime:
        llm = script if isinstance(script, ScriptedProvider) else ScriptedProvider(script)
        runtime = Runtime(
            settings=test_settings,
            llm=llm,
            session_store=store,
            objects_dir=objects_dir,
        )
        runtimes.append(runtime)
        return runtime

    yield _make
    for runtime in runtimes:
        runtime.close()
