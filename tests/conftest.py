"""
Shared fixtures: in-memory error store and fake IDE collaborators.
"""

import pytest

from arduino_ai.memory.error_store import ErrorMemoryStore
from arduino_ai.orchestrator.tool_executor import ToolExecutor
from arduino_ai.tools.registry import ToolRegistry

from fakes import FakeCompiler, FakeEditor, FakeTransport


@pytest.fixture
def memory_store():
    """Throwaway in-memory error store."""
    store = ErrorMemoryStore(":memory:", execution_log_size=100)
    yield store
    store._conn.close()


@pytest.fixture
def compiler():
    return FakeCompiler()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def editor():
    return FakeEditor()


@pytest.fixture
def executor(memory_store, compiler, transport, editor):
    """Tool executor wired to every fake collaborator."""
    return ToolExecutor(
        registry=ToolRegistry(),
        memory=memory_store,
        compiler=compiler,
        transport=transport,
        editor=editor,
        serial_buffer_size=50,
    )
