"""Shared fixtures."""

import os

import pytest

# Tests never talk to real providers
os.environ.setdefault("LLM_API_KEY", "sk-test-fake-key")

from multitool.agent.session import AgentSession  # noqa: E402
from multitool.tools import ToolRegistry  # noqa: E402
from multitool.tools.evaluate import EvaluateTool  # noqa: E402


@pytest.fixture
def registry() -> ToolRegistry:
    """Evaluate tool plus two small function tools."""
    reg = ToolRegistry([EvaluateTool()])

    @reg.tool("add")
    def _add(a: int, b: int) -> int:
        """Return the sum of two integers (used only for tests)."""
        return a + b

    @reg.tool("echo")
    def _echo(text: str) -> str:
        """Echo the input text back to the caller."""
        return text

    return reg


@pytest.fixture
def session() -> AgentSession:
    return AgentSession()
