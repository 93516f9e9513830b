"""Tests for the append-only conversation store."""

import pytest

from multitool.core.conversation import ConversationStore
from multitool.core.errors import ConversationError
from multitool.core.schema import (
    Role,
    ToolCall,
    Turn,
)


def _assistant_with_calls(*ids: str) -> Turn:
    return Turn.assistant(None, [ToolCall(id=i, name="echo", arguments="{}") for i in ids])


def test_snapshot_preserves_append_order() -> None:
    store = ConversationStore()
    store.append(Turn.user("hi"))
    store.append(_assistant_with_calls("a", "b"))
    store.append(Turn.tool("a", "1"))
    store.append(Turn.tool("b", "2"))
    store.append(Turn.assistant("done"))

    roles = [turn.role for turn in store.snapshot()]
    assert roles == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.TOOL, Role.ASSISTANT]
    assert len(store) == 5


def test_snapshot_is_a_read_only_copy() -> None:
    store = ConversationStore()
    store.append(Turn.user("hi"))
    snap = store.snapshot()
    store.append(Turn.assistant("hello"))

    assert isinstance(snap, tuple)
    assert len(snap) == 1


def test_turns_are_immutable() -> None:
    turn = Turn.user("hi")

    with pytest.raises(Exception):
        turn.content = "changed"  # type: ignore[misc]


@pytest.mark.parametrize("prefill", [0, 1, 3])
def test_clear_then_snapshot_is_empty(prefill: int) -> None:
    store = ConversationStore()
    for i in range(prefill):
        store.append(Turn.user(str(i)))
    store.append(_assistant_with_calls("pending"))

    store.clear()
    store.clear()

    assert store.snapshot() == ()
    assert store.pending_tool_call_ids == []


def test_tool_turn_must_answer_a_pending_call() -> None:
    store = ConversationStore()
    store.append(_assistant_with_calls("a"))

    with pytest.raises(ConversationError):
        store.append(Turn.tool("zzz", "x"))


def test_tool_call_cannot_be_answered_twice() -> None:
    store = ConversationStore()
    store.append(_assistant_with_calls("a"))
    store.append(Turn.tool("a", "x"))

    with pytest.raises(ConversationError):
        store.append(Turn.tool("a", "again"))


def test_other_turns_rejected_while_calls_are_open() -> None:
    store = ConversationStore()
    store.append(_assistant_with_calls("a", "b"))
    store.append(Turn.tool("a", "x"))

    with pytest.raises(ConversationError):
        store.append(Turn.user("too early"))
    assert store.pending_tool_call_ids == ["b"]
    assert len(store) == 2


def test_duplicate_call_ids_rejected() -> None:
    store = ConversationStore()

    with pytest.raises(ConversationError):
        store.append(_assistant_with_calls("a", "a"))
    assert len(store) == 0


def test_turn_wire_shape() -> None:
    call = ToolCall(id="call_1", name="search_web", arguments='{"query": "x"}')

    assert Turn.assistant(None, [call]).to_message() == {
        "role": "assistant",
        "content": None,
        "tool_calls": [
            {
                "id": "call_1",
                "type": "function",
                "function": {"name": "search_web", "arguments": '{"query": "x"}'},
            }
        ],
    }
    assert Turn.tool("call_1", "ok").to_message() == {
        "role": "tool",
        "content": "ok",
        "tool_call_id": "call_1",
    }
