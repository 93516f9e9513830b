"""Append-only conversation store owned by the agent loop."""

import logging
from typing import (
    Dict,
    List,
    Tuple,
)

from multitool.core.errors import ConversationError
from multitool.core.schema import (
    Role,
    Turn,
)

logger = logging.getLogger(__name__)


class ConversationStore:
    """
    Ordered sequence of turns forming the model's context.

    Turns are never reordered or edited.  The store also enforces the pairing rule between an
    assistant turn that requests tools and the tool turns answering it: every requested call must be
    answered exactly once before any other kind of turn is appended.
    """

    def __init__(self) -> None:
        self._turns: List[Turn] = []
        self._pending: Dict[str, str] = {}  # tool_call_id -> tool name

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def append(self, turn: Turn) -> None:
        """Append *turn*, raising ConversationError if it would break the pairing rule."""
        if turn.role is Role.TOOL:
            if turn.tool_call_id not in self._pending:
                raise ConversationError(
                    f"Tool turn answers unknown or already answered call {turn.tool_call_id!r}"
                )
            del self._pending[turn.tool_call_id]
        elif self._pending:
            raise ConversationError(
                f"Cannot append a {turn.role.value} turn while tool calls are unanswered: "
                f"{sorted(self._pending)}"
            )

        if turn.role is Role.ASSISTANT and turn.tool_calls:
            ids = [call.id for call in turn.tool_calls]
            if len(set(ids)) != len(ids):
                raise ConversationError(f"Duplicate tool call ids in assistant turn: {ids}")
            self._pending = {call.id: call.name for call in turn.tool_calls}

        self._turns.append(turn)
        logger.debug("Appended %s turn (%d total)", turn.role.value, len(self._turns))

    def snapshot(self) -> Tuple[Turn, ...]:
        """Return a read-only view of the conversation, oldest turn first."""
        return tuple(self._turns)

    def clear(self) -> None:
        """Discard every turn unconditionally."""
        self._turns.clear()
        self._pending.clear()

    @property
    def pending_tool_call_ids(self) -> List[str]:
        """IDs of tool calls requested by the last assistant turn that are still unanswered."""
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._turns)
