"""Main orchestration loop for multitool."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
)

from multitool.agent.model_client import BaseModelClient
from multitool.agent.session import (
    AgentSession,
    LoopState,
)
from multitool.agent.tool_executor import ToolExecutor
from multitool.core.errors import (
    ModelError,
    SessionBusyError,
    TransportError,
)
from multitool.core.schema import (
    ModelResponse,
    ToolCall,
    ToolResult,
    Turn,
)
from multitool.tools import ToolRegistry

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Tool call cancelled"
INTERRUPTED_MESSAGE = "Tool call interrupted"


# ---------------------------------------------------------------------------
# UI collaborator contract
# ---------------------------------------------------------------------------
class LoopObserver(Protocol):
    """Receives progress notifications from the loop (rendering is the observer's business)."""

    def on_assistant_text(self, text: str) -> None: ...

    def on_tool_invoked(self, tool_call: ToolCall) -> None: ...

    def on_tool_result(self, tool_call_id: str, result: str, is_error: bool) -> None: ...


class NullObserver:
    """Observer that ignores everything."""

    def on_assistant_text(self, text: str) -> None:
        pass

    def on_tool_invoked(self, tool_call: ToolCall) -> None:
        pass

    def on_tool_result(self, tool_call_id: str, result: str, is_error: bool) -> None:
        pass


class EventCollector:
    """Observer that records every notification as a plain dict, in order."""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []

    def on_assistant_text(self, text: str) -> None:
        self.events.append({"type": "assistant_text", "text": text})

    def on_tool_invoked(self, tool_call: ToolCall) -> None:
        self.events.append(
            {
                "type": "tool_invoked",
                "id": tool_call.id,
                "name": tool_call.name,
                "arguments": tool_call.arguments,
            }
        )

    def on_tool_result(self, tool_call_id: str, result: str, is_error: bool) -> None:
        self.events.append(
            {"type": "tool_result", "id": tool_call_id, "result": result, "is_error": is_error}
        )


@dataclass
class LoopOutcome:
    """What one invocation of the loop did before handing control back."""

    state: LoopState
    reply: Optional[str] = None
    model_calls: int = 0
    tool_calls: int = 0


# ---------------------------------------------------------------------------
# Agent Loop
# ---------------------------------------------------------------------------
class AgentLoop:
    """
    Alternates model calls and tool executions until the model answers without tool calls.

    States: ``AwaitingModel`` -> (``ExecutingTools`` -> ``AwaitingModel``)* -> ``AwaitingUser``.
    A model error, or any other exception escaping a step, moves the session to ``Failed`` and is
    re-raised; task cancellation moves it to ``Aborted``.  Either way every open tool call is
    answered first, so the conversation stays usable.  Nothing is retried automatically.
    """

    def __init__(
        self,
        model_client: BaseModelClient,
        registry: ToolRegistry,
        executor: ToolExecutor | None = None,
        model_timeout: float | None = None,
        tool_timeout: float | None = None,
    ):
        self.model_client = model_client
        self.registry = registry
        self.executor = executor or ToolExecutor(registry, timeout=tool_timeout)
        self.model_timeout = model_timeout

    async def run(
        self, session: AgentSession, user_text: str, observer: LoopObserver | None = None
    ) -> LoopOutcome:
        """Append *user_text* as a user turn and drive the loop until control returns."""
        return await self._drive(session, observer, user_text)

    async def resume(
        self, session: AgentSession, observer: LoopObserver | None = None
    ) -> LoopOutcome:
        """Drive the loop from ``AwaitingModel`` on the current conversation (e.g. after Failed)."""
        return await self._drive(session, observer, None)

    # ------------------------------------------------------------------ #
    # State machine
    # ------------------------------------------------------------------ #
    async def _drive(
        self, session: AgentSession, observer: LoopObserver | None, user_text: str | None
    ) -> LoopOutcome:
        if session.busy:
            raise SessionBusyError(f"Session {session.session_id} is already running")
        session.busy = True
        observer = observer or NullObserver()
        outcome = LoopOutcome(state=LoopState.AWAITING_MODEL)

        try:
            if user_text is not None:
                session.conversation.append(Turn.user(user_text))

            while True:
                self._transition(session, LoopState.AWAITING_MODEL)
                response = await self._complete(session)
                outcome.model_calls += 1

                session.conversation.append(
                    Turn.assistant(response.text, list(response.tool_calls))
                )
                if response.text:
                    _notify(observer.on_assistant_text, response.text)

                if not response.tool_calls:
                    self._transition(session, LoopState.AWAITING_USER)
                    outcome.state = LoopState.AWAITING_USER
                    outcome.reply = response.text
                    return outcome

                self._transition(session, LoopState.EXECUTING_TOOLS)
                logger.info(
                    "Model requested %d tool call(s): %s",
                    len(response.tool_calls),
                    [call.name for call in response.tool_calls],
                )
                for call in response.tool_calls:
                    await self._execute(session, call, observer)
                    outcome.tool_calls += 1

        except asyncio.CancelledError:
            self._answer_pending(session, observer, CANCELLED_MESSAGE)
            self._transition(session, LoopState.ABORTED)
            raise
        except ModelError as exc:
            logger.error("Model call failed (%s): %s", exc.kind, exc)
            self._answer_pending(session, observer, INTERRUPTED_MESSAGE)
            self._transition(session, LoopState.FAILED)
            raise
        except BaseException:
            logger.exception("Agent loop of session %s stopped unexpectedly", session.session_id)
            self._answer_pending(session, observer, INTERRUPTED_MESSAGE)
            self._transition(session, LoopState.FAILED)
            raise
        finally:
            session.busy = False

    async def _complete(self, session: AgentSession) -> ModelResponse:
        call = self.model_client.complete(session.conversation.snapshot(), self.registry.specs())
        try:
            return await asyncio.wait_for(call, self.model_timeout)
        except asyncio.TimeoutError as exc:
            raise TransportError(f"Model call timed out after {self.model_timeout}s") from exc

    async def _execute(self, session: AgentSession, call: ToolCall, observer: LoopObserver) -> None:
        _notify(observer.on_tool_invoked, call)
        result = await self.executor.execute(call)
        session.conversation.append(Turn.tool(call.id, result.content))
        _notify(observer.on_tool_result, call.id, result.content, result.is_error)

    def _answer_pending(self, session: AgentSession, observer: LoopObserver, message: str) -> None:
        """Close every open tool call so no ToolCall is left unanswered in the conversation."""
        for call_id in session.conversation.pending_tool_call_ids:
            result = ToolResult.failure(message, kind="Cancelled")
            session.conversation.append(Turn.tool(call_id, result.content))
            _notify(observer.on_tool_result, call_id, result.content, True)

    @staticmethod
    def _transition(session: AgentSession, state: LoopState) -> None:
        logger.debug("Session %s: %s -> %s", session.session_id, session.state.value, state.value)
        session.state = state


def _notify(callback: Callable[..., None], *args: Any) -> None:
    try:
        callback(*args)
    except Exception:  # pylint: disable=broad-except
        logger.exception("Observer callback %s failed", getattr(callback, "__name__", callback))
