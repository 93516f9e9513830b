"""Per-conversation state: the conversation store, model configuration and the busy flag."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import (
    datetime,
    timezone,
)
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Coroutine,
    Dict,
    List,
    Optional,
)

from multitool.core.conversation import ConversationStore
from multitool.core.errors import (
    SessionBusyError,
    SessionNotFound,
)
from multitool.core.schema import (
    ModelConfig,
    Turn,
)

if TYPE_CHECKING:
    from multitool.agent.agent_loop import (
        AgentLoop,
        LoopObserver,
        LoopOutcome,
    )

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    """States of the agent loop state machine."""

    AWAITING_MODEL = "AwaitingModel"
    EXECUTING_TOOLS = "ExecutingTools"
    AWAITING_USER = "AwaitingUser"
    FAILED = "Failed"
    ABORTED = "Aborted"


class AgentSession:
    """
    Everything one conversation owns.

    Sessions share no mutable state with each other.  The ``busy`` flag is set by the agent loop for
    the duration of one run; a second run while it is set is rejected, never queued.
    """

    def __init__(
        self,
        config: Optional[ModelConfig] = None,
        system_prompt: Optional[str] = None,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self.config = config
        self.system_prompt = system_prompt
        self.conversation = ConversationStore()
        self.state = LoopState.AWAITING_USER
        self.busy = False
        self.created_at = datetime.now(timezone.utc)
        self._task: Optional[asyncio.Task] = None
        self._seed()

    def _seed(self) -> None:
        if self.system_prompt:
            self.conversation.append(Turn.system(self.system_prompt))

    def reset(self) -> None:
        """Clear the conversation (the system prompt, if any, is re-seeded)."""
        if self.busy:
            raise SessionBusyError(f"Session {self.session_id} is busy; cancel it before resetting")
        self.conversation.clear()
        self._seed()
        self.state = LoopState.AWAITING_USER
        logger.info("Session %s reset", self.session_id)

    async def submit(
        self, agent_loop: AgentLoop, text: str, observer: LoopObserver | None = None
    ) -> LoopOutcome:
        """Run the agent loop for a new user turn as a task that :meth:`cancel` can abort."""
        return await self._run_task(agent_loop.run(self, text, observer))

    async def retry(
        self, agent_loop: AgentLoop, observer: LoopObserver | None = None
    ) -> LoopOutcome:
        """Re-enter the loop after a failure without adding a user turn."""
        return await self._run_task(agent_loop.resume(self, observer))

    async def _run_task(self, coro: Coroutine[Any, Any, LoopOutcome]) -> LoopOutcome:
        if self.busy or (self._task is not None and not self._task.done()):
            coro.close()
            raise SessionBusyError(f"Session {self.session_id} is already running")
        self._task = asyncio.create_task(coro)
        try:
            return await self._task
        finally:
            self._task = None

    def cancel(self) -> bool:
        """Cancel the running loop, if any.  Returns True when a cancellation was requested."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.info("Cancelling agent loop of session %s", self.session_id)
            return True
        return False

    def turns(self) -> List[Turn]:
        return list(self.conversation.snapshot())


class SessionManager:
    """In-memory session table."""

    def __init__(
        self,
        default_config: Optional[ModelConfig] = None,
        system_prompt: Optional[str] = None,
    ):
        self.default_config = default_config
        self.system_prompt = system_prompt
        self._sessions: Dict[str, AgentSession] = {}

    def create(self, config: Optional[ModelConfig] = None) -> AgentSession:
        session = AgentSession(
            config=config or self.default_config, system_prompt=self.system_prompt
        )
        self._sessions[session.session_id] = session
        logger.info("Created session %s", session.session_id)
        return session

    def get(self, session_id: str) -> AgentSession:
        try:
            return self._sessions[session_id]
        except KeyError as exc:
            raise SessionNotFound(f"Session '{session_id}' does not exist") from exc

    def get_or_create(self, session_id: Optional[str] = None) -> AgentSession:
        """Return the existing session *session_id*, or a new one if it is unknown or None."""
        if session_id and session_id in self._sessions:
            return self._sessions[session_id]
        return self.create()

    def delete(self, session_id: str) -> None:
        session = self.get(session_id)
        session.cancel()
        del self._sessions[session_id]
        logger.info("Deleted session %s", session_id)

    def session_ids(self) -> List[str]:
        return list(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
