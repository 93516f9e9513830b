"""
Core API backend for multitool.

This module exposes the agent loop through a RESTful API used by front-ends (the bundled CLI is
one of them):
- **GET /health** - liveness probe for health checks.
- **POST /sessions** - create a new session, returns a session ID.
- **GET /sessions** - list all active sessions.
- **DELETE /sessions/{id}** - drop a session (a running loop is cancelled first).
- **GET /sessions/{id}/turns** - the conversation as chat-completions messages.
- **POST /sessions/{id}/reset** - clear the conversation.
- **POST /sessions/{id}/cancel** - abort the running loop.
- **POST /sessions/{id}/retry** - re-enter the loop after a failed model call.
- **POST /agent** - submit a user turn: {"message": "...", "session_id": "..."}
"""

import asyncio
import logging
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
)

from fastapi import (
    Depends,
    FastAPI,
    HTTPException,
    Request,
    status,
)
from fastapi.responses import JSONResponse

from multitool.agent.agent_loop import (
    AgentLoop,
    EventCollector,
    LoopOutcome,
)
from multitool.agent.model_client import load_model_client
from multitool.agent.session import (
    AgentSession,
    SessionManager,
)
from multitool.api.models import (
    CancelResponse,
    ErrorResponse,
    MessageRequest,
    MessageResponse,
    SessionResponse,
)
from multitool.common import (
    AnsiColors,
    colored_print,
)
from multitool.config import settings
from multitool.core.errors import (
    ConversationError,
    ModelError,
    MultitoolError,
    SessionBusyError,
    SessionNotFound,
)
from multitool.core.schema import ModelConfig
from multitool.tools import build_default_registry

logger = logging.getLogger(__name__)

# Session storage (in-memory for now, could be moved to a database)
session_manager = SessionManager(
    default_config=settings.llm_config(), system_prompt=settings.SYSTEM_PROMPT
)
registry = build_default_registry(settings)

app = FastAPI(title="multitool API", version="0.1.0", description="Tool-calling agent API")

_ERROR_STATUS = {
    SessionBusyError: status.HTTP_409_CONFLICT,
    SessionNotFound: status.HTTP_404_NOT_FOUND,
    ModelError: status.HTTP_502_BAD_GATEWAY,
    ConversationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# OpenAPI metadata for the domain error body
_NOT_FOUND = {status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}}
_RUN_ERRORS = {
    **_NOT_FOUND,
    status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
def _require_config(config: ModelConfig | None) -> ModelConfig:
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No LLM provider configured (set LLM_API_KEY)",
        )
    return config


def build_agent_loop(session: AgentSession) -> AgentLoop:
    """Build an agent loop bound to the session's model configuration."""
    _require_config(session.config)
    client = load_model_client(session.config, timeout=settings.MODEL_TIMEOUT)
    return AgentLoop(
        client,
        registry,
        model_timeout=settings.MODEL_TIMEOUT,
        tool_timeout=settings.TOOL_TIMEOUT,
    )


def get_session_manager() -> SessionManager:
    return session_manager


def get_loop_factory() -> Callable[[AgentSession], AgentLoop]:
    return build_agent_loop


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------
@app.exception_handler(MultitoolError)
async def multitool_error_handler(request: Request, exc: MultitoolError) -> JSONResponse:
    """Map domain errors to HTTP status codes with the error kind in the body."""
    code = next(
        (code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    logger.warning("%s on %s: %s", exc.kind, request.url.path, exc)
    return JSONResponse(status_code=code, content={"detail": str(exc), "kind": exc.kind})


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------
async def _run_loop(
    session: AgentSession, runner: Callable[[EventCollector], Awaitable[LoopOutcome]]
) -> MessageResponse:
    collector = EventCollector()
    try:
        outcome = await runner(collector)
    except asyncio.CancelledError:
        current = asyncio.current_task()
        if current is not None and current.cancelling():
            raise  # the request itself is being cancelled
        logger.info("Agent loop of session %s was cancelled", session.session_id)
        return MessageResponse(
            session_id=session.session_id, state=session.state, events=collector.events
        )

    return MessageResponse(
        session_id=session.session_id,
        state=outcome.state,
        reply=outcome.reply,
        model_calls=outcome.model_calls,
        tool_calls=outcome.tool_calls,
        events=collector.events,
    )


def _session_response(session: AgentSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        state=session.state,
        turns=len(session.conversation),
        created_at=session.created_at,
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health", summary="Health check")
async def health() -> dict[str, str]:
    """Return a simple liveness payload."""
    return {"status": "ok"}


@app.post("/sessions", response_model=SessionResponse, summary="Create a new session")
async def create_session(
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    """Create a new conversation session."""
    return _session_response(manager.create())


@app.get("/sessions", response_model=List[str], summary="List active sessions")
async def list_sessions(manager: SessionManager = Depends(get_session_manager)) -> List[str]:
    """List all active session IDs."""
    return manager.session_ids()


@app.delete(
    "/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a session",
    responses=_NOT_FOUND,
)
async def delete_session(
    session_id: str, manager: SessionManager = Depends(get_session_manager)
) -> None:
    """Delete a session, cancelling its loop if one is running."""
    manager.delete(session_id)


@app.get("/sessions/{session_id}/turns", summary="Read the conversation", responses=_NOT_FOUND)
async def get_turns(
    session_id: str, manager: SessionManager = Depends(get_session_manager)
) -> List[Dict[str, Any]]:
    """Return the conversation in chat-completions message shape, oldest first."""
    return [turn.to_message() for turn in manager.get(session_id).turns()]


@app.post(
    "/sessions/{session_id}/reset",
    response_model=SessionResponse,
    summary="Reset conversation",
    responses={**_NOT_FOUND, status.HTTP_409_CONFLICT: {"model": ErrorResponse}},
)
async def reset_session(
    session_id: str, manager: SessionManager = Depends(get_session_manager)
) -> SessionResponse:
    """Clear every turn of the session."""
    session = manager.get(session_id)
    session.reset()
    return _session_response(session)


@app.post(
    "/sessions/{session_id}/cancel",
    response_model=CancelResponse,
    summary="Cancel running loop",
    responses=_NOT_FOUND,
)
async def cancel_session(
    session_id: str, manager: SessionManager = Depends(get_session_manager)
) -> CancelResponse:
    """Ask the running loop to stop; open tool calls are answered as cancelled."""
    session = manager.get(session_id)
    return CancelResponse(session_id=session_id, cancelled=session.cancel())


@app.post(
    "/sessions/{session_id}/retry",
    response_model=MessageResponse,
    summary="Retry after failure",
    responses=_RUN_ERRORS,
)
async def retry_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
    loop_factory: Callable[[AgentSession], AgentLoop] = Depends(get_loop_factory),
) -> MessageResponse:
    """Call the model again on the current conversation without adding a user turn."""
    session = manager.get(session_id)
    agent_loop = loop_factory(session)
    return await _run_loop(session, lambda observer: session.retry(agent_loop, observer))


@app.post(
    "/agent", response_model=MessageResponse, summary="Process a message", responses=_RUN_ERRORS
)
async def agent_endpoint(
    req: MessageRequest,
    manager: SessionManager = Depends(get_session_manager),
    loop_factory: Callable[[AgentSession], AgentLoop] = Depends(get_loop_factory),
) -> MessageResponse:
    """Process a user message with optional session context."""
    if req.session_id is None or req.session_id not in manager:
        # refuse before a session is created for a request that cannot run
        _require_config(manager.default_config)
    session = manager.get_or_create(req.session_id)
    agent_loop = loop_factory(session)
    logger.debug("Submitting user turn to session %s", session.session_id)
    return await _run_loop(
        session, lambda observer: session.submit(agent_loop, req.message, observer)
    )


@app.get("/", summary="API root")
async def root() -> dict[str, str]:
    """Return a simple welcome message."""
    return {"message": "Welcome to the multitool API! Use /docs for API documentation."}


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload.
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting multitool API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    if session_manager.default_config is None:
        logger.warning("LLM_API_KEY is not set; /agent will reject messages")
    logger.info("Registered tools: %s", registry.names())

    colored_print(f"multitool API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)
    uvicorn.run(
        "multitool.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m multitool.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
