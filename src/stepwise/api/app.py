"""
REST API for stepwise.

It exposes the following endpoints:
- **GET /health**  - liveness probe for health checks.
- **POST /sessions** - create a new session, returns a session ID.
- **GET /sessions** - list sessions that have history.
- **GET /sessions/{session_id}/messages** - full history of one session.
- **POST /agent**   - one orchestrated turn: {"message": "...", "session_id": "..."}
- **POST /chat/stream** - stream a direct model answer as server-sent events.
"""

import json
import logging
import uuid
from typing import (
    AsyncIterator,
    List,
    Optional,
)

from fastapi import (
    FastAPI,
    HTTPException,
)
from fastapi.responses import StreamingResponse

from stepwise.agent.agent_loop import AgentExecutor
from stepwise.api.models import (
    HistoryResponse,
    MessageRequest,
    MessageResponse,
    SessionResponse,
)
from stepwise.config import settings
from stepwise.core.cancellation import CancellationToken
from stepwise.core.errors import (
    CompletionError,
    OperationCancelledError,
)
from stepwise.core.schema import (
    Message,
    Role,
)
from stepwise.factory import build_executor
from stepwise.llm.sse import DONE_MARKER

logger = logging.getLogger(__name__)


def _turn_token() -> Optional[CancellationToken]:
    if settings.TURN_TIMEOUT_SECONDS:
        return CancellationToken.with_timeout(settings.TURN_TIMEOUT_SECONDS)
    return None


def create_app(executor: AgentExecutor | None = None) -> FastAPI:
    """Build the FastAPI application around *executor* (built from settings when omitted)."""
    agent = executor or build_executor(settings)
    app = FastAPI(title="stepwise API", version="0.1.0", description="stepwise agent runtime API")

    # ---------------------------------------------------------------------------
    # Routes
    # ---------------------------------------------------------------------------
    @app.get("/health", summary="Health check")
    async def health() -> dict[str, str]:
        """Return a simple liveness payload."""
        return {"status": "ok"}

    @app.post("/sessions", response_model=SessionResponse, summary="Create a new session")
    async def create_session() -> SessionResponse:
        """Allocate a new conversation session id."""
        return SessionResponse(session_id=str(uuid.uuid4()))

    @app.get("/sessions", response_model=List[str], summary="List sessions")
    async def list_sessions() -> List[str]:
        """List the ids of sessions with stored messages."""
        return await agent.store.list_sessions()

    @app.get(
        "/sessions/{session_id}/messages",
        response_model=HistoryResponse,
        summary="Session history",
    )
    async def session_messages(session_id: str) -> HistoryResponse:
        messages = await agent.store.load(session_id)
        if not messages:
            raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'")
        return HistoryResponse(session_id=session_id, messages=list(messages))

    @app.post("/agent", response_model=MessageResponse, summary="Process a message")
    async def agent_endpoint(req: MessageRequest) -> MessageResponse:
        """Run one plan-execute-summarise turn."""
        session_id = req.session_id or str(uuid.uuid4())
        try:
            result = await agent.run_turn(session_id, req.message, _turn_token())
        except OperationCancelledError as exc:
            raise HTTPException(status_code=504, detail=str(exc)) from exc

        return MessageResponse(
            reply=result.reply,
            session_id=session_id,
            rationale=result.plan.rationale if result.plan else None,
            observations=result.observations,
        )

    @app.post("/chat/stream", summary="Stream a direct answer")
    async def chat_stream(req: MessageRequest) -> StreamingResponse:
        """Answer from history without tools, streaming tokens as they arrive."""
        session_id = req.session_id or str(uuid.uuid4())
        await agent.store.append(session_id, Message(role=Role.USER, content=req.message))
        history = await agent.store.load(session_id)

        try:
            tokens = await agent.provider.stream(history, _turn_token())
        except CompletionError as exc:
            logger.error("Streaming request failed: %s", exc)
            raise HTTPException(status_code=502, detail="Completion provider unavailable") from exc

        async def events() -> AsyncIterator[str]:
            parts: List[str] = []
            async with tokens:
                async for token in tokens:
                    parts.append(token)
                    yield f"data: {json.dumps({'content': token})}\n\n"
            await agent.store.append(
                session_id, Message(role=Role.ASSISTANT, content="".join(parts))
            )
            yield f"data: {DONE_MARKER}\n\n"

        return StreamingResponse(
            events(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Session-Id": session_id},
        )

    return app


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting the app.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in development).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting stepwise API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    uvicorn.run(
        "stepwise.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )
