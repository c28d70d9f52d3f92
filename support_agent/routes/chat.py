"""
Chat-related API routes.
Handles streamed question answering and session history.
"""
import json
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from ..context import AppContext, get_context
from ..errors import UpstreamError
from ..logging_config import logger
from ..schemas import ChatRequest
from ..services.conversation_service import delete_session, get_session, list_sessions
from ..services.rag_service import ConversationTurn

router = APIRouter(tags=["chat"])

STREAM_ERROR_MESSAGE = "Failed to generate response"


def _frame(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def _sse_stream(ctx: AppContext, turn: ConversationTurn) -> AsyncGenerator[str, None]:
    """
    Encode relay events as Server-Sent Events.

    A failure after the response has started can no longer change the status
    code; it ends the stream with an error frame instead of a done frame.
    """
    try:
        async for event in ctx.chat.relay(turn):
            yield _frame(event)
    except UpstreamError as e:
        logger.error("Chat stream failed", session_id=turn.session_id, exc_info=e)
        yield _frame({"error": STREAM_ERROR_MESSAGE, "sessionId": turn.session_id})
    except Exception as e:
        logger.error("Unexpected error in chat stream", session_id=turn.session_id, exc_info=e)
        yield _frame({"error": STREAM_ERROR_MESSAGE, "sessionId": turn.session_id})


@router.post("/chat")
async def chat(payload: ChatRequest, ctx: AppContext = Depends(get_context)):
    """
    Streaming RAG endpoint using Server-Sent Events (SSE).

    Workflow:
    1. Resolve or create the chat session
    2. Store user message
    3. Embed the question and retrieve relevant chunks
    4. Build the prompt and stream the LLM response
    5. Store assistant message, then send the done frame
    """
    if not payload.message or not payload.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    try:
        turn = await ctx.chat.start_turn(payload.message, payload.session_id)
    except UpstreamError as e:
        logger.error("Upstream failure before streaming", exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to process chat message")
    except Exception as e:
        logger.error("Error starting chat turn", exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to process chat message")

    return StreamingResponse(
        _sse_stream(ctx, turn),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.get("/chat")
def get_chat(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    ctx: AppContext = Depends(get_context),
):
    """
    With sessionId: the session and its messages in chronological order
    (null when unknown). Without: all sessions, most recently updated first.
    """
    try:
        with ctx.session_factory() as db:
            if session_id:
                return {"session": get_session(db, session_id)}
            return {"sessions": list_sessions(db)}
    except Exception as e:
        logger.error("Error fetching chat history", exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to get chat history")


@router.delete("/chat")
def delete_chat(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    ctx: AppContext = Depends(get_context),
):
    """Delete a chat session and all its messages."""
    if not session_id:
        raise HTTPException(status_code=400, detail="Session ID is required")
    try:
        with ctx.session_factory() as db, db.begin():
            delete_session(db, session_id)
    except Exception as e:
        logger.error("Error deleting chat session", session_id=session_id, exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to delete chat session")
    return {"success": True}
