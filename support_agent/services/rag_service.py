"""
RAG (Retrieval-Augmented Generation) service.
Handles session resolution, retrieval, prompt building and streamed answers.
"""
import enum
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, AsyncGenerator, Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from ..completion import CompletionClient
from ..embedding import EmbeddingClient
from ..logging_config import logger
from ..models import ChatSession
from ..schemas import ChatMessage, VectorRecord
from ..vector_store import VectorIndex
from .conversation_service import create_session, recent_messages, store_message

SYSTEM_PROMPT = """You are a helpful AI support agent. Your role is to answer questions based on the knowledge base provided to you as context.

Guidelines:
- Only answer questions based on the provided context
- If the context doesn't contain relevant information, politely say you don't have that information
- Be concise but helpful
- If asked about something outside your knowledge base, suggest the user contact human support
- Always maintain a professional and friendly tone"""

CONTEXT_DELIMITER = "\n\n---\n\n"
NO_CONTEXT_MARKER = "No relevant information found in the knowledge base."


class TurnState(str, enum.Enum):
    IDLE = "idle"
    USER_MESSAGE_PERSISTED = "user_message_persisted"
    EMBEDDING = "embedding"
    RETRIEVING = "retrieving"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


_TERMINAL = (TurnState.DONE, TurnState.FAILED)


@dataclass
class ConversationTurn:
    """One user message and the assistant reply being generated for it."""

    message: str
    session_id: Optional[str] = None
    state: TurnState = TurnState.IDLE
    history: List[ChatMessage] = field(default_factory=list)
    chunks: List[VectorRecord] = field(default_factory=list)
    prompt: List[ChatMessage] = field(default_factory=list)
    fragments: Optional[AsyncGenerator[str, None]] = None
    reply: str = ""

    def advance(self, state: TurnState) -> None:
        if self.state in _TERMINAL:
            raise RuntimeError(f"Turn already finished in state {self.state.value}")
        logger.debug("Turn state", session_id=self.session_id, from_state=self.state.value, to_state=state.value)
        self.state = state

    def fail(self, reason: str) -> None:
        if self.state in _TERMINAL:
            return
        logger.warning("Turn failed", session_id=self.session_id, at_state=self.state.value, reason=reason)
        self.state = TurnState.FAILED


def build_context(chunks: List[VectorRecord]) -> str:
    """
    Join retrieved chunk contents, nearest first.

    An empty retrieval yields an explicit marker so the model is told it has
    nothing to go on rather than receiving a blank context.
    """
    if not chunks:
        return NO_CONTEXT_MARKER
    return CONTEXT_DELIMITER.join(chunk.content for chunk in chunks)


def build_prompt(message: str, context: str, history: List[ChatMessage]) -> List[ChatMessage]:
    return [
        ChatMessage(role="system", content=SYSTEM_PROMPT),
        ChatMessage(
            role="system",
            content=f"Here is relevant context from the knowledge base:\n\n{context}",
        ),
        *history,
        ChatMessage(role="user", content=message),
    ]


class ChatOrchestrator:
    def __init__(
        self,
        session_factory: sessionmaker,
        embedder: EmbeddingClient,
        index: VectorIndex,
        completion: CompletionClient,
        top_k: int = 3,
        history_limit: int = 10,
    ):
        self.session_factory = session_factory
        self.embedder = embedder
        self.index = index
        self.completion = completion
        self.top_k = top_k
        self.history_limit = history_limit

    async def converse(
        self, message: str, session_id: Optional[str] = None
    ) -> AsyncGenerator[Dict[str, Any], None]:
        """
        Answer a user message as a stream of events.

        Yields:
            {"content": fragment, "sessionId": id} per generated fragment,
            then {"done": True, "sessionId": id}
        """
        turn = await self.start_turn(message, session_id)
        async for event in self.relay(turn):
            yield event

    async def start_turn(self, message: str, session_id: Optional[str] = None) -> ConversationTurn:
        """
        Run every step up to and including opening the completion stream.

        The user message is committed before anything goes upstream, so it
        survives a later failure.
        """
        turn = ConversationTurn(message=message, session_id=session_id)
        try:
            self._persist_user_message(turn)

            turn.advance(TurnState.EMBEDDING)
            query_vector = await self.embedder.embed(message)

            turn.advance(TurnState.RETRIEVING)
            turn.chunks = await self.index.search(query_vector, self.top_k)
            logger.info("Retrieved chunks", session_id=turn.session_id, count=len(turn.chunks))

            turn.prompt = build_prompt(message, build_context(turn.chunks), turn.history)

            turn.advance(TurnState.STREAMING)
            turn.fragments = await self.completion.stream_complete(turn.prompt)
        except Exception as e:
            turn.fail(type(e).__name__)
            raise
        return turn

    async def relay(self, turn: ConversationTurn) -> AsyncGenerator[Dict[str, Any], None]:
        """
        Relay fragments of an opened turn and persist the finished reply.

        If the stream fails, or the consumer stops iterating, the upstream
        stream is closed and no assistant message is written.
        """
        if turn.state is not TurnState.STREAMING or turn.fragments is None:
            raise RuntimeError("relay() needs a turn returned by start_turn()")

        t = perf_counter()
        finished = False
        try:
            async for fragment in turn.fragments:
                turn.reply += fragment
                yield {"content": fragment, "sessionId": turn.session_id}

            turn.advance(TurnState.FINALIZING)
            with self.session_factory() as db, db.begin():
                store_message(db, turn.session_id, "assistant", turn.reply)

            turn.advance(TurnState.DONE)
            finished = True
        except Exception as e:
            turn.fail(type(e).__name__)
            raise
        finally:
            if not finished:
                turn.fail("stream abandoned")
                await turn.fragments.aclose()

        logger.info(
            "Turn completed",
            session_id=turn.session_id,
            reply_chars=len(turn.reply),
            time_ms=round((perf_counter() - t) * 1000, 2),
        )
        yield {"done": True, "sessionId": turn.session_id}

    def _persist_user_message(self, turn: ConversationTurn) -> None:
        with self.session_factory() as db, db.begin():
            chat_session = None
            if turn.session_id:
                chat_session = db.get(ChatSession, turn.session_id)
                if chat_session is None:
                    logger.info("Unknown session id, starting a new session", session_id=turn.session_id)

            if chat_session is None:
                chat_session = create_session(db, turn.message)
            else:
                turn.history = [
                    ChatMessage(role=m.role, content=m.content)
                    for m in recent_messages(db, chat_session.id, self.history_limit)
                ]

            turn.session_id = chat_session.id
            store_message(db, chat_session.id, "user", turn.message)

        turn.advance(TurnState.USER_MESSAGE_PERSISTED)
