"""
Conversation management service.
Handles CRUD operations for chat sessions and messages.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..logging_config import logger
from ..models import ChatSession, Message, utcnow

TITLE_MAX_CHARS = 50


def session_title(message: str) -> str:
    """Title a new session with the first characters of its opening message."""
    if len(message) > TITLE_MAX_CHARS:
        return message[:TITLE_MAX_CHARS] + "..."
    return message


def create_session(db: Session, first_message: str) -> ChatSession:
    """
    Create a new chat session titled from the first user message.

    Args:
        db: Open ORM session; the caller commits
        first_message: The message that starts the conversation

    Returns:
        The new (flushed) ChatSession
    """
    session = ChatSession(title=session_title(first_message))
    db.add(session)
    db.flush()
    logger.info("Created new chat session", session_id=session.id)
    return session


def recent_messages(db: Session, session_id: str, limit: int) -> List[Message]:
    """Return the newest `limit` messages of a session, oldest first."""
    rows = db.scalars(
        select(Message)
        .where(Message.chat_session_id == session_id)
        .order_by(Message.created_at.desc())
        .limit(limit)
    ).all()
    return list(reversed(rows))


def store_message(db: Session, session_id: str, role: str, content: str) -> Message:
    """
    Append a message to a session and bump the session's updated_at.

    Args:
        db: Open ORM session; the caller commits
        session_id: The chat session ID
        role: "user" or "assistant"
        content: The message content

    Returns:
        The new (flushed) Message
    """
    now = utcnow()
    message = Message(chat_session_id=session_id, role=role, content=content, created_at=now)
    db.add(message)
    chat_session = db.get(ChatSession, session_id)
    if chat_session is not None:
        chat_session.updated_at = now
    db.flush()
    logger.debug("Stored message", session_id=session_id, role=role)
    return message


def serialize_message(message: Message) -> Dict[str, Any]:
    return {
        "id": message.id,
        "role": message.role,
        "content": message.content,
        "createdAt": message.created_at.isoformat(),
    }


def get_session(db: Session, session_id: str) -> Optional[Dict[str, Any]]:
    """
    Retrieve a session with its full transcript in chronological order.

    Returns:
        Serialized session, or None if it does not exist
    """
    chat_session = db.get(ChatSession, session_id)
    if chat_session is None:
        return None

    messages = db.scalars(
        select(Message)
        .where(Message.chat_session_id == session_id)
        .order_by(Message.created_at.asc())
    ).all()

    return {
        "id": chat_session.id,
        "title": chat_session.title,
        "createdAt": chat_session.created_at.isoformat(),
        "updatedAt": chat_session.updated_at.isoformat(),
        "messages": [serialize_message(m) for m in messages],
    }


def list_sessions(db: Session) -> List[Dict[str, Any]]:
    """Summaries of all sessions with message counts, most recently updated first."""
    rows = db.execute(
        select(ChatSession, func.count(Message.id).label("message_count"))
        .outerjoin(Message, Message.chat_session_id == ChatSession.id)
        .group_by(ChatSession.id)
        .order_by(ChatSession.updated_at.desc())
    ).all()

    return [
        {
            "id": s.id,
            "title": s.title,
            "createdAt": s.created_at.isoformat(),
            "updatedAt": s.updated_at.isoformat(),
            "messageCount": count,
        }
        for s, count in rows
    ]


def delete_session(db: Session, session_id: str) -> bool:
    """
    Delete a session and all its messages.

    Returns:
        False if the session did not exist
    """
    chat_session = db.get(ChatSession, session_id)
    if chat_session is None:
        return False
    db.delete(chat_session)
    logger.info("Deleted chat session", session_id=session_id)
    return True
