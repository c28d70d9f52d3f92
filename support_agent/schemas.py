"""
Pydantic schemas for request validation, prompt messages and vector records.
"""
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant"]


class ChatMessage(BaseModel):
    """A single prompt turn sent to the completion API."""
    role: Role
    content: str


class CompletionOptions(BaseModel):
    """Per-call overrides for generation; unset fields use configured defaults."""
    model: Optional[str] = Field(None, description="Model identifier, e.g. 'openai/gpt-4o-mini'")
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: Optional[int] = Field(None, gt=0, description="Upper bound on generated tokens")


class VectorRecord(BaseModel):
    """One embedded chunk as stored in the vector index."""
    id: str
    document_id: str
    chunk_id: str
    content: str
    vector: List[float]

    @staticmethod
    def record_id(document_id: str, chunk_id: str) -> str:
        # Keeps relational rows and vector records addressable by the same pair
        return f"{document_id}-{chunk_id}"


class ChatRequest(BaseModel):
    """Request body for POST /chat. Presence of `message` is checked by the route."""
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    session_id: Optional[str] = Field(None, alias="sessionId")


class DocumentRequest(BaseModel):
    """Request body for POST /documents."""
    title: Optional[str] = None
    content: Optional[str] = None
