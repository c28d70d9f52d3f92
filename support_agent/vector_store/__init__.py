from sqlalchemy.engine import Engine

from ..config import Settings
from .base import VectorIndex
from .memory import InMemoryVectorIndex


def build_vector_index(settings: Settings, engine: Engine) -> VectorIndex:
    """Pick the backend named by VECTOR_BACKEND."""
    if settings.vector_backend == "memory":
        return InMemoryVectorIndex(settings.embedding_dimensions)
    if settings.vector_backend == "pgvector":
        from .pgvector import PgVectorIndex
        return PgVectorIndex(
            engine,
            settings.vector_table,
            settings.embedding_dimensions,
            timeout=settings.request_timeout_seconds,
        )
    raise ValueError(f"Unknown VECTOR_BACKEND: {settings.vector_backend!r}")


__all__ = ["VectorIndex", "InMemoryVectorIndex", "build_vector_index"]
