"""
Process-wide application context.
Holds the upstream clients, the vector index and the relational session
factory; built once at startup and handed to routes through FastAPI
dependencies.
"""
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request
from openai import AsyncOpenAI
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .completion import CompletionClient
from .config import Settings
from .db import init_db, make_engine, make_session_factory
from .embedding import EmbeddingClient
from .logging_config import logger
from .services.ingestion_service import IngestionService
from .services.rag_service import ChatOrchestrator
from .vector_store import VectorIndex, build_vector_index


@dataclass
class AppContext:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    embedder: EmbeddingClient
    completion: CompletionClient
    index: VectorIndex
    openai_client: Optional[AsyncOpenAI] = None
    ingestion: IngestionService = field(init=False)
    chat: ChatOrchestrator = field(init=False)

    def __post_init__(self):
        self.ingestion = IngestionService(
            self.session_factory,
            self.embedder,
            self.index,
            chunk_size=self.settings.chunk_size,
            chunk_overlap=self.settings.chunk_overlap,
        )
        self.chat = ChatOrchestrator(
            self.session_factory,
            self.embedder,
            self.index,
            self.completion,
            top_k=self.settings.retrieval_top_k,
            history_limit=self.settings.chat_history_limit,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        """Wire real clients and stores from configuration."""
        from .openai_client import build_client

        client = build_client(settings)
        engine = make_engine(settings.database_url, settings.request_timeout_seconds)
        return cls(
            settings=settings,
            engine=engine,
            session_factory=make_session_factory(engine),
            embedder=EmbeddingClient(client, settings.embedding_model),
            completion=CompletionClient(
                client,
                settings.default_model,
                default_temperature=settings.default_temperature,
                default_max_tokens=settings.default_max_tokens,
            ),
            index=build_vector_index(settings, engine),
            openai_client=client,
        )

    async def startup(self) -> None:
        logger.info("Creating relational tables...")
        init_db(self.engine)
        logger.info("Initialising vector index...", backend=type(self.index).__name__)
        await self.index.initialize()

    async def shutdown(self) -> None:
        await self.index.close()
        if self.openai_client is not None:
            await self.openai_client.close()
        self.engine.dispose()
        logger.info("Application context closed")


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the context attached to the app."""
    return request.app.state.context
