"""
pgvector-backed vector index.
Records live in their own table, declared with a fixed vector dimension.
"""
import asyncio
from typing import List, Sequence

from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, MetaData, String, Table, Text, delete, func, inspect, select, text
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..errors import UpstreamError
from ..logging_config import logger
from ..schemas import VectorRecord
from .base import VectorIndex


class PgVectorIndex(VectorIndex):
    def __init__(self, engine: Engine, table_name: str, dimensions: int, timeout: float = 60.0):
        super().__init__(dimensions)
        self._engine = engine
        self.timeout = timeout
        self._metadata = MetaData()
        self.table = Table(
            table_name,
            self._metadata,
            Column("id", String, primary_key=True),
            Column("document_id", String, nullable=False, index=True),
            Column("chunk_id", String, nullable=False),
            Column("content", Text, nullable=False),
            Column("embedding", Vector(dimensions), nullable=False),
        )
        self._ready = False

    async def initialize(self) -> None:
        await self._run(self._create_table)

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        if not records:
            return
        self._check_dimensions(records)
        await self._run(self._upsert, list(records))

    async def search(self, query_vector: Sequence[float], limit: int = 5) -> List[VectorRecord]:
        if limit <= 0:
            return []
        self._check_query(query_vector)
        return await self._run(self._search, list(query_vector), limit)

    async def delete_by_document(self, document_id: str) -> None:
        await self._run(self._delete_by_document, document_id)

    async def count(self) -> int:
        return await self._run(self._count)

    async def _run(self, fn, *args):
        # The worker thread is not interrupted; statement_timeout on the engine ends the query
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), self.timeout)
        except asyncio.TimeoutError as e:
            logger.error("Vector index call timed out", operation=fn.__name__, timeout=self.timeout)
            raise UpstreamError(f"Vector index call timed out after {self.timeout}s") from e

    # ---- blocking helpers (run in a worker thread) ----

    def _create_table(self) -> None:
        try:
            with self._engine.begin() as conn:
                conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
                self._metadata.create_all(conn)
        except SQLAlchemyError as e:
            logger.error("Vector table creation failed", table=self.table.name, exc_info=e)
            raise UpstreamError("Vector index initialisation failed") from e
        self._ready = True
        logger.info("Vector table ready", table=self.table.name, dimensions=self.dimensions)

    def _table_exists(self) -> bool:
        if not self._ready:
            self._ready = inspect(self._engine).has_table(self.table.name)
        return self._ready

    def _upsert(self, records: List[VectorRecord]) -> None:
        if not self._table_exists():
            self._create_table()
        rows = [
            {
                "id": r.id,
                "document_id": r.document_id,
                "chunk_id": r.chunk_id,
                "content": r.content,
                "embedding": r.vector,
            }
            for r in records
        ]
        stmt = insert(self.table).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[self.table.c.id],
            set_={
                "document_id": stmt.excluded.document_id,
                "chunk_id": stmt.excluded.chunk_id,
                "content": stmt.excluded.content,
                "embedding": stmt.excluded.embedding,
            },
        )
        try:
            with self._engine.begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Vector upsert failed", count=len(records), exc_info=e)
            raise UpstreamError("Vector upsert failed") from e

    def _search(self, query_vector: List[float], limit: int) -> List[VectorRecord]:
        try:
            if not self._table_exists():
                return []
            t = self.table
            stmt = (
                select(t.c.id, t.c.document_id, t.c.chunk_id, t.c.content, t.c.embedding)
                .order_by(t.c.embedding.cosine_distance(query_vector))
                .limit(limit)
            )
            with self._engine.connect() as conn:
                rows = conn.execute(stmt).all()
        except SQLAlchemyError as e:
            logger.error("Vector search failed", exc_info=e)
            raise UpstreamError("Vector search failed") from e

        return [
            VectorRecord(
                id=row.id,
                document_id=row.document_id,
                chunk_id=row.chunk_id,
                content=row.content,
                vector=[float(x) for x in row.embedding],
            )
            for row in rows
        ]

    def _delete_by_document(self, document_id: str) -> None:
        try:
            if not self._table_exists():
                return
            with self._engine.begin() as conn:
                conn.execute(delete(self.table).where(self.table.c.document_id == document_id))
        except SQLAlchemyError as e:
            logger.error("Vector delete failed", document_id=document_id, exc_info=e)
            raise UpstreamError("Vector delete failed") from e

    def _count(self) -> int:
        try:
            if not self._table_exists():
                return 0
            with self._engine.connect() as conn:
                return conn.execute(select(func.count()).select_from(self.table)).scalar_one()
        except SQLAlchemyError as e:
            logger.error("Vector count failed", exc_info=e)
            raise UpstreamError("Vector count failed") from e
