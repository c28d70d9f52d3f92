"""
Document ingestion service.
Chunks documents, embeds each chunk and keeps the relational rows and the
vector index in step.
"""
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from ..chunking import chunk_text
from ..embedding import EmbeddingClient
from ..errors import UpstreamError
from ..logging_config import logger
from ..models import Document, DocumentChunk
from ..schemas import VectorRecord
from ..vector_store import VectorIndex


@dataclass
class IngestResult:
    document_id: str
    title: str
    chunks_created: int

    def as_dict(self) -> Dict[str, Any]:
        return {"id": self.document_id, "title": self.title, "chunksCreated": self.chunks_created}


class IngestionService:
    def __init__(
        self,
        session_factory: sessionmaker,
        embedder: EmbeddingClient,
        index: VectorIndex,
        chunk_size: int = 500,
        chunk_overlap: int = 50,
    ):
        self.session_factory = session_factory
        self.embedder = embedder
        self.index = index
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    async def ingest(self, title: str, content: str) -> IngestResult:
        """
        Store a document, its chunks and their vectors.

        Each row is committed as soon as it is written. If an embedding call
        fails the error propagates and rows written so far stay in place: the
        document is listed with fewer chunks than its content would produce and
        none of its vectors are indexed.
        """
        t = perf_counter()
        records: List[VectorRecord] = []

        with self.session_factory() as db:
            document = Document(title=title, content=content)
            db.add(document)
            db.commit()
            document_id = document.id

            parts = chunk_text(content, self.chunk_size, self.chunk_overlap)
            logger.info("Created chunks", document_id=document_id, chunk_count=len(parts))

            for i, part in enumerate(parts):
                chunk = DocumentChunk(document_id=document_id, content=part, chunk_index=i)
                db.add(chunk)
                db.commit()

                try:
                    vector = await self.embedder.embed(part)
                except UpstreamError:
                    logger.error(
                        "Ingestion aborted; partial chunk rows left in place",
                        document_id=document_id,
                        chunks_written=i + 1,
                        chunks_total=len(parts),
                    )
                    raise

                records.append(
                    VectorRecord(
                        id=VectorRecord.record_id(document_id, chunk.id),
                        document_id=document_id,
                        chunk_id=chunk.id,
                        content=part,
                        vector=vector,
                    )
                )

        if records:
            await self.index.upsert(records)

        logger.info(
            "Document ingested",
            document_id=document_id,
            chunks=len(records),
            time_ms=round((perf_counter() - t) * 1000, 2),
        )
        return IngestResult(document_id=document_id, title=title, chunks_created=len(records))

    async def delete_document(self, document_id: str) -> bool:
        """
        Delete a document, its chunks and its vectors.

        Vectors go first so a crash in between can only leave vectors with no
        document, never a live document missing from search.

        Returns:
            False if no such document existed
        """
        await self.index.delete_by_document(document_id)

        with self.session_factory() as db, db.begin():
            document = db.get(Document, document_id)
            if document is None:
                logger.warning("Document not found for deletion", document_id=document_id)
                return False
            # chunks cascade
            db.delete(document)

        logger.info("Document deleted", document_id=document_id)
        return True

    def list_documents(self) -> List[Dict[str, Any]]:
        """Returns all documents with chunk counts, newest first."""
        with self.session_factory() as db:
            rows = db.execute(
                select(
                    Document.id,
                    Document.title,
                    Document.created_at,
                    func.count(DocumentChunk.id).label("chunk_count"),
                )
                .outerjoin(DocumentChunk, DocumentChunk.document_id == Document.id)
                .group_by(Document.id, Document.title, Document.created_at)
                .order_by(Document.created_at.desc())
            ).all()

        documents = [
            {
                "id": r.id,
                "title": r.title,
                "createdAt": r.created_at.isoformat(),
                "chunkCount": r.chunk_count,
            }
            for r in rows
        ]
        logger.info("Listed documents", count=len(documents))
        return documents
