from typing import Dict, List, Sequence

import numpy as np

from ..schemas import VectorRecord
from .base import VectorIndex


class InMemoryVectorIndex(VectorIndex):
    """Process-local index ranked by cosine similarity. Contents die with the process."""

    def __init__(self, dimensions: int):
        super().__init__(dimensions)
        self._records: Dict[str, VectorRecord] = {}

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        if not records:
            return
        self._check_dimensions(records)
        for record in records:
            self._records[record.id] = record

    async def search(self, query_vector: Sequence[float], limit: int = 5) -> List[VectorRecord]:
        if not self._records or limit <= 0:
            return []
        self._check_query(query_vector)

        records = list(self._records.values())
        matrix = np.asarray([r.vector for r in records], dtype=np.float32)
        query = np.asarray(query_vector, dtype=np.float32)

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        norms[norms == 0] = 1.0
        scores = matrix @ query / norms

        # Stable sort keeps insertion order among equal scores
        order = np.argsort(-scores, kind="stable")[:limit]
        return [records[i] for i in order]

    async def delete_by_document(self, document_id: str) -> None:
        self._records = {
            rid: r for rid, r in self._records.items() if r.document_id != document_id
        }

    async def count(self) -> int:
        return len(self._records)
