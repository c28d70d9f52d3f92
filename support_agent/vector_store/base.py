from abc import ABC, abstractmethod
from typing import List, Sequence

from ..errors import UpstreamError
from ..schemas import VectorRecord


class VectorIndex(ABC):
    """
    Nearest-neighbour store for embedded chunks.

    Backends declare their schema up front (fixed vector dimension) in
    ``initialize()``. Reads against a backend that holds nothing, or was never
    initialised, return empty results rather than raising.
    """

    def __init__(self, dimensions: int):
        self.dimensions = dimensions

    async def initialize(self) -> None:
        """Create the backing table/collection if needed."""

    async def close(self) -> None:
        """Release connections held by the backend."""

    @abstractmethod
    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        """Insert records, replacing any with the same id. No-op when empty."""

    @abstractmethod
    async def search(self, query_vector: Sequence[float], limit: int = 5) -> List[VectorRecord]:
        """Return up to ``limit`` records, nearest first."""

    @abstractmethod
    async def delete_by_document(self, document_id: str) -> None:
        """Remove every record belonging to ``document_id``."""

    @abstractmethod
    async def count(self) -> int:
        """Number of stored records."""

    def _check_dimensions(self, records: Sequence[VectorRecord]) -> None:
        for record in records:
            if len(record.vector) != self.dimensions:
                raise UpstreamError(
                    f"Vector for record {record.id} has {len(record.vector)} dimensions, "
                    f"index expects {self.dimensions}"
                )

    def _check_query(self, query_vector: Sequence[float]) -> None:
        if len(query_vector) != self.dimensions:
            raise UpstreamError(
                f"Query vector has {len(query_vector)} dimensions, index expects {self.dimensions}"
            )
