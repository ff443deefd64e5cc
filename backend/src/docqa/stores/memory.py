import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

import numpy as np

from docqa.models.chunk import Chunk, DocumentInfo, RetrievalResult

from .base import (
    DEFAULT_SCORE_THRESHOLD,
    DEFAULT_TOP_K,
    BaseVectorStore,
    CandidatePool,
)
from .similarity import cosine_scores, normalize_rows, rank_descending

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentIndex:
    """Immutable (chunk, vector) set for one document.

    ``unit_vectors`` holds the L2-normalised vectors, one row per chunk.
    """

    doc_id: str
    chunks: tuple[Chunk, ...]
    unit_vectors: np.ndarray
    created_at: datetime

    def __len__(self) -> int:
        return len(self.chunks)


class MemoryVectorStore(BaseVectorStore):
    """In-process vector store with exact cosine search.

    O(n * d) per query, which is fine at single-document scale. Each
    document lives in an immutable ``DocumentIndex``; writers build a new
    one and swap the reference under a lock.
    """

    def __init__(self, dimension: Optional[int] = None, **kwargs):
        super().__init__(dimension)
        self._lock = threading.Lock()
        self._docs: dict[str, DocumentIndex] = {}

    def upsert(
        self,
        doc_id: str,
        chunks: Sequence[Chunk],
        vectors: Sequence[Sequence[float]],
    ) -> None:
        matrix = self._validate_upsert(doc_id, chunks, vectors)
        unit = normalize_rows(matrix)
        unit.setflags(write=False)

        entry = DocumentIndex(
            doc_id=doc_id,
            chunks=tuple(chunks),
            unit_vectors=unit,
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._docs[doc_id] = entry

        logger.info(f"Stored {len(entry)} vectors for doc {doc_id}")

    def _get(self, doc_id: str) -> Optional[DocumentIndex]:
        with self._lock:
            return self._docs.get(doc_id)

    def _ranked(
        self,
        doc_id: str,
        query_vector: Sequence[float],
        limit: int,
        score_threshold: Optional[float],
    ) -> Optional[tuple[DocumentIndex, np.ndarray, list[int]]]:
        entry = self._get(doc_id)
        if entry is None:
            logger.warning(f"Document {doc_id} not found")
            return None

        scores = cosine_scores(query_vector, entry.unit_vectors)
        picked: list[int] = []
        for idx in rank_descending(scores):
            if len(picked) >= limit:
                break
            if score_threshold is not None and scores[idx] < score_threshold:
                break
            picked.append(int(idx))
        return entry, scores, picked

    def query(
        self,
        doc_id: str,
        query_vector: Sequence[float],
        top_k: int = DEFAULT_TOP_K,
        score_threshold: float = DEFAULT_SCORE_THRESHOLD,
    ) -> RetrievalResult:
        ranked = self._ranked(doc_id, query_vector, top_k, score_threshold)
        if ranked is None:
            return RetrievalResult.empty()

        entry, scores, picked = ranked
        return RetrievalResult(
            chunks=[entry.chunks[i] for i in picked],
            scores=[float(scores[i]) for i in picked],
        )

    def _relevance_pool(
        self,
        doc_id: str,
        query_vector: Sequence[float],
        pool_size: int,
        score_threshold: Optional[float],
    ) -> Optional[CandidatePool]:
        ranked = self._ranked(doc_id, query_vector, pool_size, score_threshold)
        if ranked is None:
            return None

        entry, scores, picked = ranked
        return CandidatePool(
            chunks=[entry.chunks[i] for i in picked],
            scores=scores[picked],
            vectors=entry.unit_vectors[picked],
        )

    def has_doc(self, doc_id: str) -> bool:
        with self._lock:
            return doc_id in self._docs

    def delete_doc(self, doc_id: str) -> bool:
        with self._lock:
            existed = self._docs.pop(doc_id, None) is not None
        if existed:
            logger.info(f"Deleted doc {doc_id}")
        return existed

    def get_doc_info(self, doc_id: str) -> Optional[DocumentInfo]:
        entry = self._get(doc_id)
        if entry is None:
            return None
        return DocumentInfo(doc_id=doc_id, chunk_count=len(entry), created_at=entry.created_at)

    def list_docs(self) -> list[str]:
        with self._lock:
            return list(self._docs.keys())

    def clear_all(self) -> None:
        with self._lock:
            self._docs = {}
        logger.info("Cleared all documents")
