import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

import faiss
import numpy as np

from docqa.exceptions import DimensionMismatch
from docqa.models.chunk import Chunk, DocumentInfo, RetrievalResult

from .base import (
    DEFAULT_SCORE_THRESHOLD,
    DEFAULT_TOP_K,
    BaseVectorStore,
    CandidatePool,
)
from .similarity import as_vector, normalize_rows

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _FaissDocument:
    chunks: tuple[Chunk, ...]
    index: Optional[faiss.Index]
    created_at: datetime


class FAISSVectorStore(BaseVectorStore):
    """FAISS-backed vector store, one inner-product index per document.

    Vectors are L2-normalised before they are added, so inner product is
    cosine similarity. Same query contract as the in-memory store.
    """

    def __init__(self, dimension: Optional[int] = None, **kwargs):
        super().__init__(dimension)
        self._lock = threading.Lock()
        self._docs: dict[str, _FaissDocument] = {}

    def upsert(
        self,
        doc_id: str,
        chunks: Sequence[Chunk],
        vectors: Sequence[Sequence[float]],
    ) -> None:
        matrix = self._validate_upsert(doc_id, chunks, vectors)

        index = None
        if len(chunks) > 0:
            index = faiss.IndexFlatIP(matrix.shape[1])
            index.add(np.ascontiguousarray(normalize_rows(matrix), dtype=np.float32))

        entry = _FaissDocument(
            chunks=tuple(chunks),
            index=index,
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._docs[doc_id] = entry

        logger.info(f"Stored {len(chunks)} vectors for doc {doc_id} in FAISS")

    def _get(self, doc_id: str) -> Optional[_FaissDocument]:
        with self._lock:
            return self._docs.get(doc_id)

    def _search(
        self,
        entry: _FaissDocument,
        query_vector: Sequence[float],
        k: int,
        score_threshold: Optional[float],
    ) -> list[tuple[int, float]]:
        if entry.index is None or k <= 0:
            return []

        query = as_vector(query_vector)
        if query.shape[0] != entry.index.d:
            raise DimensionMismatch(entry.index.d, query.shape[0])

        # FAISS orders equal scores arbitrarily, so rank every vector and
        # break ties by insertion order before cutting at k.
        unit = normalize_rows(query.reshape(1, -1))
        distances, indices = entry.index.search(
            np.ascontiguousarray(unit, dtype=np.float32), entry.index.ntotal
        )

        hits = []
        for score, idx in zip(distances[0], indices[0]):
            if idx < 0:
                continue
            score = float(np.clip(score, -1.0, 1.0))
            if score_threshold is not None and score < score_threshold:
                continue
            hits.append((int(idx), score))

        hits.sort(key=lambda hit: (-hit[1], hit[0]))
        return hits[:k]

    def query(
        self,
        doc_id: str,
        query_vector: Sequence[float],
        top_k: int = DEFAULT_TOP_K,
        score_threshold: float = DEFAULT_SCORE_THRESHOLD,
    ) -> RetrievalResult:
        entry = self._get(doc_id)
        if entry is None:
            logger.warning(f"Document {doc_id} not found")
            return RetrievalResult.empty()

        hits = self._search(entry, query_vector, top_k, score_threshold)
        return RetrievalResult(
            chunks=[entry.chunks[i] for i, _ in hits],
            scores=[score for _, score in hits],
        )

    def _relevance_pool(
        self,
        doc_id: str,
        query_vector: Sequence[float],
        pool_size: int,
        score_threshold: Optional[float],
    ) -> Optional[CandidatePool]:
        entry = self._get(doc_id)
        if entry is None:
            logger.warning(f"Document {doc_id} not found")
            return None

        hits = self._search(entry, query_vector, pool_size, score_threshold)
        if not hits:
            return CandidatePool(chunks=[], scores=np.zeros(0), vectors=np.zeros((0, 0)))

        vectors = np.vstack([entry.index.reconstruct(i) for i, _ in hits])
        return CandidatePool(
            chunks=[entry.chunks[i] for i, _ in hits],
            scores=np.array([score for _, score in hits], dtype=np.float64),
            vectors=vectors.astype(np.float64),
        )

    def has_doc(self, doc_id: str) -> bool:
        with self._lock:
            return doc_id in self._docs

    def delete_doc(self, doc_id: str) -> bool:
        with self._lock:
            existed = self._docs.pop(doc_id, None) is not None
        if existed:
            logger.info(f"Deleted doc {doc_id} from FAISS")
        return existed

    def get_doc_info(self, doc_id: str) -> Optional[DocumentInfo]:
        entry = self._get(doc_id)
        if entry is None:
            return None
        return DocumentInfo(
            doc_id=doc_id, chunk_count=len(entry.chunks), created_at=entry.created_at
        )

    def list_docs(self) -> list[str]:
        with self._lock:
            return list(self._docs.keys())

    def clear_all(self) -> None:
        with self._lock:
            self._docs = {}
