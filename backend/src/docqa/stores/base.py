from abc import ABC, abstractmethod
from typing import Any, NamedTuple, Optional, Sequence

import numpy as np

from docqa.exceptions import DimensionMismatch, ValidationError
from docqa.models.chunk import Chunk, DocumentInfo, RetrievalResult, StoreStats

from .mmr import DEFAULT_CANDIDATE_MULTIPLIER, DEFAULT_LAMBDA, maximal_marginal_relevance

DEFAULT_TOP_K = 8
DEFAULT_SCORE_THRESHOLD = 0.2


class CandidatePool(NamedTuple):
    """Relevance-ranked candidates handed to the MMR selector."""

    chunks: list[Chunk]
    scores: np.ndarray
    vectors: np.ndarray


class BaseVectorStore(ABC):
    """Capability interface shared by every vector store variant.

    Documents are keyed by ``doc_id``. Each upsert replaces the whole
    document in one step, so a concurrent query sees either the old or the
    new set of chunks, never a mix.
    """

    def __init__(self, dimension: Optional[int] = None, **kwargs: Any):
        self.dimension = dimension

    @abstractmethod
    def upsert(
        self,
        doc_id: str,
        chunks: Sequence[Chunk],
        vectors: Sequence[Sequence[float]],
    ) -> None:
        """Store chunks with their vectors, replacing any previous entry."""
        pass

    @abstractmethod
    def query(
        self,
        doc_id: str,
        query_vector: Sequence[float],
        top_k: int = DEFAULT_TOP_K,
        score_threshold: float = DEFAULT_SCORE_THRESHOLD,
    ) -> RetrievalResult:
        """Top-k chunks by cosine similarity, scores non-increasing."""
        pass

    @abstractmethod
    def has_doc(self, doc_id: str) -> bool:
        pass

    @abstractmethod
    def delete_doc(self, doc_id: str) -> bool:
        """Delete a document. Returns True iff something was deleted."""
        pass

    @abstractmethod
    def get_doc_info(self, doc_id: str) -> Optional[DocumentInfo]:
        pass

    @abstractmethod
    def list_docs(self) -> list[str]:
        pass

    @abstractmethod
    def clear_all(self) -> None:
        pass

    @abstractmethod
    def _relevance_pool(
        self,
        doc_id: str,
        query_vector: Sequence[float],
        pool_size: int,
        score_threshold: Optional[float],
    ) -> Optional[CandidatePool]:
        """The ``pool_size`` most similar candidates, or None for an unknown doc."""
        pass

    def query_with_mmr(
        self,
        doc_id: str,
        query_vector: Sequence[float],
        top_k: int = DEFAULT_TOP_K,
        lambda_mult: float = DEFAULT_LAMBDA,
        candidate_multiplier: int = DEFAULT_CANDIDATE_MULTIPLIER,
        score_threshold: Optional[float] = None,
    ) -> RetrievalResult:
        """Diversity-aware retrieval with Maximal Marginal Relevance.

        The ``top_k * candidate_multiplier`` most relevant chunks form the
        pool; MMR decides which of them are returned, and the selection is
        then presented in order of original relevance.
        """
        if top_k <= 0:
            return RetrievalResult.empty()

        pool = self._relevance_pool(
            doc_id, query_vector, top_k * candidate_multiplier, score_threshold
        )
        if pool is None or not pool.chunks:
            return RetrievalResult.empty()

        selected = maximal_marginal_relevance(pool.scores, pool.vectors, top_k, lambda_mult)
        selected.sort(key=lambda i: -pool.scores[i])

        return RetrievalResult(
            chunks=[pool.chunks[i] for i in selected],
            scores=[float(pool.scores[i]) for i in selected],
        )

    def stats(self) -> StoreStats:
        infos = [self.get_doc_info(doc_id) for doc_id in self.list_docs()]
        return StoreStats(
            doc_count=len(infos),
            total_vectors=sum(info.chunk_count for info in infos if info is not None),
        )

    @property
    def count(self) -> int:
        """Return the number of vectors in the store."""
        return self.stats().total_vectors

    def _validate_upsert(
        self,
        doc_id: str,
        chunks: Sequence[Chunk],
        vectors: Sequence[Sequence[float]],
    ) -> np.ndarray:
        """Check the upsert contract and return the vectors as a 2-D array."""
        if len(chunks) != len(vectors):
            raise DimensionMismatch(len(chunks), len(vectors), what="chunk/vector count")

        for chunk in chunks:
            if chunk.doc_id != doc_id:
                raise ValidationError(
                    f"Chunk {chunk.id} belongs to {chunk.doc_id}, not {doc_id}",
                    field="doc_id",
                )

        if not vectors:
            return np.zeros((0, self.dimension or 0), dtype=np.float64)

        expected = self.dimension or len(vectors[0])
        for vector in vectors:
            if len(vector) != expected:
                raise DimensionMismatch(expected, len(vector))

        return np.asarray(vectors, dtype=np.float64)
