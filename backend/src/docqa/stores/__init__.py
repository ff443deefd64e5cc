from typing import Any

from .base import (
    DEFAULT_SCORE_THRESHOLD,
    DEFAULT_TOP_K,
    BaseVectorStore,
    CandidatePool,
)
from .memory import DocumentIndex, MemoryVectorStore
from .mmr import DEFAULT_CANDIDATE_MULTIPLIER, DEFAULT_LAMBDA, maximal_marginal_relevance
from .similarity import cosine_similarity


def create_vector_store(
    provider: str = "memory",
    dimension: int | None = None,
    **kwargs: Any,
) -> BaseVectorStore:
    """Create a vector store instance based on provider.

    Args:
        provider: Provider name ("memory" or "faiss")
        dimension: Embedding dimension, when known up front
        **kwargs: Additional provider-specific parameters

    Returns:
        BaseVectorStore instance
    """
    if provider == "memory":
        return MemoryVectorStore(dimension=dimension, **kwargs)
    elif provider == "faiss":
        from .faiss import FAISSVectorStore

        return FAISSVectorStore(dimension=dimension, **kwargs)
    else:
        raise ValueError(f"Unknown vector store provider: {provider}")


__all__ = [
    "BaseVectorStore",
    "CandidatePool",
    "DEFAULT_CANDIDATE_MULTIPLIER",
    "DEFAULT_LAMBDA",
    "DEFAULT_SCORE_THRESHOLD",
    "DEFAULT_TOP_K",
    "DocumentIndex",
    "MemoryVectorStore",
    "cosine_similarity",
    "create_vector_store",
    "maximal_marginal_relevance",
]
