import logging
from typing import Any, Optional

import pydantic
from pydantic import BaseModel, Field

from docqa.adapters import BaseEmbedder
from docqa.config import get_section
from docqa.exceptions import ValidationError
from docqa.models import RetrievalResult
from docqa.stores import (
    DEFAULT_CANDIDATE_MULTIPLIER,
    DEFAULT_LAMBDA,
    DEFAULT_SCORE_THRESHOLD,
    DEFAULT_TOP_K,
    BaseVectorStore,
)

from .base import create_embedder_from_config, create_vector_store_from_config

logger = logging.getLogger(__name__)

MAX_RERANK_CANDIDATES = 20
RERANK_TERM_BOOST = 0.1
RERANK_MIN_TERM_LENGTH = 3
DEFAULT_MIN_RELEVANT_SCORE = 0.3


class RetrievalOptions(BaseModel):
    """Per-call retrieval settings."""

    top_k: int = Field(default=DEFAULT_TOP_K, ge=0)
    score_threshold: float = DEFAULT_SCORE_THRESHOLD
    use_mmr: bool = True
    mmr_lambda: float = Field(default=DEFAULT_LAMBDA, ge=0.0, le=1.0)
    candidate_multiplier: int = Field(default=DEFAULT_CANDIDATE_MULTIPLIER, ge=1)

    def merge(self, **overrides: Any) -> "RetrievalOptions":
        """Copy with the non-None ``overrides`` applied and validated."""
        values = self.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return RetrievalOptions(**values)
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Invalid retrieval options: {e.errors()[0]['msg']}",
                details={"options": overrides},
            ) from e


class RetrievalPipeline:
    """Coordinates the embedder and the vector store for one query.

    Owns no state of its own. Unknown documents yield an empty result;
    embedding failures propagate.
    """

    def __init__(
        self,
        embedder: BaseEmbedder,
        vector_store: BaseVectorStore,
        options: Optional[RetrievalOptions] = None,
        rerank: bool = False,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.options = options or RetrievalOptions()
        self.rerank = rerank

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        embedder: Optional[BaseEmbedder] = None,
        vector_store: Optional[BaseVectorStore] = None,
    ) -> "RetrievalPipeline":
        """Create pipeline from configuration dictionary."""
        embedder = embedder or create_embedder_from_config(config)
        vector_store = vector_store or create_vector_store_from_config(
            config, dimension=embedder.dimension
        )
        section = get_section(config, "retrieval")
        rerank = bool(section.pop("rerank", False))
        options = RetrievalOptions().merge(**section)
        return cls(embedder=embedder, vector_store=vector_store, options=options, rerank=rerank)

    def retrieve(
        self,
        doc_id: str,
        query: str,
        options: Optional[RetrievalOptions] = None,
        **overrides: Any,
    ) -> RetrievalResult:
        """Retrieve the chunks of ``doc_id`` most relevant to ``query``.

        Args:
            doc_id: Document to search.
            query: Question text.
            options: Settings for this call, defaults to the pipeline's.
            **overrides: Individual option overrides (``top_k=4``, ...).

        Returns:
            RetrievalResult with scores non-increasing.
        """
        opts = (options or self.options).merge(**overrides)

        if not self.vector_store.has_doc(doc_id):
            logger.warning(f"Document {doc_id} not found")
            return RetrievalResult.empty()

        logger.info(f"Embedding query: {query[:50]}...")
        query_vector = self.embedder.embed(query)

        if opts.use_mmr:
            # score_threshold applies to plain search only.
            result = self.vector_store.query_with_mmr(
                doc_id,
                query_vector,
                top_k=opts.top_k,
                lambda_mult=opts.mmr_lambda,
                candidate_multiplier=opts.candidate_multiplier,
            )
        else:
            result = self.vector_store.query(
                doc_id,
                query_vector,
                top_k=opts.top_k,
                score_threshold=opts.score_threshold,
            )

        logger.info(f"Retrieved {len(result)} chunks for {doc_id} (mmr={opts.use_mmr})")
        return result

    def retrieve_with_rerank(
        self,
        doc_id: str,
        query: str,
        options: Optional[RetrievalOptions] = None,
        **overrides: Any,
    ) -> RetrievalResult:
        """Retrieve extra candidates and boost those containing query terms.

        Each candidate gains up to ``+0.1`` in proportion to the share of
        query terms longer than three characters found in its text.
        """
        opts = (options or self.options).merge(**overrides)
        candidate_k = max(opts.top_k, min(opts.top_k * 2, MAX_RERANK_CANDIDATES))
        candidates = self.retrieve(doc_id, query, opts, top_k=candidate_k)
        if not candidates.chunks:
            return candidates

        terms = [t for t in query.lower().split() if len(t) > RERANK_MIN_TERM_LENGTH]
        boosted = []
        for chunk, score in zip(candidates.chunks, candidates.scores):
            text = chunk.text.lower()
            matches = sum(1 for term in terms if term in text)
            boost = RERANK_TERM_BOOST * matches / max(len(terms), 1)
            boosted.append((chunk, score + boost))

        boosted.sort(key=lambda item: item[1], reverse=True)
        boosted = boosted[: opts.top_k]

        return RetrievalResult(
            chunks=[chunk for chunk, _ in boosted],
            scores=[score for _, score in boosted],
        )

    def has_relevant_content(
        self,
        doc_id: str,
        query: str,
        min_score: float = DEFAULT_MIN_RELEVANT_SCORE,
    ) -> bool:
        """True when the best matching chunk scores at least ``min_score``."""
        result = self.retrieve(
            doc_id, query, top_k=1, use_mmr=False, score_threshold=min_score
        )
        return bool(result.scores) and result.scores[0] >= min_score

    def search(self, doc_id: str, query: str, **overrides: Any) -> RetrievalResult:
        """Retrieve using the configured strategy (reranked or not)."""
        if self.rerank:
            return self.retrieve_with_rerank(doc_id, query, **overrides)
        return self.retrieve(doc_id, query, **overrides)
