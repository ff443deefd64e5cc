import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Optional

import openai
from openai import OpenAI

from docqa.exceptions import EmbeddingError, ProviderError

from .base import DEFAULT_TIMEOUT, BaseEmbedder
from .utils import create_session_with_pooling, post_json, translate_openai_error

logger = logging.getLogger(__name__)

EMBEDDING_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}

DEFAULT_OLLAMA_DIMENSION = 768


class OpenAIEmbedder(BaseEmbedder):
    """OpenAI embedding provider."""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        timeout: float = DEFAULT_TIMEOUT,
        **kwargs: Any,
    ):
        api_key = kwargs.pop("api_key", None) or None
        base_url = kwargs.pop("base_url", None) or None
        self._dimension: Optional[int] = kwargs.pop("dimensions", None) or kwargs.pop(
            "dimension", None
        )
        super().__init__(model, **kwargs)

        # Retries are handled by the adapter's own policy.
        self.client = OpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0
        )

    @property
    def dimension(self) -> int:
        return self._dimension or EMBEDDING_DIMENSIONS.get(self.model, 1536)

    def _create_embedding_params(self, input_data: str | list[str]) -> dict[str, Any]:
        """Build parameters for embedding API call."""
        params = {"model": self.model, "input": input_data}
        if self._dimension is not None:
            params["dimensions"] = self._dimension
        return params

    def _create(self, input_data: str | list[str]) -> Any:
        try:
            return self.client.embeddings.create(**self._create_embedding_params(input_data))
        except openai.OpenAIError as e:
            raise translate_openai_error(e) from e

    def embed(self, text: str) -> list[float]:
        response = self._with_retry(self._create, text)
        return self._check_dimension(response.data[0].embedding)

    def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        response = self._with_retry(self._create, texts)
        return [item.embedding for item in response.data]


class OllamaEmbedder(BaseEmbedder):
    """Ollama local embedding provider with batch processing and connection pooling."""

    def __init__(
        self,
        model: str = "nomic-embed-text",
        base_url: str = "http://localhost:11434",
        max_workers: int = 8,
        timeout: float = DEFAULT_TIMEOUT,
        **kwargs: Any,
    ):
        self._dimension = kwargs.pop("dimension", None) or DEFAULT_OLLAMA_DIMENSION
        kwargs.pop("api_key", None)
        super().__init__(model, **kwargs)
        self.base_url = (base_url or "http://localhost:11434").rstrip("/")
        self.timeout = timeout
        self._max_workers = max_workers
        self.session = create_session_with_pooling()

    @property
    def dimension(self) -> int:
        return self._dimension

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = post_json(
            self.session, f"{self.base_url}{path}", payload, self.timeout, "ollama"
        )
        return response.json()

    def embed(self, text: str) -> list[float]:
        data = self._with_retry(
            self._post, "/api/embeddings", {"model": self.model, "prompt": text}
        )
        return self._check_dimension(data["embedding"])

    def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Send one batch to the /api/embed endpoint."""
        try:
            data = self._with_retry(
                self._post, "/api/embed", {"model": self.model, "input": texts}
            )
        except ProviderError as e:
            if e.status_code != 404:
                raise
            # Older servers only expose the single-text endpoint.
            logger.warning("Ollama /api/embed not available, embedding texts one by one")
            return self._embed_batch_parallel(texts)
        return data.get("embeddings", [])

    def _embed_batch_parallel(self, texts: list[str]) -> list[list[float]]:
        """Fallback: parallel embedding using ThreadPoolExecutor."""
        results: list[Optional[list[float]]] = [None] * len(texts)
        errors: list[tuple[int, Exception]] = []

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            futures = {executor.submit(self.embed, text): i for i, text in enumerate(texts)}

            for future in as_completed(futures):
                idx = futures[future]
                try:
                    results[idx] = future.result()
                except Exception as e:
                    errors.append((idx, e))

        if errors:
            failed_indices = sorted(idx for idx, _ in errors)
            first_error = errors[0][1]
            raise EmbeddingError(
                f"Embedding failed for {len(errors)}/{len(texts)} texts",
                details={"indices": failed_indices, "first_error": str(first_error)},
            )

        return results  # type: ignore
