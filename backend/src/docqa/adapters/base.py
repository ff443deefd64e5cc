import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterator, Optional, TypeVar

from docqa.exceptions import DimensionMismatch, EmbeddingError
from docqa.models.chat import GenerationDelta

from .utils import (
    DEFAULT_INITIAL_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY,
    build_retrying,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 100
DEFAULT_BATCH_DELAY = 0.1
DEFAULT_TIMEOUT = 60.0


class _RetryingAdapter:
    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
    ):
        self._retrying = build_retrying(max_attempts, initial_delay, max_delay)

    def _with_retry(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return self._retrying.copy()(fn, *args, **kwargs)


class BaseEmbedder(_RetryingAdapter, ABC):
    """Abstract base class for embedding providers.

    Subclasses implement single and batch requests; ``embed_batch`` takes
    care of batching, pacing and validating what comes back.
    """

    def __init__(
        self,
        model: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        **kwargs: Any,
    ):
        super().__init__(max_attempts, initial_delay, max_delay)
        self.model = model
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self.kwargs = kwargs

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        pass

    @abstractmethod
    def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed one provider-sized batch."""
        pass

    @property
    @abstractmethod
    def dimension(self) -> int:
        pass

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed ``texts`` in order, one vector per text.

        A batch that comes back short or with vectors of the wrong length
        fails the whole call.
        """
        if not texts:
            return []

        batches = [
            texts[i : i + self.batch_size] for i in range(0, len(texts), self.batch_size)
        ]
        embeddings: list[list[float]] = []

        for i, batch in enumerate(batches):
            if i > 0 and self.batch_delay > 0:
                time.sleep(self.batch_delay)

            vectors = self._embed_batch(batch)
            if len(vectors) != len(batch):
                raise EmbeddingError(
                    f"Provider returned {len(vectors)} embeddings for {len(batch)} texts",
                    details={"batch": i + 1, "model": self.model},
                )
            for vector in vectors:
                self._check_dimension(vector)

            embeddings.extend(vectors)
            logger.info(f"Embedded batch {i + 1}/{len(batches)} ({len(batch)} texts)")

        return embeddings

    def _check_dimension(self, vector: list[float]) -> list[float]:
        if len(vector) != self.dimension:
            raise DimensionMismatch(self.dimension, len(vector))
        return vector


class BaseLLM(_RetryingAdapter, ABC):
    """Abstract base class for LLM providers."""

    def __init__(
        self,
        model: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        **kwargs: Any,
    ):
        super().__init__(max_attempts, initial_delay, max_delay)
        self.model = model
        self.kwargs = kwargs

    @abstractmethod
    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        pass

    @abstractmethod
    def stream_chat(
        self, messages: list[dict[str, str]], **kwargs: Any
    ) -> Iterator[GenerationDelta]:
        """Stream a reply, ending with a ``GenerationDelta(done=True)`` marker."""
        pass

    @property
    @abstractmethod
    def supports_streaming(self) -> bool:
        pass

    @staticmethod
    def _build_messages(prompt: str, system_prompt: Optional[str] = None) -> list[dict[str, str]]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    def generate(self, prompt: str, system_prompt: Optional[str] = None, **kwargs: Any) -> str:
        return self.chat(self._build_messages(prompt, system_prompt), **kwargs)

    def generate_stream(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        **kwargs: Any,
    ) -> Iterator[GenerationDelta]:
        """Lazy, single-pass sequence of deltas terminated by a done marker.

        Providers without streaming answer in one delta.
        """
        messages = self._build_messages(prompt, system_prompt)
        if not self.supports_streaming:
            yield GenerationDelta(text=self.chat(messages, **kwargs))
            yield GenerationDelta(done=True)
            return
        yield from self.stream_chat(messages, **kwargs)
