import hashlib
import math
from pathlib import Path
from typing import Any, Iterator

import pytest

from docqa.adapters.base import BaseEmbedder, BaseLLM
from docqa.models import Chunk, GenerationDelta, PageText
from docqa.stores import MemoryVectorStore, create_vector_store


class MockEmbedder(BaseEmbedder):
    """Deterministic bag-of-words embedder for testing.

    Each word is hashed into one of ``dimension`` buckets, so texts sharing
    words get similar vectors.
    """

    def __init__(self, dimension: int = 64, **kwargs: Any):
        kwargs.setdefault("batch_delay", 0)
        super().__init__("mock-embedder", **kwargs)
        self._dimension = dimension
        self.calls: list[list[str]] = []

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for word in text.lower().split():
            word = word.strip(".,;:!?\"'()")
            if not word:
                continue
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % self._dimension
            vector[bucket] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        return [v / norm for v in vector] if norm else vector

    def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self.embed(text) for text in texts]


class MockLLM(BaseLLM):
    """Mock LLM replaying scripted deltas."""

    def __init__(
        self,
        deltas: list[GenerationDelta] | None = None,
        streaming: bool = True,
        model: str = "mock-llm",
        **kwargs: Any,
    ):
        super().__init__(model, **kwargs)
        self.deltas = deltas if deltas is not None else [
            GenerationDelta(text="Mock "),
            GenerationDelta(text="response"),
            GenerationDelta(done=True),
        ]
        self.streaming = streaming
        self.prompts: list[list[dict[str, str]]] = []
        self.closed = False

    @property
    def supports_streaming(self) -> bool:
        return self.streaming

    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        self.prompts.append(messages)
        return "".join(d.text for d in self.deltas if not d.done)

    def stream_chat(
        self, messages: list[dict[str, str]], **kwargs: Any
    ) -> Iterator[GenerationDelta]:
        self.prompts.append(messages)
        try:
            for delta in self.deltas:
                if isinstance(delta, Exception):
                    raise delta
                yield delta
        finally:
            self.closed = True


@pytest.fixture
def mock_embedder() -> MockEmbedder:
    return MockEmbedder(dimension=64)


@pytest.fixture
def mock_llm() -> MockLLM:
    return MockLLM()


@pytest.fixture
def memory_store() -> MemoryVectorStore:
    return MemoryVectorStore()


@pytest.fixture(params=["memory", "faiss"])
def vector_store(request):
    return create_vector_store(request.param)


@pytest.fixture
def sample_pages() -> list[PageText]:
    return [
        PageText(
            page_number=1,
            text=(
                "Quarterly planning overview. The product launch is scheduled for the third "
                "quarter, after the security review has been completed by the platform team. "
                "Budget approval is expected in early spring."
            ),
        ),
        PageText(
            page_number=2,
            text=(
                "Hiring plan. The engineering organisation will add four backend engineers "
                "and two designers. Interviews start once the headcount request is approved "
                "by finance and the recruiting calendar is published."
            ),
        ),
    ]


def make_chunk(
    chunk_id: str,
    text: str,
    page_number: int = 1,
    doc_id: str = "doc_test",
    char_start: int = 0,
) -> Chunk:
    return Chunk(
        id=chunk_id,
        doc_id=doc_id,
        text=text,
        page_number=page_number,
        char_start=char_start,
        char_end=char_start + len(text),
    )


@pytest.fixture
def temp_config(tmp_path: Path) -> Path:
    config_content = """
[embedding]
provider = "openai"
model = "text-embedding-3-small"
api_key = "test-key"

[llm]
provider = "openai"
model = "gpt-4o-mini"
api_key = "test-key"

[retry]
max_attempts = 2
initial_delay = 0

[store]
provider = "memory"

[chunking]
chunk_size = 400
chunk_overlap = 60
min_chunk_size = 20

[retrieval]
top_k = 4
use_mmr = false
"""
    config_path = tmp_path / "config.toml"
    config_path.write_text(config_content)
    return config_path


@pytest.fixture
def chunk_factory():
    return make_chunk


@pytest.fixture
def sample_pdf(tmp_path: Path) -> Path:
    pdf_path = tmp_path / "test.pdf"
    pdf_path.write_bytes(b"%PDF-1.4\ntest content\n%%EOF")
    return pdf_path
