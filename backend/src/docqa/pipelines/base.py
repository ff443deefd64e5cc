from typing import Any, Callable, Optional

from docqa.adapters import BaseEmbedder, BaseLLM, create_embedder, create_llm
from docqa.config import get_config_value, get_section
from docqa.splitters import ChunkingOptions, RecursiveTextSplitter
from docqa.stores import BaseVectorStore, create_vector_store

SYSTEM_PROMPT = """Role: You are a precise assistant grounded strictly in the provided document context.

Rules:
1. Only answer from the provided chunks. If the answer isn't clearly supported, reply: "I don't see this in the uploaded document."
2. Cite the page numbers and chunk IDs that support your answer using the format: (page X, chunk Y)
3. Prefer short direct quotes for critical facts; otherwise paraphrase.
4. Be concise and structured: use bullet points or short sections.
5. If the user asks for something unrelated to the document, clarify the limitation.
6. If there are multiple interpretations, list them with citations.

Always include citations for every factual claim you make."""

DEFAULT_CONTEXT_TEMPLATE = """User question:
{question}

Retrieved context (up to {top_k} chunks):
{context}
Instructions:
- Use the context above.
- Include citations like (page {{pageNumber}}, chunk {{chunkId}}).
- If not in the document, say: "I don't see this in the uploaded document."
"""

CHUNK_BLOCK_TEMPLATE = '[Chunk {index} | chunkId={chunk_id} | page {page_number}]\n"{text}"\n---\n\n'

NOT_FOUND_MESSAGE = (
    "I don't see any relevant information in the uploaded document for your question. "
    "Please try rephrasing or ask about a topic that's covered in the document."
)

DEFAULT_MAX_CONTEXT_TOKENS = 6000
DEFAULT_ANSWER_TIMEOUT = 120.0

_ADAPTER_KEYS = ("provider", "model")


def _create_adapter_from_config(
    config: dict[str, Any],
    section: str,
    create_fn: Callable[..., Any],
    defaults: dict[str, str],
) -> Any:
    """Create an adapter (embedder or LLM) from configuration.

    Settings from the ``[retry]`` section apply to every adapter and can be
    overridden per section.
    """
    section_config = get_section(config, section)
    provider = section_config.get("provider", defaults["provider"])
    model = section_config.get("model", defaults["model"])

    extra_kwargs = dict(get_section(config, "retry"))
    extra_kwargs.update(
        {k: v for k, v in section_config.items() if k not in _ADAPTER_KEYS}
    )

    return create_fn(provider, model=model, **extra_kwargs)


def create_embedder_from_config(config: dict[str, Any]) -> BaseEmbedder:
    """Create an embedder instance from configuration."""
    defaults = {"provider": "openai", "model": "text-embedding-3-small"}
    return _create_adapter_from_config(config, "embedding", create_embedder, defaults)


def create_llm_from_config(config: dict[str, Any]) -> BaseLLM:
    """Create an LLM instance from configuration."""
    defaults = {"provider": "openai", "model": "gpt-4o-mini"}
    return _create_adapter_from_config(config, "llm", create_llm, defaults)


def create_vector_store_from_config(
    config: dict[str, Any], dimension: Optional[int] = None
) -> BaseVectorStore:
    provider = get_config_value(config, "store.provider", "memory")
    return create_vector_store(provider, dimension=dimension)


def create_splitter_from_config(config: dict[str, Any]) -> RecursiveTextSplitter:
    options = ChunkingOptions.create(**get_section(config, "chunking"))
    return RecursiveTextSplitter.from_options(options)
