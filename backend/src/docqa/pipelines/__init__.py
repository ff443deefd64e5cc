from .base import (
    DEFAULT_ANSWER_TIMEOUT,
    DEFAULT_CONTEXT_TEMPLATE,
    DEFAULT_MAX_CONTEXT_TOKENS,
    NOT_FOUND_MESSAGE,
    SYSTEM_PROMPT,
    create_embedder_from_config,
    create_llm_from_config,
    create_splitter_from_config,
    create_vector_store_from_config,
)
from .chat import ChatPipeline, count_tokens
from .factory import Pipelines, build_pipelines, get_pipelines
from .ingestion import IngestionPipeline, new_doc_id
from .retrieval import RetrievalOptions, RetrievalPipeline

__all__ = [
    "ChatPipeline",
    "IngestionPipeline",
    "Pipelines",
    "RetrievalOptions",
    "RetrievalPipeline",
    "build_pipelines",
    "count_tokens",
    "create_embedder_from_config",
    "create_llm_from_config",
    "create_splitter_from_config",
    "create_vector_store_from_config",
    "get_pipelines",
    "new_doc_id",
    "DEFAULT_ANSWER_TIMEOUT",
    "DEFAULT_CONTEXT_TEMPLATE",
    "DEFAULT_MAX_CONTEXT_TOKENS",
    "NOT_FOUND_MESSAGE",
    "SYSTEM_PROMPT",
]
