from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from docqa.config import find_config_path, load_config
from docqa.stores import BaseVectorStore

from .base import (
    create_embedder_from_config,
    create_llm_from_config,
    create_vector_store_from_config,
)
from .chat import ChatPipeline
from .ingestion import IngestionPipeline
from .retrieval import RetrievalPipeline


@dataclass
class Pipelines:
    """Pipelines sharing one embedder, one LLM and one vector store."""

    ingestion: IngestionPipeline
    retrieval: RetrievalPipeline
    chat: ChatPipeline
    vector_store: BaseVectorStore


def build_pipelines(config: dict[str, Any]) -> Pipelines:
    """Wire every pipeline from configuration.

    Provider clients are created once here and shared.
    """
    embedder = create_embedder_from_config(config)
    llm = create_llm_from_config(config)
    vector_store = create_vector_store_from_config(config, dimension=embedder.dimension)

    ingestion = IngestionPipeline.from_config(config, embedder=embedder, vector_store=vector_store)
    retrieval = RetrievalPipeline.from_config(config, embedder=embedder, vector_store=vector_store)
    chat = ChatPipeline.from_config(config, retrieval=retrieval, llm=llm)

    return Pipelines(
        ingestion=ingestion,
        retrieval=retrieval,
        chat=chat,
        vector_store=vector_store,
    )


def get_pipelines(config_path: Optional[Path] = None) -> Pipelines:
    """Create pipelines from a config file.

    Args:
        config_path: Path to configuration file, searched for when omitted.

    Returns:
        Pipelines instance.
    """
    config = load_config(find_config_path(config_path))
    return build_pipelines(config)
