import logging
import uuid
from pathlib import Path
from typing import Any, Optional

from docqa.adapters import BaseEmbedder
from docqa.exceptions import ValidationError
from docqa.loaders import BaseDocumentLoader, PDFLoader, get_loader_for_file
from docqa.models import PageText, UploadResult
from docqa.splitters import BaseTextSplitter, RecursiveTextSplitter
from docqa.stores import BaseVectorStore

from .base import (
    create_embedder_from_config,
    create_splitter_from_config,
    create_vector_store_from_config,
)

logger = logging.getLogger(__name__)


def new_doc_id() -> str:
    return f"doc_{uuid.uuid4().hex[:12]}"


class IngestionPipeline:
    """Pipeline for ingesting one document: extract, chunk, embed, store.

    Supports dependency injection; a document is only stored once every
    chunk has been embedded.
    """

    def __init__(
        self,
        embedder: BaseEmbedder,
        vector_store: BaseVectorStore,
        splitter: Optional[BaseTextSplitter] = None,
        loader: Optional[BaseDocumentLoader] = None,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.splitter = splitter or RecursiveTextSplitter()
        self.loader = loader

    @classmethod
    def from_config(
        cls,
        config: dict[str, Any],
        embedder: Optional[BaseEmbedder] = None,
        vector_store: Optional[BaseVectorStore] = None,
    ) -> "IngestionPipeline":
        """Create pipeline from configuration dictionary."""
        embedder = embedder or create_embedder_from_config(config)
        vector_store = vector_store or create_vector_store_from_config(
            config, dimension=embedder.dimension
        )
        return cls(
            embedder=embedder,
            vector_store=vector_store,
            splitter=create_splitter_from_config(config),
        )

    def ingest_pages(self, pages: list[PageText], doc_id: Optional[str] = None) -> UploadResult:
        """Chunk, embed and store already-extracted pages."""
        doc_id = doc_id or new_doc_id()

        chunks = self.splitter.split_pages(pages, doc_id)
        if not chunks:
            raise ValidationError(
                "Document has insufficient text to create chunks",
                details={"doc_id": doc_id, "page_count": len(pages)},
            )
        logger.info(f"Created {len(chunks)} chunks from {len(pages)} pages for {doc_id}")

        vectors = self.embedder.embed_batch([chunk.text for chunk in chunks])
        self.vector_store.upsert(doc_id, chunks, vectors)

        return UploadResult(doc_id=doc_id, chunk_count=len(chunks), page_count=len(pages))

    def ingest_bytes(
        self,
        data: bytes,
        doc_id: Optional[str] = None,
        loader: Optional[BaseDocumentLoader] = None,
    ) -> UploadResult:
        """Ingest raw document bytes. PDF unless another loader is given."""
        loader = loader or self.loader or PDFLoader()
        pages = loader.extract(data)
        return self.ingest_pages(pages, doc_id)

    def ingest_file(self, file_path: Path | str, doc_id: Optional[str] = None) -> UploadResult:
        file_path = Path(file_path)
        logger.info(f"Ingesting {file_path}")

        loader = self.loader or get_loader_for_file(file_path)
        pages = loader.extract_file(file_path)
        return self.ingest_pages(pages, doc_id)
