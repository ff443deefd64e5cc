"""Data models for document chunks and retrieval results."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PageText(BaseModel):
    """Extracted text of one physical page.

    Attributes:
        page_number: 1-based page number.
        text: Whitespace-normalised page text.
    """

    model_config = ConfigDict(frozen=True)

    page_number: int = Field(ge=1)
    text: str


class Chunk(BaseModel):
    """A bounded contiguous span of document text, the unit of embedding.

    Attributes:
        id: Opaque unique chunk identifier (``ch_`` prefixed).
        doc_id: Identifier of the owning document.
        text: The chunk text content.
        page_number: Page the chunk was cut from.
        char_start: Start offset across all pages of the document.
        char_end: End offset (exclusive) across all pages of the document.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    doc_id: str
    text: str = Field(min_length=1)
    page_number: int = Field(ge=1)
    char_start: int = Field(ge=0)
    char_end: int

    @model_validator(mode="after")
    def _check_offsets(self) -> "Chunk":
        if self.char_end <= self.char_start:
            raise ValueError("char_end must be greater than char_start")
        return self


class RetrievalResult(BaseModel):
    """Chunks returned by a search with their positionally aligned scores.

    Attributes:
        chunks: Retrieved chunks, best first.
        scores: Similarity score of each chunk.
    """

    chunks: list[Chunk] = Field(default_factory=list)
    scores: list[float] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_alignment(self) -> "RetrievalResult":
        if len(self.chunks) != len(self.scores):
            raise ValueError(
                f"chunks and scores must align ({len(self.chunks)} != {len(self.scores)})"
            )
        return self

    @classmethod
    def empty(cls) -> "RetrievalResult":
        return cls(chunks=[], scores=[])

    def __len__(self) -> int:
        return len(self.chunks)

    def to_dict(self) -> dict[str, Any]:
        return {
            "chunks": [c.model_dump() for c in self.chunks],
            "scores": list(self.scores),
        }


class DocumentInfo(BaseModel):
    """Bookkeeping about one stored document."""

    doc_id: str
    chunk_count: int
    created_at: datetime


class StoreStats(BaseModel):
    """Aggregate counts over a vector store."""

    doc_count: int
    total_vectors: int


class UploadResult(BaseModel):
    """Outcome of ingesting a document."""

    doc_id: str
    chunk_count: int
    page_count: int
