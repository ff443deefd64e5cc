"""Chat request, citation and streaming event models.

The chat flow surfaces an ordered event stream to its caller. Each event is
one of ``text``, ``done`` or ``error`` and exactly one terminal event
(``done`` or ``error``) closes every request.
"""

import json
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from docqa.models.chunk import Chunk

EXCERPT_LENGTH = 100


class ChatRequest(BaseModel):
    """A question about one uploaded document.

    Attributes:
        doc_id: Document to answer from.
        question: User question.
        top_k: Number of chunks to retrieve as context. None uses the
            configured retrieval default.
    """

    doc_id: str = Field(min_length=1)
    question: str = Field(min_length=1, max_length=2000)
    top_k: Optional[int] = Field(default=None, ge=1, le=20)


class Citation(BaseModel):
    """A pointer from a generated answer back to a context chunk.

    Attributes:
        chunk_id: Cited chunk identifier.
        page_number: Page the cited chunk comes from.
        excerpt: Leading text of the chunk, at most 100 characters.
        fallback: True when the citation was inferred because the answer
            carried no explicit markers.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    page_number: int
    excerpt: str = Field(max_length=EXCERPT_LENGTH)
    fallback: bool = False

    @classmethod
    def from_chunk(cls, chunk: Chunk, fallback: bool = False) -> "Citation":
        text = chunk.text
        if len(text) > EXCERPT_LENGTH:
            text = text[: EXCERPT_LENGTH - 3] + "..."
        return cls(
            chunk_id=chunk.id,
            page_number=chunk.page_number,
            excerpt=text,
            fallback=fallback,
        )


class GenerationDelta(BaseModel):
    """One unit produced by a streaming generation provider.

    ``done=True`` is the explicit end-of-stream marker.
    """

    text: str = ""
    done: bool = False


class ChatEvent(BaseModel):
    """One event of the chat response stream."""

    type: Literal["text", "done", "error"]
    text: Optional[str] = None
    citations: Optional[list[Citation]] = None
    error: Optional[str] = None

    @classmethod
    def text_delta(cls, text: str) -> "ChatEvent":
        return cls(type="text", text=text)

    @classmethod
    def done_event(cls, citations: list[Citation] | None = None) -> "ChatEvent":
        return cls(type="done", citations=citations)

    @classmethod
    def error_event(cls, message: str) -> "ChatEvent":
        return cls(type="error", error=message)

    @property
    def is_terminal(self) -> bool:
        return self.type in ("done", "error")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)

    def to_sse(self) -> str:
        """Encode as a server-sent-events ``data:`` frame."""
        return f"data: {json.dumps(self.to_dict())}\n\n"


class AnswerResult(BaseModel):
    """A complete, non-streamed answer."""

    text: str
    citations: list[Citation] = Field(default_factory=list)
    chunks: list[Chunk] = Field(default_factory=list)
    scores: list[float] = Field(default_factory=list)
