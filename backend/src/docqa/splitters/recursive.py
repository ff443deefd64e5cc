"""Recursive, boundary-aware text splitter.

Text is split on the most structural separator present (sections, then
paragraphs, lines, sentences, clauses, words) and the pieces are greedily
re-merged up to ``chunk_size``. Consecutive chunks share at most
``chunk_overlap`` characters. When no separator applies the text is cut
into fixed windows that back off to a word boundary.

Splitting works on ``(start, end)`` spans into the page text, so every
chunk is an exact slice of its page and offsets never have to be searched
for after the fact.
"""

import logging
import math
import uuid
from typing import Optional

import pydantic
from pydantic import BaseModel, Field, model_validator

from docqa.exceptions import ValidationError
from docqa.models.chunk import Chunk, PageText

from .base import BaseTextSplitter

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1200
DEFAULT_CHUNK_OVERLAP = 180
DEFAULT_MIN_CHUNK_SIZE = 100

# Most structural first. The empty string means "cut by length".
SEPARATORS = [
    "\n\n\n",
    "\n\n",
    "\n",
    ". ",
    "! ",
    "? ",
    "; ",
    ", ",
    " ",
    "",
]

Span = tuple[int, int]


class ChunkingOptions(BaseModel):
    """Size constraints for the recursive splitter.

    Attributes:
        chunk_size: Target maximum chunk length in characters.
        chunk_overlap: Maximum characters shared by consecutive chunks.
        min_chunk_size: Chunks shorter than this are discarded.
    """

    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, gt=0)
    chunk_overlap: int = Field(default=DEFAULT_CHUNK_OVERLAP, ge=0)
    min_chunk_size: int = Field(default=DEFAULT_MIN_CHUNK_SIZE, ge=0)

    @model_validator(mode="after")
    def _check_overlap(self) -> "ChunkingOptions":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        return self

    @classmethod
    def create(cls, **kwargs) -> "ChunkingOptions":
        """Build options, raising ``docqa.exceptions.ValidationError`` on bad input."""
        try:
            return cls(**kwargs)
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Invalid chunking options: {e.errors()[0]['msg']}",
                details={"options": kwargs},
            ) from e


def _trim(text: str, start: int, end: int) -> Span:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end


class RecursiveTextSplitter(BaseTextSplitter):
    """Recursive character splitter with controlled overlap.

    Malformed options (``chunk_overlap >= chunk_size``, negative sizes) are
    rejected with ``ValidationError`` rather than clamped.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
        min_chunk_size: int = DEFAULT_MIN_CHUNK_SIZE,
        separators: Optional[list[str]] = None,
    ):
        options = ChunkingOptions.create(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            min_chunk_size=min_chunk_size,
        )
        self.chunk_size = options.chunk_size
        self.chunk_overlap = options.chunk_overlap
        self.min_chunk_size = options.min_chunk_size
        self.separators = list(separators) if separators is not None else list(SEPARATORS)

    @classmethod
    def from_options(cls, options: Optional[ChunkingOptions] = None) -> "RecursiveTextSplitter":
        options = options or ChunkingOptions()
        return cls(
            chunk_size=options.chunk_size,
            chunk_overlap=options.chunk_overlap,
            min_chunk_size=options.min_chunk_size,
        )

    @property
    def options(self) -> ChunkingOptions:
        return ChunkingOptions(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            min_chunk_size=self.min_chunk_size,
        )

    def split_pages(self, pages: list[PageText], doc_id: str) -> list[Chunk]:
        """Split pages into chunks.

        Offsets are global across the document: pages are treated as if
        joined by a one-character separator.
        """
        chunks: list[Chunk] = []
        seen_ids: set[str] = set()
        page_offset = 0

        for page in pages:
            for start, end in self.split_spans(page.text):
                chunks.append(
                    Chunk(
                        id=_new_chunk_id(seen_ids),
                        doc_id=doc_id,
                        text=page.text[start:end],
                        page_number=page.page_number,
                        char_start=page_offset + start,
                        char_end=page_offset + end,
                    )
                )
            page_offset += len(page.text) + 1

        logger.debug(f"Split {len(pages)} pages of {doc_id} into {len(chunks)} chunks")
        return chunks

    def split_text(self, text: str) -> list[str]:
        return [text[start:end] for start, end in self.split_spans(text)]

    def split_spans(self, text: str) -> list[Span]:
        """Return ``(start, end)`` offsets of every chunk cut from ``text``."""
        if not text or not text.strip():
            return []
        spans = self._split(text, 0, len(text), 0)
        return [s for s in spans if s[1] - s[0] >= self.min_chunk_size]

    def _split(self, text: str, start: int, end: int, level: int) -> list[Span]:
        # Every span but the last is at least min_chunk_size long; the
        # last may be short so the caller can carry it forward.
        start, end = _trim(text, start, end)
        if start >= end:
            return []
        if end - start <= self.chunk_size:
            return [(start, end)]

        if level >= len(self.separators) or self.separators[level] == "":
            return self._split_by_characters(text, start, end)

        pieces = self._pieces(text, start, end, self.separators[level])
        if len(pieces) <= 1:
            return self._split(text, start, end, level + 1)

        return self._merge(text, pieces, level)

    def _pieces(self, text: str, start: int, end: int, separator: str) -> list[Span]:
        # Punctuation in the separator stays with the piece it ends.
        keep = len(separator.rstrip())
        pieces: list[Span] = []
        pos = start

        while True:
            idx = text.find(separator, pos, end)
            piece_end = end if idx == -1 else idx + keep
            s, e = _trim(text, pos, piece_end)
            if s < e:
                pieces.append((s, e))
            if idx == -1:
                break
            pos = idx + len(separator)

        return pieces

    def _merge(self, text: str, pieces: list[Span], level: int) -> list[Span]:
        spans: list[Span] = []
        current: Optional[Span] = None

        def carry(sub: list[Span]) -> Optional[Span]:
            spans.extend(sub[:-1])
            return sub[-1] if sub else None

        for piece in pieces:
            piece_len = piece[1] - piece[0]

            if current is None:
                if piece_len <= self.chunk_size:
                    current = piece
                else:
                    current = carry(self._split(text, piece[0], piece[1], level + 1))
                continue

            if piece[1] - current[0] <= self.chunk_size:
                current = (current[0], piece[1])
                continue

            if current[1] - current[0] < self.min_chunk_size:
                # Too short to stand alone: re-split it together with the next piece.
                current = carry(self._split(text, current[0], piece[1], level + 1))
                continue

            spans.append(current)
            if piece_len > self.chunk_size:
                current = carry(self._split(text, piece[0], piece[1], level + 1))
            else:
                current = (self._overlap_start(text, current, piece), piece[1])

        if current is not None:
            spans.append(current)
        return spans

    def _overlap_start(self, text: str, emitted: Span, piece: Span) -> int:
        """Start offset of the overlap seed carried from ``emitted`` into ``piece``."""
        budget = min(self.chunk_overlap, self.chunk_size - (piece[1] - emitted[1]))
        if budget <= 0:
            return piece[0]

        window_start = emitted[1] - budget
        if window_start <= emitted[0]:
            return emitted[0]

        space = text.find(" ", window_start, emitted[1])
        if space != -1 and space < emitted[1] - budget * 0.5:
            window_start = space + 1

        seed_start, _ = _trim(text, window_start, emitted[1])
        return seed_start

    def _split_by_characters(self, text: str, start: int, end: int) -> list[Span]:
        spans: list[Span] = []
        cursor = start

        while cursor < end:
            window_end = min(cursor + self.chunk_size, end)
            if window_end < end:
                space = text.rfind(" ", cursor, window_end + 1)
                if space > cursor + self.chunk_size * 0.5:
                    window_end = space

            s, e = _trim(text, cursor, window_end)
            is_last = window_end >= end
            if s < e and (e - s >= self.min_chunk_size or is_last):
                spans.append((s, e))
            if is_last:
                break

            next_cursor = window_end - self.chunk_overlap
            cursor = next_cursor if next_cursor > cursor else window_end

            if end - cursor < self.min_chunk_size:
                # Another window would fall under the minimum.
                s, e = _trim(text, cursor, end)
                if s < e and (not spans or e > spans[-1][1]):
                    spans.append((s, e))
                break

        return spans


def _new_chunk_id(seen: set[str]) -> str:
    while True:
        chunk_id = f"ch_{uuid.uuid4().hex[:12]}"
        if chunk_id not in seen:
            seen.add(chunk_id)
            return chunk_id


def chunk_pages(
    pages: list[PageText],
    doc_id: str,
    options: Optional[ChunkingOptions] = None,
) -> list[Chunk]:
    """Split pages into overlapping chunks for one document."""
    return RecursiveTextSplitter.from_options(options).split_pages(pages, doc_id)


def estimate_chunk_count(text: str, options: Optional[ChunkingOptions] = None) -> int:
    """Rough number of chunks ``text`` will produce."""
    options = options or ChunkingOptions()
    if not text:
        return 0
    return math.ceil(len(text) / (options.chunk_size - options.chunk_overlap))
