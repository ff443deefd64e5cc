"""Citation extraction from generated answers.

Answers cite their sources with markers like ``(page 4, chunk ch_9f8e7d)``.
The chunk reference is either a chunk id or the number of the context
block the model was shown (``(page 4, chunk 2)``).
"""

import logging
import re
from typing import Optional, Sequence

from docqa.models.chat import Citation
from docqa.models.chunk import Chunk

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_COUNT = 3

CITATION_PATTERN = re.compile(
    r"\(page\s*(\d+),?\s*chunk\s*(ch_\w+|\d+)\)",
    re.IGNORECASE,
)


def _resolve(
    page_number: int,
    chunk_ref: str,
    context_chunks: Sequence[Chunk],
) -> Optional[Chunk]:
    ref = chunk_ref.lower()
    for chunk in context_chunks:
        if chunk.id.lower() == ref:
            return chunk

    if ref.isdigit():
        position = int(ref)
        if 1 <= position <= len(context_chunks):
            chunk = context_chunks[position - 1]
            if chunk.page_number == page_number:
                return chunk

    for chunk in context_chunks:
        if chunk.page_number == page_number:
            return chunk
    return None


def extract_citations(
    answer_text: str,
    context_chunks: Sequence[Chunk],
    fallback_count: int = DEFAULT_FALLBACK_COUNT,
) -> list[Citation]:
    """Resolve citation markers in ``answer_text`` against the context.

    Markers resolve by chunk id first and by page number otherwise;
    unresolvable markers are skipped. Citations are deduplicated by
    ``(chunk_id, page_number)`` in order of first appearance.

    When the answer carries no marker at all, the first ``fallback_count``
    context chunks are cited with ``fallback=True``. A count of 0 turns
    the fallback off.
    """
    citations: list[Citation] = []
    seen: set[tuple[str, int]] = set()
    markers = 0

    for match in CITATION_PATTERN.finditer(answer_text):
        markers += 1
        chunk = _resolve(int(match.group(1)), match.group(2), context_chunks)
        if chunk is None:
            logger.debug(f"Unresolved citation marker: {match.group(0)}")
            continue

        key = (chunk.id, chunk.page_number)
        if key not in seen:
            seen.add(key)
            citations.append(Citation.from_chunk(chunk))

    if markers == 0 and fallback_count > 0 and context_chunks:
        fallback = list(context_chunks[:fallback_count])
        logger.warning(
            f"Answer has no citation markers, citing the first {len(fallback)} context chunks"
        )
        citations = [Citation.from_chunk(chunk, fallback=True) for chunk in fallback]

    return citations
