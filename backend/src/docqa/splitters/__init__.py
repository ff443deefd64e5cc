from .base import BaseTextSplitter
from .recursive import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MIN_CHUNK_SIZE,
    SEPARATORS,
    ChunkingOptions,
    RecursiveTextSplitter,
    chunk_pages,
    estimate_chunk_count,
)

__all__ = [
    "BaseTextSplitter",
    "ChunkingOptions",
    "DEFAULT_CHUNK_OVERLAP",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_MIN_CHUNK_SIZE",
    "RecursiveTextSplitter",
    "SEPARATORS",
    "chunk_pages",
    "estimate_chunk_count",
]
