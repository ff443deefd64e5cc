from .chat import (
    AnswerResult,
    ChatEvent,
    ChatRequest,
    Citation,
    GenerationDelta,
)
from .chunk import (
    Chunk,
    DocumentInfo,
    PageText,
    RetrievalResult,
    StoreStats,
    UploadResult,
)

__all__ = [
    "AnswerResult",
    "ChatEvent",
    "ChatRequest",
    "Chunk",
    "Citation",
    "DocumentInfo",
    "GenerationDelta",
    "PageText",
    "RetrievalResult",
    "StoreStats",
    "UploadResult",
]
