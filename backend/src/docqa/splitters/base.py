from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docqa.models.chunk import Chunk, PageText


class BaseTextSplitter(ABC):
    """Abstract base class for text splitters."""

    @abstractmethod
    def split_pages(self, pages: list["PageText"], doc_id: str) -> list["Chunk"]:
        """Split extracted pages into chunks with page and offset metadata."""
        pass

    @abstractmethod
    def split_text(self, text: str) -> list[str]:
        """Split raw text into chunks without metadata."""
        pass
