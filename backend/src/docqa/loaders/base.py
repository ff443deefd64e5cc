import re
from abc import ABC, abstractmethod
from pathlib import Path

from docqa.exceptions import ValidationError
from docqa.models.chunk import PageText

MAX_FILE_SIZE = 20 * 1024 * 1024

_HORIZONTAL_SPACE = re.compile(r"[ \t]+")
_BLANK_LINES = re.compile(r"\n{3,}")


def normalize_text(text: str) -> str:
    """Collapse spaces and tabs, unify line endings and squeeze blank lines."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _HORIZONTAL_SPACE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _BLANK_LINES.sub("\n\n", text)
    return text.strip()


class BaseDocumentLoader(ABC):
    """Abstract base class for text extraction.

    Loaders turn raw document bytes into page-numbered text. Pages that
    come out empty are dropped.
    """

    def __init__(self, max_file_size: int = MAX_FILE_SIZE):
        self.max_file_size = max_file_size

    @abstractmethod
    def extract(self, data: bytes) -> list[PageText]:
        """Extract non-empty pages from ``data``.

        Raises:
            ParseError: If the document is corrupt or unreadable.
            NoTextFound: If no page carries any text.
        """
        pass

    def extract_file(self, file_path: Path | str) -> list[PageText]:
        file_path = Path(file_path)
        if not file_path.is_file():
            raise FileNotFoundError(f"File not found: {file_path}")
        return self.extract(file_path.read_bytes())

    def _check_size(self, data: bytes) -> None:
        if not data:
            raise ValidationError("Empty document", field="file")
        if len(data) > self.max_file_size:
            raise ValidationError(
                f"Document too large: {len(data)} bytes "
                f"(maximum {self.max_file_size // (1024 * 1024)} MB)",
                field="file",
            )
