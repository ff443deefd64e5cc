from pathlib import Path
from typing import Any

from .base import MAX_FILE_SIZE, BaseDocumentLoader, normalize_text
from .pdf import PDFLoader
from .text import TextLoader

TEXT_SUFFIXES = {".txt", ".md", ".text"}


def create_loader(provider: str, **kwargs: Any) -> BaseDocumentLoader:
    """Create a document loader based on provider.

    Args:
        provider: Provider name ("pdf" or "text")
        **kwargs: Additional provider-specific parameters

    Returns:
        BaseDocumentLoader instance
    """
    if provider == "pdf":
        return PDFLoader(**kwargs)
    elif provider == "text":
        return TextLoader(**kwargs)
    else:
        raise ValueError(f"Unknown loader provider: {provider}")


def get_loader_for_file(file_path: Path | str, **kwargs: Any) -> BaseDocumentLoader:
    """Get the appropriate loader for a file based on extension.

    Args:
        file_path: Path to the file

    Returns:
        BaseDocumentLoader instance appropriate for the file type
    """
    suffix = Path(file_path).suffix.lower()

    if suffix == ".pdf":
        return PDFLoader(**kwargs)
    if suffix in TEXT_SUFFIXES:
        return TextLoader(**kwargs)

    raise ValueError(f"No loader available for file type: {suffix}")


__all__ = [
    "BaseDocumentLoader",
    "MAX_FILE_SIZE",
    "PDFLoader",
    "TextLoader",
    "create_loader",
    "get_loader_for_file",
    "normalize_text",
]
