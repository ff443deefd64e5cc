import logging
import tempfile
from pathlib import Path

from llama_index.core import SimpleDirectoryReader

from docqa.exceptions import NoTextFound, ParseError
from docqa.models.chunk import PageText

from .base import BaseDocumentLoader, normalize_text

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"


class PDFLoader(BaseDocumentLoader):
    """Document loader for PDF files using llama-index.

    The PDF reader yields one llama-index document per page; page numbers
    follow reading order.
    """

    def extract(self, data: bytes) -> list[PageText]:
        self._check_size(data)
        if not data.startswith(PDF_MAGIC):
            raise ParseError("Invalid PDF file: missing %PDF- header")

        with tempfile.TemporaryDirectory() as tmp_dir:
            pdf_path = Path(tmp_dir) / "upload.pdf"
            pdf_path.write_bytes(data)
            try:
                reader = SimpleDirectoryReader(
                    input_files=[str(pdf_path)], raise_on_error=True
                )
                documents = reader.load_data()
            except Exception as e:
                raise ParseError(f"Failed to parse PDF: {e}") from e

        pages = []
        for page_number, document in enumerate(documents, start=1):
            text = normalize_text(document.text or "")
            if text:
                pages.append(PageText(page_number=page_number, text=text))

        if not pages:
            raise NoTextFound(
                "No text could be extracted from the PDF",
                details={"page_count": len(documents)},
            )

        logger.info(f"Extracted {len(pages)}/{len(documents)} non-empty pages from PDF")
        return pages
