import logging

from docqa.exceptions import NoTextFound, ParseError
from docqa.models.chunk import PageText

from .base import BaseDocumentLoader, normalize_text

logger = logging.getLogger(__name__)

PAGE_BREAK = "\f"


class TextLoader(BaseDocumentLoader):
    """Plain-text loader. Form feeds separate pages."""

    def __init__(self, encoding: str = "utf-8", **kwargs):
        super().__init__(**kwargs)
        self.encoding = encoding

    def extract(self, data: bytes) -> list[PageText]:
        self._check_size(data)
        try:
            content = data.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise ParseError(f"File is not valid {self.encoding} text: {e}") from e

        pages = []
        for page_number, raw in enumerate(content.split(PAGE_BREAK), start=1):
            text = normalize_text(raw)
            if text:
                pages.append(PageText(page_number=page_number, text=text))

        if not pages:
            raise NoTextFound("Text file is empty")

        logger.info(f"Extracted {len(pages)} pages from text file")
        return pages
