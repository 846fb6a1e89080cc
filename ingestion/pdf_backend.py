"""PDF extraction backends.

A backend opens raw PDF bytes and hands out, page by page, the positioned
text runs found on each page. Coordinates are converted to the PDF
convention (origin bottom-left) so the extractor can sort lines top-down
by descending y.
"""
import asyncio
from abc import ABC, abstractmethod
from typing import List

from ingestion.errors import BackendNotLoadedError, DocumentParseError
from ingestion.models import PageFragment, TextRun

# PyMuPDF is optional at import time; the backend reports it when missing
try:
    import fitz  # PyMuPDF
    _HAS_PYMUPDF = True
except ImportError:
    fitz = None
    _HAS_PYMUPDF = False


class PdfDocumentHandle(ABC):
    """An opened PDF document."""

    @property
    @abstractmethod
    def page_count(self) -> int:
        """Number of pages in the document."""
        pass

    @abstractmethod
    async def page_runs(self, index: int) -> PageFragment:
        """Positioned text runs of the page at ``index`` (0-based)."""
        pass

    @abstractmethod
    def close(self) -> None:
        pass


class PdfBackend(ABC):
    """Opens raw PDF bytes."""

    @abstractmethod
    def open(self, data: bytes) -> PdfDocumentHandle:
        """Open a document.

        Raises:
            DocumentParseError: If the bytes are not a readable PDF
        """
        pass


class PyMuPDFDocument(PdfDocumentHandle):
    """PdfDocumentHandle backed by a ``fitz.Document``."""

    def __init__(self, doc):
        self._doc = doc

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    async def page_runs(self, index: int) -> PageFragment:
        return await asyncio.to_thread(self._read_page, index)

    def _read_page(self, index: int) -> PageFragment:
        try:
            page = self._doc[index]
            height = page.rect.height
            content = page.get_text("dict")
        except Exception as e:
            raise DocumentParseError(f"Failed to parse page {index + 1}: {e}") from e

        runs: List[TextRun] = []
        for block in content.get("blocks", []):
            # Image blocks have type 1
            if block.get("type", 0) != 0:
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = span.get("text", "")
                    if not text:
                        continue
                    x0, _, x1, _ = span["bbox"]
                    origin_x, origin_y = span.get("origin", (x0, span["bbox"][3]))
                    runs.append(TextRun(
                        text=text,
                        x=origin_x,
                        y=height - origin_y,
                        width=max(x1 - x0, 0.0),
                        font_size=span.get("size", 10.0) or 10.0
                    ))

        return PageFragment(page_index=index, runs=runs)

    def close(self) -> None:
        self._doc.close()


class PyMuPDFBackend(PdfBackend):
    """Extraction backend built on PyMuPDF."""

    def __init__(self):
        if not _HAS_PYMUPDF:
            raise BackendNotLoadedError("PDF library not loaded (install PyMuPDF)")

    def open(self, data: bytes) -> PdfDocumentHandle:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            raise DocumentParseError(f"Failed to parse PDF: {e}") from e

        if doc.needs_pass:
            doc.close()
            raise DocumentParseError("Failed to parse PDF: document is encrypted")

        return PyMuPDFDocument(doc)
