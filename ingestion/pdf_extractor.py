"""Document text extraction module."""
import asyncio
from pathlib import Path
from typing import Callable, List, Optional

from utils.logger import setup_logger
from ingestion.models import ExtractedDocument, ExtractionMode, PageFragment, RawDocument, TextRun
from ingestion.cleaner import clean_extracted_text, polish_text, strip_headers_footers, strip_page_artifacts
from ingestion.errors import DocumentParseError, EmptyDocumentError, PDFExtractionError
from ingestion.pdf_backend import PdfBackend, PyMuPDFBackend
import config

logger = setup_logger(__name__)

ProgressCallback = Callable[[float], None]


class _LineBucket:
    """Runs sharing (roughly) the same baseline."""

    def __init__(self, y: float):
        self.y = y
        self.runs: List[TextRun] = []


class PageTextExtractor:
    """Turns paginated documents into linear, cleaned text."""

    def __init__(
        self,
        backend: Optional[PdfBackend] = None,
        mode: ExtractionMode = ExtractionMode.LAYOUT,
        line_tolerance: float = config.LINE_TOLERANCE
    ):
        """Initialize extractor.

        Args:
            backend: PDF backend; PyMuPDF is used when omitted
            mode: How runs are grouped into lines
            line_tolerance: Max vertical distance for runs on the same line
        """
        self._backend = backend
        self.mode = mode
        self.line_tolerance = line_tolerance

    @property
    def backend(self) -> PdfBackend:
        if self._backend is None:
            self._backend = PyMuPDFBackend()
        return self._backend

    async def extract_file(
        self,
        path: str,
        progress: Optional[ProgressCallback] = None
    ) -> ExtractedDocument:
        """Extract a PDF or plain-text file.

        Args:
            path: Path to a .pdf file or any UTF-8 text file
            progress: Called with percent complete after each PDF page

        Returns:
            ExtractedDocument with cleaned text

        Raises:
            PDFExtractionError: If the file is missing or cannot be extracted
        """
        file_path = Path(path)
        if not file_path.exists():
            raise PDFExtractionError(f"File not found: {file_path}")

        logger.info(f"Extracting text from {file_path.name}")

        if file_path.suffix.lower() == ".pdf":
            data = await asyncio.to_thread(file_path.read_bytes)
            doc = await self.extract_pdf(data, title=file_path.stem, progress=progress)
        else:
            raw = await asyncio.to_thread(file_path.read_text, encoding="utf-8", errors="replace")
            doc = self.extract_txt(raw, title=file_path.stem)

        doc.metadata.update({
            'filename': file_path.name,
            'file_path': str(file_path.absolute())
        })
        return doc

    async def extract_pdf(
        self,
        data: bytes,
        title: str,
        progress: Optional[ProgressCallback] = None
    ) -> ExtractedDocument:
        """Extract linear text from PDF bytes, one page at a time.

        Raises:
            BackendNotLoadedError: If no PDF library is available
            DocumentParseError: If the PDF is corrupted or encrypted
            EmptyDocumentError: If the PDF has no extractable text
        """
        handle = self.backend.open(data)

        pages: List[str] = []
        try:
            total = handle.page_count
            if total == 0:
                raise EmptyDocumentError("PDF has no pages")

            for index in range(total):
                try:
                    fragment = await handle.page_runs(index)
                except PDFExtractionError:
                    raise
                except Exception as e:
                    raise DocumentParseError(f"Failed to parse PDF: {e}") from e

                page_text = self.page_text(fragment)
                if page_text:
                    pages.append(page_text)

                if progress is not None:
                    progress((index + 1) / total * 100)
        finally:
            handle.close()

        text = self._finalize('\n\n'.join(pages))
        if len(text) < config.MIN_EXTRACTED_CHARS:
            raise EmptyDocumentError(
                "PDF appears to contain no extractable text. "
                "This may be a scanned image PDF. Please use an OCR'd version."
            )

        logger.info(f"Extracted {total} pages, {len(text.split())} words")

        return ExtractedDocument(
            title=title,
            text=text,
            source_type="pdf",
            page_count=total,
            metadata={'word_count': len(text.split())}
        )

    def extract_txt(self, raw_text: str, title: str) -> ExtractedDocument:
        """Plain text skips layout repair and goes straight to polishing.

        Raises:
            EmptyDocumentError: If the file is (nearly) empty
        """
        text = polish_text(strip_headers_footers(raw_text))
        if len(text) < config.MIN_EXTRACTED_CHARS:
            raise EmptyDocumentError("Could not extract text or file is empty")

        return ExtractedDocument(
            title=title,
            text=text,
            source_type="txt",
            page_count=1,
            metadata={'word_count': len(text.split())}
        )

    def linearize(self, document: RawDocument) -> str:
        """Linear text for an already-loaded document (no backend needed)."""
        pages = [self.page_text(fragment) for fragment in document.pages]
        return self._finalize('\n\n'.join(page for page in pages if page))

    def page_text(self, fragment: PageFragment) -> str:
        """Text of a single page without its page-number header/footer."""
        lines = self.page_lines(fragment)
        lines = strip_page_artifacts(lines, page_number=fragment.page_index + 1)
        return '\n'.join(lines).strip()

    def page_lines(self, fragment: PageFragment) -> List[str]:
        """Group a page's runs into lines, top to bottom."""
        runs = [run for run in fragment.runs if run.text.strip()]
        if not runs:
            return []

        if self.mode == ExtractionMode.STREAM:
            lines = self._stream_lines(runs)
        else:
            lines = self._layout_lines(runs)

        return [line.strip() for line in lines if line.strip()]

    def _layout_lines(self, runs: List[TextRun]) -> List[str]:
        buckets: List[_LineBucket] = []

        for run in runs:
            # Compare with every bucket so out-of-order runs still merge
            bucket = next(
                (b for b in buckets if abs(b.y - run.y) < self.line_tolerance),
                None
            )
            if bucket is None:
                bucket = _LineBucket(run.y)
                buckets.append(bucket)
            bucket.runs.append(run)

        # PDF origin is bottom-left: higher y is higher on the page
        buckets.sort(key=lambda b: b.y, reverse=True)

        lines = []
        for bucket in buckets:
            ordered = sorted(bucket.runs, key=lambda r: r.x)
            line = ordered[0].text
            for prev, run in zip(ordered, ordered[1:]):
                line += self._separator(prev, run, line) + run.text
            lines.append(line)

        return lines

    def _stream_lines(self, runs: List[TextRun]) -> List[str]:
        lines = []
        current = runs[0].text

        for prev, run in zip(runs, runs[1:]):
            if abs(run.y - prev.y) > run.font_size * config.NEWLINE_JUMP_RATIO:
                lines.append(current)
                current = run.text
            else:
                current += self._separator(prev, run, current) + run.text

        lines.append(current)
        return lines

    def _separator(self, prev: TextRun, run: TextRun, line_so_far: str) -> str:
        """A space when the horizontal gap looks like a word break.

        Gaps below ~20% of the font size are kerning or split glyphs;
        negative gaps are overlaps.
        """
        if line_so_far.endswith((' ', '\t')) or run.text.startswith((' ', '\t')):
            return ''
        gap = run.x - (prev.x + prev.width)
        return ' ' if gap > run.font_size * config.SPACE_GAP_RATIO else ''

    def _finalize(self, text: str) -> str:
        return clean_extracted_text(polish_text(text)).strip()
