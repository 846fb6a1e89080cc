"""Pydantic models for ingestion module."""
from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Dict, Any


class ExtractionMode(str, Enum):
    """How positioned text runs are turned into lines."""
    LAYOUT = "layout"  # bucket runs into lines by y, then sort
    STREAM = "stream"  # walk runs in content order, break on vertical jumps


class TextRun(BaseModel):
    """A positioned piece of text on a page.

    Coordinates use the PDF convention: origin at the bottom-left corner,
    y grows upwards.
    """
    text: str
    x: float
    y: float
    width: float = 0.0
    font_size: float = 10.0


class PageFragment(BaseModel):
    """All text runs of one page, in content-stream order."""
    page_index: int
    runs: List[TextRun] = Field(default_factory=list)


class RawDocument(BaseModel):
    """A paginated document as produced by the extraction backend."""
    pages: List[PageFragment] = Field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)


class ExtractedDocument(BaseModel):
    """Linear text of a document after extraction and cleaning."""
    title: str
    text: str
    source_type: str = "txt"  # pdf, txt, web_article
    page_count: int = 0
    author: str = "Unknown"
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def word_count(self) -> int:
        return len(self.text.split())
