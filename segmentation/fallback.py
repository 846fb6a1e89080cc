"""Offline fallback segmentation.

Used when the segmentation service is unavailable. Groups paragraphs and
sentences into short cards with simple chapter heading detection. Pure and
deterministic: no network, no exceptions.
"""
import re
import uuid
from typing import List, Optional, Tuple

from segmentation.models import (
    Chunk,
    DEFAULT_CONTEXT_LABEL,
    FALLBACK_TAG,
    FIRST_CHAPTER,
    UNKNOWN_CHAPTER,
    estimate_reading_time
)
import config

MAX_HEADING_LENGTH = 60

_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n\s*")
_NAMED_HEADING = re.compile(
    r"^(chapter\s+(\d+|[ivxlcdm]+\b)|part\s+\w+|prologue|epilogue)",
    re.IGNORECASE
)
_CAPS_HEADING = re.compile(r"^[A-Z][A-Z\s]{3,19}$")
# Sentence plus any closing quote; the last alternative keeps an unterminated tail
_SENTENCE = re.compile(r"[^.!?]+[.!?]+[\"”’']?|[^.!?]+$")


def is_heading(paragraph: str) -> bool:
    """Whether a paragraph looks like a chapter/part heading."""
    if len(paragraph) >= MAX_HEADING_LENGTH:
        return False
    return bool(_NAMED_HEADING.match(paragraph) or _CAPS_HEADING.match(paragraph))


def split_sentences(paragraph: str) -> List[str]:
    """Split a paragraph into sentences, keeping their original spacing."""
    return _SENTENCE.findall(paragraph) or [paragraph]


def _pack_sentences(paragraph: str, buffer_limit: int) -> List[str]:
    pieces = []
    buffer = ""
    for sentence in split_sentences(paragraph):
        if len(buffer + sentence) < buffer_limit:
            buffer += sentence
        else:
            if buffer.strip():
                pieces.append(buffer.strip())
            buffer = sentence
    if buffer.strip():
        pieces.append(buffer.strip())
    return pieces


def fallback_chunking(
    text: str,
    book_id: str,
    start_index: int = 0,
    previous_context: Optional[str] = None,
    paragraph_limit: int = config.FALLBACK_PARAGRAPH_LIMIT,
    buffer_limit: int = config.FALLBACK_BUFFER_LIMIT
) -> List[Chunk]:
    """Chunk text without the segmentation service.

    Args:
        text: Batch window
        book_id: Owning book
        start_index: Index of the first produced chunk
        previous_context: Chapter title carried over from the previous batch
        paragraph_limit: Paragraphs longer than this are split into sentences
        buffer_limit: Max characters packed into one sentence-built card

    Returns:
        Chunks tagged "fallback", indexed from start_index (empty for blank text)
    """
    if not text or not text.strip():
        return []

    current_chapter = previous_context or (FIRST_CHAPTER if start_index == 0 else UNKNOWN_CHAPTER)

    pieces: List[Tuple[str, str]] = []
    for raw in _PARAGRAPH_BREAK.split(text):
        paragraph = raw.strip()
        if not paragraph:
            continue

        if is_heading(paragraph):
            current_chapter = paragraph

        if len(paragraph) > paragraph_limit:
            pieces.extend((piece, current_chapter) for piece in _pack_sentences(paragraph, buffer_limit))
        else:
            pieces.append((paragraph, current_chapter))

    return [
        Chunk(
            id=str(uuid.uuid4()),
            book_id=book_id,
            index=start_index + offset,
            text=piece,
            chapter_title=chapter,
            context_label=DEFAULT_CONTEXT_LABEL,
            estimated_time=estimate_reading_time(piece),
            tags=[FALLBACK_TAG]
        )
        for offset, (piece, chapter) in enumerate(pieces)
    ]
