"""Batch-by-batch chunking orchestration.

One call chunks one batch window. The service is tried first; any failure
switches that batch to the offline fallback segmenter, so a call only fails
when both paths fail. The orchestrator keeps no state between calls: the
returned BatchResult carries the next index and chapter title.
"""
import time
import uuid
from typing import Callable, List, Optional

from utils.logger import setup_logger
from segmentation.fallback import fallback_chunking
from segmentation.models import (
    BatchResult,
    Chunk,
    FIRST_CHAPTER,
    Genre,
    SegmentationRequest,
    SegmentPayload,
    UNKNOWN_CHAPTER,
    estimate_reading_time
)
from segmentation.providers import SegmentationError, SegmentationProvider
import config

logger = setup_logger(__name__)

FallbackSegmenter = Callable[[str, str, int, Optional[str]], List[Chunk]]

# Titles the service uses when it could not find a real one
PLACEHOLDER_TITLES = {"", "unknown chapter", "chapter"}


class OrchestrationError(Exception):
    """Raised when neither the service nor the fallback produced chunks."""
    pass


def is_placeholder_title(title: Optional[str]) -> bool:
    return title is None or title.strip().lower() in PLACEHOLDER_TITLES


def resolve_chapter_title(
    title: Optional[str],
    position: int,
    start_index: int,
    running_title: Optional[str],
    previous_chapter: Optional[str],
    first_chapter_grace: int = config.FIRST_CHAPTER_GRACE
) -> str:
    """Chapter title for one chunk.

    A real title wins. Otherwise, in order: the last real title seen earlier
    in this batch, "Chapter 1" for the first few chunks of a book, the
    chapter carried over from the previous batch, "Unknown Chapter".

    Args:
        title: Title reported by the service
        position: Position of the chunk inside the batch
        start_index: Book-level index of the batch's first chunk
        running_title: Last real title seen in this batch
        previous_chapter: Chapter context from the previous batch
        first_chapter_grace: How many leading chunks of a book default to "Chapter 1"
    """
    if not is_placeholder_title(title):
        return title.strip()
    if running_title:
        return running_title
    if start_index == 0 and position < first_chapter_grace:
        return FIRST_CHAPTER
    if not is_placeholder_title(previous_chapter):
        return previous_chapter
    return UNKNOWN_CHAPTER


class ChunkingOrchestrator:
    """Turns batch windows into ordered chunks."""

    def __init__(
        self,
        provider: SegmentationProvider,
        fallback: FallbackSegmenter = fallback_chunking
    ):
        """Initialize orchestrator.

        Args:
            provider: Segmentation service client
            fallback: Offline segmenter used when the service fails
        """
        self.provider = provider
        self.fallback = fallback

    async def chunk_batch(
        self,
        window: str,
        book_id: str,
        start_index: int = 0,
        previous_chapter: Optional[str] = None,
        book_title: Optional[str] = None,
        genre: Genre = Genre.NON_FICTION
    ) -> BatchResult:
        """Chunk one batch window.

        Args:
            window: Batch text, already cut at a safe boundary
            book_id: Owning book
            start_index: Index for the first chunk of this batch
            previous_chapter: Chapter title of the previous batch's last chunk
            book_title: Title passed to the service as context
            genre: Selects the instruction profile

        Returns:
            BatchResult with chunks indexed from start_index

        Raises:
            OrchestrationError: If the fallback segmenter fails too
        """
        if not window or not window.strip():
            logger.warning("Empty text segment provided, skipping")
            return BatchResult(chunks=[], last_chapter_title=previous_chapter, next_index=start_index)

        logger.info(
            f"Starting semantic chunking for '{book_title or book_id}' "
            f"({len(window)} chars, genre={genre.value}, start_index={start_index})"
        )
        request = SegmentationRequest(
            text=window,
            genre=genre,
            book_title=book_title,
            previous_chapter_title=previous_chapter
        )

        started = time.perf_counter()
        used_fallback = False
        try:
            segments = await self.provider.segment(request)
            if not segments:
                raise SegmentationError("Segmentation service returned no segments")
            chunks = self._to_chunks(segments, book_id, start_index, previous_chapter)
            logger.info(
                f"Generated {len(chunks)} chunks via {self.provider.provider_id} "
                f"in {time.perf_counter() - started:.2f}s"
            )
        except Exception as e:
            logger.warning(
                f"Segmentation failed after {time.perf_counter() - started:.2f}s, "
                f"using fallback chunking: {e}"
            )
            try:
                chunks = self.fallback(window, book_id, start_index, previous_chapter)
            except Exception as fallback_error:
                raise OrchestrationError(
                    f"Fallback chunking failed for book {book_id} at index {start_index}: {fallback_error}"
                ) from fallback_error
            used_fallback = True
            logger.info(f"Fallback produced {len(chunks)} chunks")

        last_chapter = chunks[-1].chapter_title if chunks else previous_chapter
        return BatchResult(
            chunks=chunks,
            last_chapter_title=last_chapter,
            next_index=start_index + len(chunks),
            used_fallback=used_fallback
        )

    def _to_chunks(
        self,
        segments: List[SegmentPayload],
        book_id: str,
        start_index: int,
        previous_chapter: Optional[str]
    ) -> List[Chunk]:
        chunks = []
        running_title: Optional[str] = None

        for position, segment in enumerate(segments):
            chapter = resolve_chapter_title(
                segment.chapter_title,
                position,
                start_index,
                running_title,
                previous_chapter
            )
            if not is_placeholder_title(segment.chapter_title):
                running_title = chapter

            chunks.append(Chunk(
                id=str(uuid.uuid4()),
                book_id=book_id,
                index=start_index + position,
                text=segment.text,
                chapter_title=chapter,
                context_label=segment.context_label,
                speaker=segment.speaker,
                is_new_scene=bool(segment.is_new_scene),
                shareable_quote=segment.shareable_quote,
                estimated_time=estimate_reading_time(segment.text),
                tags=[]
            ))

        return chunks
