"""Incremental book processing.

A book is chunked one batch at a time: the first batch on ingestion, the
rest on demand as the reader approaches the end of what is loaded. The
book record carries all continuation state (processed character count,
total chunks, last chapter title), so a later session can resume where
an earlier one stopped.
"""
import asyncio
import uuid
from typing import Dict, Optional

from utils.logger import setup_logger, timed
from ingestion.batching import find_safe_batch_end
from ingestion.errors import EmptyDocumentError
from ingestion.models import ExtractedDocument
from segmentation.genre_detector import GenreDetector
from segmentation.models import BatchResult, Book, Genre
from segmentation.orchestrator import ChunkingOrchestrator
from storage.database import Database
import config

logger = setup_logger(__name__)


class BookProcessor:
    """Drives batch-by-batch chunking of stored books."""

    def __init__(
        self,
        db: Database,
        orchestrator: ChunkingOrchestrator,
        genre_detector: Optional[GenreDetector] = None,
        batch_size: int = config.BATCH_SIZE_CHARS,
        min_chunk_size: int = config.MIN_BATCH_CHARS
    ):
        """Initialize processor.

        Args:
            db: Book and chunk storage
            orchestrator: Batch chunker
            genre_detector: Classifier run once per book; non-fiction when absent
            batch_size: Target characters per batch
            min_chunk_size: Smallest batch the boundary search may produce
        """
        self.db = db
        self.orchestrator = orchestrator
        self.genre_detector = genre_detector
        self.batch_size = batch_size
        self.min_chunk_size = min_chunk_size
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, book_id: str) -> asyncio.Lock:
        if book_id not in self._locks:
            self._locks[book_id] = asyncio.Lock()
        return self._locks[book_id]

    def _next_window(self, text: str) -> str:
        end = find_safe_batch_end(text, self.batch_size, self.min_chunk_size)
        return text[:end]

    async def ingest(self, document: ExtractedDocument) -> Book:
        """Store a new book and chunk its first batch.

        Args:
            document: Extracted, cleaned text

        Returns:
            Persisted book record

        Raises:
            EmptyDocumentError: If the document has no meaningful text
        """
        text = document.text
        if len(text.strip()) < config.MIN_EXTRACTED_CHARS:
            raise EmptyDocumentError(f"'{document.title}' contains no meaningful text")

        if self.genre_detector is not None:
            genre = await self.genre_detector.detect(text)
        else:
            genre = Genre.NON_FICTION

        book_id = str(uuid.uuid4())
        window = self._next_window(text)

        with timed(logger, f"First batch of '{document.title}'"):
            result = await self.orchestrator.chunk_batch(
                window,
                book_id,
                start_index=0,
                previous_chapter=None,
                book_title=document.title,
                genre=genre
            )

        book = Book(
            id=book_id,
            title=document.title,
            author=document.author,
            source_type=document.source_type,
            genre=genre,
            raw_content=text,
            processed_char_count=len(window),
            total_chunks=len(result.chunks),
            last_chapter_title=result.last_chapter_title
        )
        await asyncio.to_thread(self.db.insert_book, book, result.chunks)

        logger.info(
            f"Ingested '{book.title}': {book.total_chunks} chunks, "
            f"{book.processed_char_count}/{len(text)} chars processed"
        )
        return book

    async def load_more(self, book_id: str) -> Optional[BatchResult]:
        """Chunk and persist the next batch of a book.

        Loads for the same book run one after another; different books are
        independent. The book's lock is dropped once it is fully processed.

        Args:
            book_id: Book UUID

        Returns:
            The batch result, or None when the whole book is already chunked

        Raises:
            KeyError: If the book does not exist
        """
        async with self._lock_for(book_id):
            book = await asyncio.to_thread(self.db.get_book, book_id)
            if book is None:
                self._locks.pop(book_id, None)
                raise KeyError(f"Unknown book: {book_id}")
            if not book.has_more:
                logger.info(f"'{book.title}' is fully processed")
                self._locks.pop(book_id, None)
                return None

            window = self._next_window(book.raw_content[book.processed_char_count:])
            logger.info(
                f"Loading next batch of '{book.title}' from char {book.processed_char_count} "
                f"(chunk {book.total_chunks})"
            )

            with timed(logger, f"Batch at chunk {book.total_chunks} of '{book.title}'"):
                result = await self.orchestrator.chunk_batch(
                    window,
                    book.id,
                    start_index=book.total_chunks,
                    previous_chapter=book.last_chapter_title,
                    book_title=book.title,
                    genre=book.genre
                )

            processed = book.processed_char_count + len(window)
            await asyncio.to_thread(
                self.db.append_batch,
                book.id,
                result.chunks,
                processed,
                result.last_chapter_title
            )
            # Loads already waiting keep their reference to this lock
            if processed >= len(book.raw_content):
                self._locks.pop(book_id, None)
            return result

    async def prefetch(self, book_id: str) -> Optional[BatchResult]:
        """Load the next batch unless one is already being loaded.

        Safe to call repeatedly as the reader nears the end of the loaded
        chunks: while a load for the book is in flight this returns None
        without issuing another.
        """
        if self._lock_for(book_id).locked():
            logger.debug(f"Load already in flight for book {book_id}, skipping prefetch")
            return None
        return await self.load_more(book_id)
