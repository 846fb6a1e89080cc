"""Test incremental book processing."""
import asyncio

import pytest
from ingestion.errors import EmptyDocumentError
from ingestion.models import ExtractedDocument
from segmentation.models import FALLBACK_TAG, Genre, SegmentPayload
from segmentation.orchestrator import ChunkingOrchestrator
from segmentation.pipeline import BookProcessor
from segmentation.providers import SegmentationProvider
from storage.database import Database

PARAGRAPHS = [f"Paragraph number {i} has some words in it." for i in range(6)]
TEXT = "\n\n".join(PARAGRAPHS)


class ParagraphProvider(SegmentationProvider):
    """One segment per paragraph of the window."""

    provider_id = "paragraphs"

    def __init__(self, error=None):
        self.error = error
        self.requests = []
        self.entered = None
        self.release = None

    async def segment(self, request):
        self.requests.append(request)
        if self.entered is not None:
            self.entered.set()
            await self.release.wait()
        if self.error is not None:
            raise self.error
        return [
            SegmentPayload(text=p.strip())
            for p in request.text.split("\n\n") if p.strip()
        ]


class FixedGenre:
    async def detect(self, text):
        return Genre.FICTION


def make_processor(tmp_path, provider, genre_detector=None):
    db = Database(tmp_path / "library.db")
    processor = BookProcessor(
        db,
        ChunkingOrchestrator(provider),
        genre_detector=genre_detector,
        batch_size=100,
        min_chunk_size=20
    )
    return processor, db


def test_ingest_processes_first_batch(tmp_path):
    """Test that ingestion stores the book and only its first batch."""
    provider = ParagraphProvider()
    processor, db = make_processor(tmp_path, provider, FixedGenre())

    book = asyncio.run(processor.ingest(ExtractedDocument(title="Six Paragraphs", text=TEXT)))

    assert book.genre == Genre.FICTION
    assert book.total_chunks == 2
    assert book.processed_char_count == 84
    assert book.has_more
    assert [c.text for c in db.get_chunks(book.id)] == PARAGRAPHS[:2]
    assert provider.requests[0].previous_chapter_title is None


def test_load_more_until_done(tmp_path):
    """Test that loading more walks the whole book with contiguous indices."""
    provider = ParagraphProvider()
    processor, db = make_processor(tmp_path, provider)

    async def run():
        book = await processor.ingest(ExtractedDocument(title="Six Paragraphs", text=TEXT))
        results = []
        while True:
            result = await processor.load_more(book.id)
            if result is None:
                break
            results.append(result)
        return book, results

    book, results = asyncio.run(run())

    assert [r.next_index for r in results] == [4, 6]
    chunks = db.get_chunks(book.id)
    assert [c.index for c in chunks] == list(range(6))
    assert [c.text for c in chunks] == PARAGRAPHS
    assert all(c.chapter_title == "Chapter 1" for c in chunks)

    stored = db.get_book(book.id)
    assert stored.processed_char_count == len(TEXT)
    assert not stored.has_more
    assert book.id not in processor._locks
    # Later batches get the chapter context of the previous one
    assert provider.requests[1].previous_chapter_title == "Chapter 1"
    assert provider.requests[1].genre == Genre.NON_FICTION


def test_load_more_unknown_book(tmp_path):
    """Test loading more for a book that does not exist."""
    processor, _ = make_processor(tmp_path, ParagraphProvider())

    with pytest.raises(KeyError):
        asyncio.run(processor.load_more("missing"))
    assert processor._locks == {}


def test_prefetch_skips_while_loading(tmp_path):
    """Test that prefetch does not issue a second load for the same book."""
    provider = ParagraphProvider()
    processor, db = make_processor(tmp_path, provider)

    async def run():
        book = await processor.ingest(ExtractedDocument(title="Six Paragraphs", text=TEXT))
        provider.entered = asyncio.Event()
        provider.release = asyncio.Event()

        task = asyncio.create_task(processor.load_more(book.id))
        await provider.entered.wait()
        skipped = await processor.prefetch(book.id)
        provider.release.set()
        loaded = await task
        return book, skipped, loaded

    book, skipped, loaded = asyncio.run(run())

    assert skipped is None
    assert loaded is not None
    assert len(provider.requests) == 2
    assert db.get_book(book.id).total_chunks == 4


def test_prefetch_when_idle_loads(tmp_path):
    """Test that prefetch loads the next batch when nothing is in flight."""
    processor, db = make_processor(tmp_path, ParagraphProvider())

    async def run():
        book = await processor.ingest(ExtractedDocument(title="Six Paragraphs", text=TEXT))
        return book, await processor.prefetch(book.id)

    book, result = asyncio.run(run())

    assert result.next_index == 4
    assert db.get_book(book.id).total_chunks == 4


def test_service_failure_stores_fallback_chunks(tmp_path):
    """Test that a failing service still advances the book."""
    processor, db = make_processor(tmp_path, ParagraphProvider(error=ConnectionError("down")))

    book = asyncio.run(processor.ingest(ExtractedDocument(title="Six Paragraphs", text=TEXT)))

    chunks = db.get_chunks(book.id)
    assert [c.text for c in chunks] == PARAGRAPHS[:2]
    assert all(FALLBACK_TAG in c.tags for c in chunks)


def test_ingest_rejects_empty_document(tmp_path):
    """Test that documents without text are refused."""
    processor, _ = make_processor(tmp_path, ParagraphProvider())

    with pytest.raises(EmptyDocumentError):
        asyncio.run(processor.ingest(ExtractedDocument(title="Empty", text="   ")))
