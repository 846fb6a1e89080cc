"""Test batch chunking orchestration."""
import asyncio

import pytest
from segmentation.models import FALLBACK_TAG, Genre, SegmentPayload
from segmentation.orchestrator import ChunkingOrchestrator, OrchestrationError, resolve_chapter_title
from segmentation.providers import SegmentationProvider


class FakeProvider(SegmentationProvider):
    provider_id = "fake"

    def __init__(self, segments=None, error=None):
        self.segments = segments or []
        self.error = error
        self.requests = []

    async def segment(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return [SegmentPayload.model_validate(s) for s in self.segments]


def run_batch(orchestrator, window, **kwargs):
    return asyncio.run(orchestrator.chunk_batch(window, "book-1", **kwargs))


def test_chunks_continue_from_previous_batch():
    """Test index continuity and chapter carry-over between batches."""
    provider = FakeProvider([
        {"text": "Still in chapter three.", "chapterTitle": None},
        {"text": "A new chapter starts.", "chapterTitle": "Chapter 4", "isNewScene": True},
        {"text": "More of chapter four.", "chapterTitle": "Unknown Chapter"},
    ])
    orchestrator = ChunkingOrchestrator(provider)

    result = run_batch(orchestrator, "Some window text.", start_index=40, previous_chapter="Chapter 3")

    assert [c.index for c in result.chunks] == [40, 41, 42]
    assert [c.chapter_title for c in result.chunks] == ["Chapter 3", "Chapter 4", "Chapter 4"]
    assert result.next_index == 43
    assert result.last_chapter_title == "Chapter 4"
    assert not result.used_fallback
    assert result.chunks[1].is_new_scene


def test_first_batch_defaults_to_chapter_one():
    """Test that the first untitled chunks of a book are "Chapter 1"."""
    provider = FakeProvider([{"text": f"Card {i}."} for i in range(6)])
    orchestrator = ChunkingOrchestrator(provider)

    result = run_batch(orchestrator, "Opening text.", start_index=0)

    titles = [c.chapter_title for c in result.chunks]
    assert titles[:5] == ["Chapter 1"] * 5
    assert titles[5] == "Unknown Chapter"


def test_request_carries_context():
    """Test what the provider receives."""
    provider = FakeProvider([{"text": "Card."}])
    orchestrator = ChunkingOrchestrator(provider)

    run_batch(
        orchestrator,
        "Window.",
        start_index=3,
        previous_chapter="Part Two",
        book_title="The Alchemist",
        genre=Genre.FICTION
    )

    request = provider.requests[0]
    assert request.text == "Window."
    assert request.genre == Genre.FICTION
    assert request.book_title == "The Alchemist"
    assert request.previous_chapter_title == "Part Two"


def test_network_error_uses_fallback():
    """Test that a failing service still yields chunks."""
    provider = FakeProvider(error=ConnectionError("network down"))
    orchestrator = ChunkingOrchestrator(provider)

    result = run_batch(
        orchestrator,
        "First paragraph.\n\nSecond paragraph.",
        start_index=10,
        previous_chapter="Chapter 2"
    )

    assert result.used_fallback
    assert [c.index for c in result.chunks] == [10, 11]
    assert all(FALLBACK_TAG in c.tags for c in result.chunks)
    assert all(c.chapter_title == "Chapter 2" for c in result.chunks)
    assert result.next_index == 12


def test_empty_response_uses_fallback():
    """Test that an empty segment list counts as a failure."""
    orchestrator = ChunkingOrchestrator(FakeProvider([]))

    result = run_batch(orchestrator, "Only paragraph.")

    assert result.used_fallback
    assert [c.text for c in result.chunks] == ["Only paragraph."]


def test_blank_window_skips_service():
    """Test that blank input returns an empty batch without calling out."""
    provider = FakeProvider([{"text": "Card."}])
    orchestrator = ChunkingOrchestrator(provider)

    result = run_batch(orchestrator, "   \n ", start_index=5, previous_chapter="Chapter 9")

    assert result.chunks == []
    assert result.next_index == 5
    assert result.last_chapter_title == "Chapter 9"
    assert provider.requests == []


def test_fallback_failure_raises():
    """Test that a failing fallback surfaces as OrchestrationError."""
    def broken_fallback(text, book_id, start_index, previous_context):
        raise RuntimeError("fallback broke")

    orchestrator = ChunkingOrchestrator(FakeProvider(error=ConnectionError("down")), fallback=broken_fallback)

    with pytest.raises(OrchestrationError):
        run_batch(orchestrator, "Some text.")


def test_reading_time_is_computed():
    """Test the estimated reading time of service chunks."""
    orchestrator = ChunkingOrchestrator(FakeProvider([{"text": "one two three four five six seven"}]))

    result = run_batch(orchestrator, "Window.")

    assert result.chunks[0].estimated_time == 2


@pytest.mark.parametrize("title,position,start,running,previous,expected", [
    ("Chapter 7", 0, 0, None, None, "Chapter 7"),
    (None, 2, 0, "Part One", None, "Part One"),
    ("", 4, 0, None, None, "Chapter 1"),
    ("chapter", 5, 0, None, "Prologue", "Prologue"),
    (None, 0, 20, None, "Chapter 3", "Chapter 3"),
    (None, 0, 20, None, "Unknown Chapter", "Unknown Chapter"),
    (None, 0, 20, None, None, "Unknown Chapter"),
])
def test_resolve_chapter_title(title, position, start, running, previous, expected):
    """Test chapter title resolution order."""
    assert resolve_chapter_title(title, position, start, running, previous) == expected
