"""Test offline fallback segmentation."""
import math

from segmentation.fallback import fallback_chunking, is_heading, split_sentences
from segmentation.models import FALLBACK_TAG


def test_blank_text_gives_no_chunks():
    """Test that blank input produces nothing."""
    assert fallback_chunking("", "book-1") == []
    assert fallback_chunking("  \n\n  ", "book-1") == []


def test_short_paragraphs_become_chunks():
    """Test one chunk per short paragraph, indexed from start_index."""
    text = "First paragraph.\n\nSecond paragraph.\n\n\nThird paragraph."
    chunks = fallback_chunking(text, "book-1", start_index=7, previous_context="Chapter 3")

    assert [c.text for c in chunks] == ["First paragraph.", "Second paragraph.", "Third paragraph."]
    assert [c.index for c in chunks] == [7, 8, 9]
    assert all(c.chapter_title == "Chapter 3" for c in chunks)
    assert all(c.tags == [FALLBACK_TAG] for c in chunks)
    assert all(c.book_id == "book-1" for c in chunks)


def test_heading_switches_chapter():
    """Test that a caps heading becomes the chapter of what follows."""
    text = "The end of the prologue.\n\nCHAPTER ONE\n\nIt was a dark night."
    chunks = fallback_chunking(text, "book-1")

    assert [c.chapter_title for c in chunks] == ["Chapter 1", "CHAPTER ONE", "CHAPTER ONE"]


def test_default_chapter_depends_on_position():
    """Test the default chapter for book start and for later batches."""
    assert fallback_chunking("Some text.", "b", start_index=0)[0].chapter_title == "Chapter 1"
    assert fallback_chunking("Some text.", "b", start_index=12)[0].chapter_title == "Unknown Chapter"


def test_long_paragraph_split_by_sentences():
    """Test that long paragraphs are packed into sentence groups."""
    paragraph = " ".join(["The quick brown fox jumps over the lazy dog."] * 5)
    chunks = fallback_chunking(paragraph, "book-1")

    assert len(chunks) > 1
    assert all(len(c.text) <= 120 for c in chunks)
    assert " ".join(c.text for c in chunks) == paragraph


def test_estimated_time():
    """Test reading time estimate at 3.5 words per second."""
    chunk = fallback_chunking("one two three four five six seven eight", "b")[0]
    assert chunk.estimated_time == math.ceil(8 / 3.5)


def test_is_heading():
    """Test chapter heading recognition."""
    assert is_heading("Chapter 12")
    assert is_heading("chapter iv")
    assert is_heading("Part Two")
    assert is_heading("Epilogue")
    assert is_heading("THE BEGINNING")
    assert not is_heading("It was a dark night.")
    assert not is_heading("CHAPTER " + "X" * 60)


def test_split_sentences_keeps_tail():
    """Test sentence splitting with closing quotes and an unterminated tail."""
    assert split_sentences('He said "Go!" Then left. And then') == ['He said "Go!"', " Then left.", " And then"]
