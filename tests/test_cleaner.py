"""Test layout text cleaning."""
import pytest
from ingestion.cleaner import (
    clean_extracted_text,
    fix_broken_words,
    fix_possessives_and_contractions,
    is_front_matter,
    is_page_number_line,
    is_story_start,
    join_spaced_capitals,
    normalize_structure,
    polish_text,
    split_joined_uppercase_words,
    strip_headers_footers,
    strip_page_artifacts
)


def test_split_joined_uppercase_run():
    """Test that a run-on caps heading is split into Title Case words."""
    assert split_joined_uppercase_words("DUSKWASFALLINGAS") == "Dusk Was Falling As"


def test_unsplittable_uppercase_run_unchanged():
    """Test that runs with no dictionary split are left alone."""
    assert split_joined_uppercase_words("XXXXXXX") == "XXXXXXX"
    assert split_joined_uppercase_words("SANTIAGO") == "SANTIAGO"


def test_short_uppercase_words_unchanged():
    """Test that caps words under five letters are never split."""
    assert split_joined_uppercase_words("THE BOY") == "THE BOY"


def test_split_leftover_stays_on_previous_word():
    """Test that a leftover letter is not split off as a capital of its own."""
    assert split_joined_uppercase_words("THEREFORE") == "There Fore"
    assert clean_extracted_text("THEREFORE WE LEFT") == "There Fore WE LEFT"


def test_very_long_uppercase_run_unchanged():
    """Test that pathological runs are returned as they are."""
    run = "A" * 500
    assert split_joined_uppercase_words(run) == run


def test_fix_broken_capital():
    """Test that a detached capital is rejoined."""
    assert fix_broken_words("S ANTIAGO") == "SANTIAGO"


def test_single_letter_words_not_joined():
    """Test that "A" and "I" stay separate words."""
    assert fix_broken_words("A GREAT MAN") == "A GREAT MAN"
    assert fix_broken_words("I SAW HIM") == "I SAW HIM"


def test_fix_broken_lowercase_fragment():
    """Test that a stray space inside a known word is removed."""
    assert fix_broken_words("an abandoned, ru ined church") == "an abandoned, ruined church"


def test_real_word_pairs_not_joined():
    """Test that two real words are never merged."""
    assert fix_broken_words("he went a way") == "he went a way"
    assert fix_broken_words("went in to the room") == "went in to the room"
    assert fix_broken_words("So me and him") == "So me and him"
    assert fix_broken_words("We re-entered the room.") == "We re-entered the room."


def test_possessive_suffix_not_treated_as_fragment():
    """Test that the suffix of a possessive is not glued to the next word."""
    assert fix_broken_words("THE BOY'S NAME") == "THE BOY'S NAME"
    assert fix_broken_words("it's he who came") == "it's he who came"


def test_fix_possessives_and_contractions():
    """Test reattaching detached apostrophe suffixes."""
    assert fix_possessives_and_contractions("THE BOY 'S NAME") == "THE BOY'S NAME"
    assert fix_possessives_and_contractions("DON ' T GO") == "DON'T GO"
    assert fix_possessives_and_contractions("we ’ ll see") == "we’ll see"


def test_normalize_caps_headings():
    """Test Title Casing structural headings with their numbers."""
    assert normalize_structure("CHAPTER ONE") == "Chapter One"
    assert normalize_structure("CHAPTER iv") == "Chapter IV"
    assert normalize_structure("PART 2") == "Part 2"
    assert normalize_structure("PROLOGUE") == "Prologue"


def test_normalize_heading_line():
    """Test that lowercase headings are normalized only on their own line."""
    assert normalize_structure("chapter one: the boy") == "Chapter One: the boy"
    assert normalize_structure("It was part of the plan.") == "It was part of the plan."


def test_clean_extracted_text_pipeline():
    """Test the full repair chain on a typical damaged heading."""
    text = "CHAPTER ONE\nTHE BOY 'S NAME WAS S ANTIAGO.   DUSKWASFALLINGAS the boy arrived."
    cleaned = clean_extracted_text(text)

    assert cleaned == "Chapter One\nTHE BOY'S NAME WAS SANTIAGO. Dusk Was Falling As the boy arrived."


def test_clean_text_is_idempotent():
    """Test that already clean text comes back unchanged."""
    text = "The boy's name was Santiago. Dusk was falling as the boy arrived with his herd."

    assert clean_extracted_text(text) == text
    assert clean_extracted_text(clean_extracted_text(text)) == text


@pytest.mark.parametrize("text", [
    "He had a bout of fever.",
    "So me and him went home.",
    "We re-entered the room.",
    "They didn't re-read it.",
])
def test_clean_sentences_with_joinable_neighbours_unchanged(text):
    """Test that real words next to fragments of longer words are kept apart."""
    assert clean_extracted_text(text) == text


def test_clean_empty_text():
    """Test cleaning empty input."""
    assert clean_extracted_text("") == ""


def test_front_matter_detection():
    """Test recognising copyright pages and dedications."""
    assert is_front_matter("Copyright 2020 by Someone")
    assert is_front_matter("All rights reserved.")
    assert is_front_matter("ISBN 978-0-00-000000-0")
    assert not is_front_matter("The boy walked to the church.")


def test_story_start_detection():
    """Test recognising the first paragraph of the story."""
    assert is_story_start("Chapter One")
    assert is_story_start("PART I")
    assert is_story_start("Once upon a time there was a shepherd.")
    assert not is_story_start("Table of Contents")


@pytest.mark.parametrize("line,expected", [
    ("12", True),
    ("Page 12", True),
    ("12 of 300", True),
    ("12 / 300", True),
    ("Chapter 12", False),
    ("", False),
])
def test_page_number_lines(line, expected):
    """Test bare page number recognition."""
    assert is_page_number_line(line) is expected


def test_strip_page_artifacts_first_and_last_only():
    """Test that only header and footer page numbers are removed."""
    lines = ["7", "First line.", "1984", "Last line.", "7"]
    assert strip_page_artifacts(lines, page_number=7) == ["First line.", "1984", "Last line."]


def test_strip_page_artifacts_short_page_untouched():
    """Test that pages with fewer than three lines are kept whole."""
    lines = ["12", "Only two lines"]
    assert strip_page_artifacts(lines) == lines


def test_strip_headers_footers_plain_text():
    """Test stripping a "Page N" header and footer from a text page."""
    text = "Page 1\nHello world.\n\nThis is a test.\n\nPage 1"
    assert polish_text(strip_headers_footers(text)) == "Hello world.\n\nThis is a test."


def test_join_spaced_capitals():
    """Test joining letter-spaced capitals."""
    assert join_spaced_capitals("T H E END") == "THE END"
    assert join_spaced_capitals("A B") == "A B"


def test_polish_text():
    """Test whitespace, line wrap and blank line normalization."""
    text = "  Hello    world\r\nfoo-\nbar\n\n\n\nEnd  "
    assert polish_text(text) == "Hello world\nfoobar\n\nEnd"
