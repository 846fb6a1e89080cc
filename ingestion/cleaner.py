"""Text cleaning utilities.

Repairs the artifacts PDF extraction leaves behind: words glued together in
all-caps headings, words broken apart by stray spaces, detached apostrophes,
shouted structural headings and ragged whitespace. Every repair only joins,
splits or re-cases what is already there; when no repair is certain the text
is left alone.
"""
import re
from functools import lru_cache
from typing import List, Optional

# Common English words used as split/join candidates
COMMON_WORDS = frozenset([
    # Articles & prepositions
    'the', 'a', 'an', 'of', 'to', 'in', 'for', 'on', 'with', 'at', 'by', 'from', 'as', 'into',
    'through', 'after', 'over', 'between', 'under', 'during',
    # Pronouns
    'he', 'she', 'it', 'they', 'we', 'i', 'you', 'his', 'her', 'its', 'their', 'our', 'my', 'your',
    # Common verbs
    'is', 'are', 'was', 'were', 'be', 'been', 'being', 'have', 'has', 'had', 'do', 'does', 'did',
    'will', 'would', 'could', 'should', 'may', 'might', 'must', 'can',
    'said', 'says', 'told', 'asked', 'went', 'came', 'saw', 'knew', 'thought', 'made', 'found',
    'gave', 'took', 'looked', 'seemed', 'felt', 'left', 'turned',
    'arrived', 'decided', 'wanted', 'needed', 'began', 'started', 'entered', 'walked', 'stood',
    'sat', 'lay', 'lived', 'died', 'loved', 'hated',
    # Common adjectives
    'old', 'new', 'first', 'last', 'long', 'great', 'little', 'own', 'other', 'good', 'bad',
    'young', 'right', 'best', 'next', 'same', 'few', 'more', 'most',
    'small', 'large', 'entire', 'whole', 'enormous', 'abandoned', 'ancient', 'ruined',
    # Common nouns
    'man', 'men', 'woman', 'women', 'boy', 'girl', 'child', 'children', 'people', 'person',
    'name', 'time', 'year', 'day', 'night', 'way', 'thing', 'place', 'world', 'life', 'hand',
    'part', 'house', 'home', 'room', 'door', 'window',
    'church', 'roof', 'spot', 'tree', 'sycamore', 'sacristy', 'herd', 'sheep', 'flock', 'gate',
    'planks', 'wolves', 'region', 'animal',
    # Structure and narrative words
    'chapter', 'prologue', 'epilogue', 'book', 'one', 'two', 'three', 'four', 'five',
    'dusk', 'falling', 'fallen', 'once', 'upon', 'there', 'here', 'where', 'when', 'what',
    'who', 'how', 'why',
    'that', 'this', 'then', 'than', 'some', 'only', 'just', 'also', 'very', 'even', 'still',
    'already', 'always', 'never', 'ever', 'now', 'often',
    'and', 'but', 'or', 'if', 'so', 'yet', 'because', 'although', 'while', 'until', 'before',
    'since', 'unless',
    'all', 'each', 'every', 'both', 'many', 'much', 'such', 'no', 'not', 'any',
    'about', 'like', 'out', 'up', 'down', 'back', 'away', 'off', 'well', 'too',
    # Possessive and contraction fragments
    's', 't', 'd', 'll', 've', 're', 'm',
])

# Longer words that show up in literature (helps greedy matching)
LONG_WORDS = frozenset([
    'sycamore', 'sacristy', 'abandoned', 'enormous', 'santiago', 'searching', 'wandering',
    'spending', 'prevent', 'during', 'falling', 'through', 'arrived', 'decided', 'strayed',
    'entire', 'chapter', 'prologue', 'epilogue', 'between', 'because', 'although', 'children',
    'thought', 'morning', 'evening', 'afternoon', 'night',
])

DICTIONARY = COMMON_WORDS | LONG_WORDS

# Fragments that are only meaningful glued to another word
CONTRACTION_FRAGMENTS = frozenset(['s', 't', 'd', 'll', 've', 're', 'm'])

NUMBER_WORDS = frozenset([
    'one', 'two', 'three', 'four', 'five', 'six', 'seven', 'eight', 'nine', 'ten',
    'eleven', 'twelve', 'thirteen', 'fourteen', 'fifteen', 'sixteen', 'seventeen',
    'eighteen', 'nineteen', 'twenty', 'thirty', 'forty', 'fifty',
    'first', 'second', 'third', 'fourth', 'fifth', 'last', 'final',
])

MAX_MATCH_LENGTH = 12
MAX_SPLIT_RUN = 64  # longer runs are left as they are

_APOSTROPHE_SUFFIX = re.compile(r"(\w)[ \t]*(['’])[ \t]*(s|t|d|m|ll|ve|re)\b", re.IGNORECASE)
_UPPERCASE_RUN = re.compile(r"\b[A-Z]{5,}\b")
# Fragments must start a word; the "S" of "BOY'S" is a suffix, not a fragment
_SPLIT_CAPITAL = re.compile(r"(?<![\w'’])([A-Z])[ \t]+([A-Z]{2,})\b")
_SHORT_FRAGMENT = re.compile(r"(?<![\w'’])(\w{1,3})[ \t]+(?=(\w{2,})(?![\w'’-]))")
_HEADING_WORD = r"(?:\d+|[IVXLCDM]+|[A-Za-z]+)"
_CAPS_HEADING = re.compile(r"\b(CHAPTER|PART|PROLOGUE|EPILOGUE)\b(?:[ \t]+(" + _HEADING_WORD + r")\b)?")
_LINE_HEADING = re.compile(
    r"^([ \t]*)(chapter|part|prologue|epilogue)\b(?:[ \t]+(" + _HEADING_WORD + r")\b)?"
    r"(?=[ \t]*(?:[:.]|$))",
    re.IGNORECASE | re.MULTILINE
)
_ROMAN_NUMERAL = re.compile(r"^[IVXLCDM]+$", re.IGNORECASE)
_HORIZONTAL_SPACE = re.compile(r"[ \t]+")

_PAGE_NUMBER_LINE = re.compile(r"^(page\s?)?\d+(\s*(of|/)\s*\d+)?$", re.IGNORECASE)

FRONT_MATTER_PATTERNS = [
    re.compile(r"^copyright", re.IGNORECASE),
    re.compile(r"^all rights reserved", re.IGNORECASE),
    re.compile(r"^isbn", re.IGNORECASE),
    re.compile(r"^published by", re.IGNORECASE),
    re.compile(r"^first (published|edition|printing)", re.IGNORECASE),
    re.compile(r"^printed in", re.IGNORECASE),
    re.compile(r"^library of congress", re.IGNORECASE),
    re.compile(r"^dedication", re.IGNORECASE),
    re.compile(r"^to my", re.IGNORECASE),
    re.compile(r"^for my", re.IGNORECASE),
    re.compile(r"^acknowledgments?", re.IGNORECASE),
    re.compile(r"^table of contents", re.IGNORECASE),
    re.compile(r"^contents$", re.IGNORECASE),
    re.compile(r"^about the author", re.IGNORECASE),
    re.compile(r"^translator'?s note", re.IGNORECASE),
    re.compile(r"^editor'?s note", re.IGNORECASE),
    re.compile(r"^introduction$", re.IGNORECASE),
    re.compile(r"^preface$", re.IGNORECASE),
    re.compile(r"^foreword$", re.IGNORECASE),
]

STORY_START_PATTERNS = [
    re.compile(r"^part\s+(one|1|i)\b", re.IGNORECASE),
    re.compile(r"^chapter\s+(one|1|i)\b", re.IGNORECASE),
    re.compile(r"^prologue", re.IGNORECASE),
    re.compile(r"^book\s+(one|1|i)\b", re.IGNORECASE),
    # Common narrative openings
    re.compile(
        r"^(once upon a time|in the beginning|it was|there was|there were|he was|she was|"
        r"they were|the boy|the girl|the man|the woman)",
        re.IGNORECASE
    ),
]


def _is_word(text: str) -> bool:
    return text.lower() in DICTIONARY


def fix_possessives_and_contractions(text: str) -> str:
    """Reattach detached apostrophe suffixes.

    "BOY 'S" -> "BOY'S", "DON ' T" -> "DON'T". The apostrophe character
    found in the text is kept.
    """
    return _APOSTROPHE_SUFFIX.sub(r"\1\2\3", text)


@lru_cache(maxsize=4096)
def _greedy_split(text: str) -> str:
    """Split a lowercase run into dictionary words, longest match first.

    A remainder is accepted when it is a word, splits further or is at most
    3 characters of noise. Contraction fragments never count as pieces.
    Returns the run unchanged when no acceptable split exists.
    """
    if len(text) <= 2:
        return text

    for length in range(min(len(text), MAX_MATCH_LENGTH), 0, -1):
        candidate = text[:length]
        if candidate not in DICTIONARY or candidate in CONTRACTION_FRAGMENTS:
            continue

        remainder = text[length:]
        if not remainder:
            return candidate

        rest = _greedy_split(remainder)
        if ' ' in rest or rest in DICTIONARY or len(rest) <= 3:
            return f"{candidate} {rest}"

    return text


def split_joined_uppercase_words(text: str) -> str:
    """Split joined ALL-CAPS words into Title Case words.

    Example: "DUSKWASFALLINGAS" -> "Dusk Was Falling As". Runs that cannot be
    split (proper nouns, unknown words) are returned untouched.

    Args:
        text: Text that may contain run-on uppercase sequences

    Returns:
        Text with splittable runs replaced
    """
    def _replace(match: re.Match) -> str:
        run = match.group(0)
        if len(run) > MAX_SPLIT_RUN:
            return run

        words = _greedy_split(run.lower()).split(' ')
        # Leftover noise stays on the word before it: "THEREFORE" -> "There Fore"
        if len(words) > 1 and words[-1] not in DICTIONARY:
            words[-2:] = [words[-2] + words[-1]]
        if len(words) == 1:
            return run
        return ' '.join(word.capitalize() for word in words)

    return _UPPERCASE_RUN.sub(_replace, text)


def fix_broken_words(text: str) -> str:
    """Rejoin words broken by stray spaces.

    "S ANTIAGO" -> "SANTIAGO" and "ru ined" -> "ruined". A short fragment is
    only glued to its neighbour when the result is a known word and the
    fragment is not a word on its own ("a bout" stays "a bout"). Pieces of
    hyphenated or apostrophe words are never joined.
    """
    def _join_capital(match: re.Match) -> str:
        letter, rest = match.group(1), match.group(2)
        # "A" and "I" are words themselves
        if letter in ('A', 'I') and not _is_word(letter + rest):
            return match.group(0)
        return letter + rest

    def _join_fragment(match: re.Match) -> str:
        first, second = match.group(1), match.group(2)
        if not _is_word(first + second):
            return match.group(0)
        first_is_word = _is_word(first) and first.lower() not in CONTRACTION_FRAGMENTS
        if first_is_word:
            return match.group(0)
        # The lookahead keeps the second fragment in place
        return first

    text = _SPLIT_CAPITAL.sub(_join_capital, text)
    return _SHORT_FRAGMENT.sub(_join_fragment, text)


def _heading_number(token: str) -> Optional[str]:
    """Canonical form of the token following a heading word, or None."""
    if token.isdigit():
        return token
    if _ROMAN_NUMERAL.match(token):
        return token.upper()
    if token.lower() in NUMBER_WORDS:
        return token.capitalize()
    return None


def normalize_structure(text: str) -> str:
    """Title Case structural headings.

    All-caps CHAPTER/PART/PROLOGUE/EPILOGUE are normalized wherever they
    appear; other casings only on heading lines ("chapter one: the boy").
    A following number, Roman numeral or number word is kept with the
    heading.
    """
    def _caps(match: re.Match) -> str:
        kind, token = match.group(1).capitalize(), match.group(2)
        if token is None:
            return kind
        number = _heading_number(token)
        if number is None:
            # Not part of the heading, leave the following word as it was
            return kind + match.group(0)[len(kind):]
        return f"{kind} {number}"

    def _line(match: re.Match) -> str:
        indent, kind, token = match.group(1), match.group(2).capitalize(), match.group(3)
        if token is None:
            return indent + kind
        number = _heading_number(token)
        if number is None:
            return match.group(0)
        return f"{indent}{kind} {number}"

    text = _CAPS_HEADING.sub(_caps, text)
    return _LINE_HEADING.sub(_line, text)


def collapse_horizontal_whitespace(text: str) -> str:
    """Collapse runs of spaces and tabs to a single space."""
    return _HORIZONTAL_SPACE.sub(' ', text)


def clean_extracted_text(text: str) -> str:
    """Apply all layout repairs in order.

    Args:
        text: Text with PDF extraction artifacts

    Returns:
        Repaired text; already clean text comes back unchanged
    """
    if not text:
        return ""

    result = fix_possessives_and_contractions(text)
    result = split_joined_uppercase_words(result)
    result = fix_broken_words(result)
    result = normalize_structure(result)
    result = collapse_horizontal_whitespace(result)

    return result


def is_front_matter(text: str) -> bool:
    """Check whether a paragraph is front matter (copyright, dedication, TOC...).

    Args:
        text: A single paragraph

    Returns:
        True if the paragraph looks like non-narrative preamble
    """
    stripped = text.strip()
    return any(pattern.search(stripped) for pattern in FRONT_MATTER_PATTERNS)


def is_story_start(text: str) -> bool:
    """Check whether a paragraph opens the actual story."""
    stripped = text.strip()
    return any(pattern.search(stripped) for pattern in STORY_START_PATTERNS)


# ==================== Extraction polish ====================

_SPACED_CAPITALS = re.compile(r"\b[A-Z](?: [A-Z]\b){2,}")
_LINE_WRAP_HYPHEN = re.compile(r"(\w)-[ \t]*\n[ \t]*(\w)")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def is_page_number_line(line: str, page_number: Optional[int] = None) -> bool:
    """Check whether a line is a bare page number ("12", "Page 12", "12 of 300")."""
    stripped = line.strip()
    if not stripped:
        return False
    if page_number is not None and stripped == str(page_number):
        return True
    return bool(_PAGE_NUMBER_LINE.match(stripped))


def strip_page_artifacts(lines: List[str], page_number: Optional[int] = None) -> List[str]:
    """Remove a page-number header and footer from a page's lines.

    Only the first and last non-blank lines are inspected, and only on pages
    with at least 3 non-blank lines.

    Args:
        lines: Lines of one page, top to bottom
        page_number: 1-based page number, if known

    Returns:
        Lines without the page-number header/footer
    """
    content = [i for i, line in enumerate(lines) if line.strip()]
    if len(content) < 3:
        return list(lines)

    drop = set()
    first, last = content[0], content[-1]
    if is_page_number_line(lines[first], page_number):
        drop.add(first)
    if is_page_number_line(lines[last], page_number):
        drop.add(last)

    return [line for i, line in enumerate(lines) if i not in drop]


def strip_headers_footers(text: str, page_number: Optional[int] = None) -> str:
    """Text version of strip_page_artifacts for a single page or plain file."""
    return '\n'.join(strip_page_artifacts(text.split('\n'), page_number))


def join_spaced_capitals(text: str) -> str:
    """Join letter-spaced capitals: "T H E" -> "THE" (three or more letters)."""
    return _SPACED_CAPITALS.sub(lambda m: m.group(0).replace(' ', ''), text)


def polish_text(text: str) -> str:
    """Normalize whitespace and line-wrap artifacts in extracted text.

    Args:
        text: Raw text from PDF or a plain-text file

    Returns:
        Text with single spaces, de-hyphenated line wraps and at most one
        blank line between paragraphs
    """
    if not text:
        return ""

    # Non-breaking spaces count as horizontal whitespace
    text = re.sub(r"[ \t\u00a0]+", ' ', text)
    text = text.replace('\r\n', '\n').replace('\r', '\n')

    # Remove leading/trailing whitespace from each line
    text = '\n'.join(line.strip() for line in text.split('\n'))

    # Fix hyphenated line breaks (words split across lines)
    text = _LINE_WRAP_HYPHEN.sub(r"\1\2", text)

    text = join_spaced_capitals(text)
    text = _EXCESS_NEWLINES.sub('\n\n', text)

    return text.strip()
