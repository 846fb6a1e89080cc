"""Pydantic models for segmentation module."""
import json
import math
from datetime import datetime, timezone
from enum import Enum
from typing import List, Dict, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

import config

UNKNOWN_CHAPTER = "Unknown Chapter"
FIRST_CHAPTER = "Chapter 1"
FALLBACK_TAG = "fallback"
DEFAULT_CONTEXT_LABEL = "Book Content"


class Genre(str, Enum):
    """Content genres; each selects an instruction profile."""
    FICTION = "fiction"
    NON_FICTION = "non_fiction"
    TECHNICAL = "technical"
    SCRIPT = "script"

    @classmethod
    def parse(cls, value: Optional[str], default: Optional["Genre"] = None) -> "Genre":
        """Lenient lookup: unknown values map to ``default`` (non_fiction)."""
        if default is None:
            default = cls.NON_FICTION
        if not value:
            return default
        normalized = value.strip().strip('."\'').lower().replace('-', '_').replace(' ', '_')
        for genre in cls:
            if genre.value == normalized:
                return genre
        return default


def estimate_reading_time(text: str) -> int:
    """Estimated reading time in seconds (~210 words per minute)."""
    return math.ceil(len(text.split()) / config.READING_WORDS_PER_SECOND)


class Chunk(BaseModel):
    """One reading card."""
    id: str
    book_id: str
    index: int = Field(ge=0)
    text: str
    chapter_title: str
    context_label: str = DEFAULT_CONTEXT_LABEL
    speaker: Optional[str] = None
    is_new_scene: bool = False
    shareable_quote: Optional[str] = None
    estimated_time: int = 0
    tags: List[str] = Field(default_factory=list)

    @property
    def is_fallback(self) -> bool:
        return FALLBACK_TAG in self.tags

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for database insertion."""
        return {
            'id': self.id,
            'book_id': self.book_id,
            'chunk_index': self.index,
            'text': self.text,
            'chapter_title': self.chapter_title,
            'context_label': self.context_label,
            'speaker': self.speaker,
            'is_new_scene': int(self.is_new_scene),
            'shareable_quote': self.shareable_quote,
            'estimated_time': self.estimated_time,
            'tags': json.dumps(self.tags)
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Chunk":
        """Build a Chunk from a ``chunks`` table row."""
        return cls(
            id=row['id'],
            book_id=row['book_id'],
            index=row['chunk_index'],
            text=row['text'],
            chapter_title=row['chapter_title'],
            context_label=row['context_label'],
            speaker=row['speaker'],
            is_new_scene=bool(row['is_new_scene']),
            shareable_quote=row['shareable_quote'],
            estimated_time=row['estimated_time'],
            tags=json.loads(row['tags'] or '[]')
        )


class SegmentPayload(BaseModel):
    """One segment as returned by the segmentation service."""
    model_config = ConfigDict(populate_by_name=True)

    text: str
    chapter_title: Optional[str] = Field(default=None, alias="chapterTitle")
    context_label: str = Field(default="", alias="contextLabel")
    speaker: Optional[str] = None
    is_new_scene: Optional[bool] = Field(default=None, alias="isNewScene")
    shareable_quote: Optional[str] = Field(default=None, alias="shareableQuote")

    @field_validator('text')
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("segment text is empty")
        return value

    @field_validator('context_label', mode='before')
    @classmethod
    def context_label_default(cls, value: Any) -> Any:
        return "" if value is None else value


class SegmentationRequest(BaseModel):
    """What the segmentation service receives for one batch."""
    text: str
    genre: Genre = Genre.NON_FICTION
    book_title: Optional[str] = None
    previous_chapter_title: Optional[str] = None


class BatchResult(BaseModel):
    """Chunks of one batch plus the state the next batch needs."""
    chunks: List[Chunk] = Field(default_factory=list)
    last_chapter_title: Optional[str] = None
    next_index: int = 0
    used_fallback: bool = False


class Book(BaseModel):
    """A book record tracking incremental chunking progress."""
    id: str
    title: str
    author: str = "Unknown"
    source_type: str = "txt"
    genre: Genre = Genre.NON_FICTION
    raw_content: str = ""
    processed_char_count: int = 0
    total_chunks: int = 0
    last_chapter_title: Optional[str] = None
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def has_more(self) -> bool:
        return self.processed_char_count < len(self.raw_content)

    @property
    def remaining_chars(self) -> int:
        return max(len(self.raw_content) - self.processed_char_count, 0)
