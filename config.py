"""Configuration module for the reading-card pipeline."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Configuration
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-5")
SEGMENTATION_PROVIDER = os.getenv("SEGMENTATION_PROVIDER", "anthropic")
LLM_TEMPERATURE = 0  # Segmentation must stay verbatim
SEGMENTATION_MAX_TOKENS = int(os.getenv("SEGMENTATION_MAX_TOKENS", "16000"))
API_TIMEOUT_SECONDS = float(os.getenv("API_TIMEOUT_SECONDS", "120"))

# Retry policy at the segmentation service boundary
MAX_RETRIES = 3
RETRY_BACKOFF_MULTIPLIER = 2

# Batching Configuration
BATCH_SIZE_CHARS = int(os.getenv("BATCH_SIZE_CHARS", "20000"))
MIN_BATCH_CHARS = int(os.getenv("MIN_BATCH_CHARS", "5000"))
BATCH_LOOKBACK_CHARS = 2000

# Fallback segmenter limits (characters)
FALLBACK_PARAGRAPH_LIMIT = 150
FALLBACK_BUFFER_LIMIT = 120
FIRST_CHAPTER_GRACE = 5  # Leading chunks of a book labelled "Chapter 1" when untitled

# Reading speed: 3.5 words per second is roughly 210 words per minute
READING_WORDS_PER_SECOND = 3.5

# PDF layout heuristics (PDF user-space units / font size ratios)
LINE_TOLERANCE = 5.0
SPACE_GAP_RATIO = 0.2
NEWLINE_JUMP_RATIO = 0.5
MIN_EXTRACTED_CHARS = 10

# Genre detection
GENRE_SAMPLE_CHARS = 1500

# Web article fetching
WEB_USER_AGENT = os.getenv(
    "WEB_USER_AGENT",
    "Mozilla/5.0 (compatible; ReadingCards/0.1; +https://example.invalid)"
)
WEB_TIMEOUT_SECONDS = 20.0
MIN_ARTICLE_CHARS = 100

# Storage Configuration
DB_PATH = Path(os.getenv("DB_PATH", "./output/library.db"))
