"""SQLite storage for books and their reading cards."""
import sqlite3
from pathlib import Path
from typing import Optional, List, Dict, Any
from contextlib import contextmanager

from utils.logger import setup_logger
from segmentation.models import Book, Chunk, Genre
import config

logger = setup_logger(__name__)


class ChunkIndexError(Exception):
    """Raised when a batch would leave a gap or overlap in chunk indices."""
    pass


class Database:
    """Manages SQLite database operations."""

    def __init__(self, db_path: Path = config.DB_PATH):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_schema()

    def _initialize_schema(self):
        """Create tables if they don't exist."""
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, 'r') as f:
            schema_sql = f.read()

        with self._get_connection() as conn:
            conn.executescript(schema_sql)
            conn.commit()

        logger.info(f"Database initialized at {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections.

        Anything not committed before the block exits is rolled back.
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    @staticmethod
    def _insert_chunks(conn: sqlite3.Connection, chunks: List[Chunk]) -> None:
        conn.executemany(
            """
            INSERT INTO chunks (
                id, book_id, chunk_index, text, chapter_title, context_label,
                speaker, is_new_scene, shareable_quote, estimated_time, tags
            )
            VALUES (
                :id, :book_id, :chunk_index, :text, :chapter_title, :context_label,
                :speaker, :is_new_scene, :shareable_quote, :estimated_time, :tags
            )
            """,
            [chunk.to_dict() for chunk in chunks]
        )

    def insert_book(self, book: Book, chunks: Optional[List[Chunk]] = None) -> str:
        """Insert a new book together with its first batch of chunks.

        Args:
            book: Book record; its counters must already describe ``chunks``
            chunks: First batch, indexed from 0

        Returns:
            Book id

        Raises:
            ChunkIndexError: If the chunk indices do not run 0..n-1 or disagree with total_chunks
        """
        chunks = chunks or []
        indices = [chunk.index for chunk in chunks]
        if indices != list(range(len(chunks))) or book.total_chunks != len(chunks):
            raise ChunkIndexError(
                f"Initial batch for book {book.id} must be indexed 0..{book.total_chunks - 1}, got {indices[:5]}..."
            )

        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO books (
                    id, title, author, source_type, genre, raw_content,
                    processed_char_count, total_chunks, last_chapter_title, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    book.id, book.title, book.author, book.source_type, book.genre.value,
                    book.raw_content, book.processed_char_count, book.total_chunks,
                    book.last_chapter_title, book.created_at
                )
            )
            self._insert_chunks(conn, chunks)
            conn.commit()

        logger.info(f"Inserted book: {book.title} (ID: {book.id}) with {len(chunks)} chunks")
        return book.id

    def get_book(self, book_id: str) -> Optional[Book]:
        """Retrieve a book by id.

        Args:
            book_id: Book UUID

        Returns:
            Book or None
        """
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
            return self._row_to_book(dict(row)) if row else None

    def list_books(self) -> List[Book]:
        """Get all books, newest first."""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM books ORDER BY created_at DESC").fetchall()
            return [self._row_to_book(dict(row)) for row in rows]

    def get_chunks(self, book_id: str, start: int = 0, limit: Optional[int] = None) -> List[Chunk]:
        """Retrieve chunks of a book in reading order.

        Args:
            book_id: Book UUID
            start: First chunk index to return
            limit: Max chunks to return, all when None

        Returns:
            List of chunks ordered by index
        """
        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM chunks
                WHERE book_id = ? AND chunk_index >= ?
                ORDER BY chunk_index
                LIMIT ?
                """,
                (book_id, start, -1 if limit is None else limit)
            ).fetchall()
            return [Chunk.from_row(dict(row)) for row in rows]

    def append_batch(
        self,
        book_id: str,
        chunks: List[Chunk],
        processed_char_count: int,
        last_chapter_title: Optional[str]
    ) -> int:
        """Persist one batch and advance the book's progress atomically.

        Args:
            book_id: Book UUID
            chunks: Batch chunks, contiguous and starting at the book's total_chunks
            processed_char_count: New processed character count
            last_chapter_title: Chapter context for the next batch

        Returns:
            New total chunk count

        Raises:
            KeyError: If the book does not exist
            ChunkIndexError: If the batch does not continue the book's index sequence
        """
        with self._get_connection() as conn:
            # Take the write lock before reading the counters
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT total_chunks, processed_char_count FROM books WHERE id = ?",
                (book_id,)
            ).fetchone()
            if row is None:
                raise KeyError(f"Unknown book: {book_id}")

            total = row['total_chunks']
            expected = list(range(total, total + len(chunks)))
            if [chunk.index for chunk in chunks] != expected:
                raise ChunkIndexError(
                    f"Batch for book {book_id} must start at index {total} and be contiguous"
                )
            if processed_char_count < row['processed_char_count']:
                raise ChunkIndexError(
                    f"Processed count for book {book_id} cannot move backwards "
                    f"({row['processed_char_count']} -> {processed_char_count})"
                )

            self._insert_chunks(conn, chunks)
            conn.execute(
                """
                UPDATE books
                SET total_chunks = ?, processed_char_count = ?, last_chapter_title = ?
                WHERE id = ?
                """,
                (total + len(chunks), processed_char_count, last_chapter_title, book_id)
            )
            conn.commit()

        logger.info(f"Appended {len(chunks)} chunks to book {book_id} (total: {total + len(chunks)})")
        return total + len(chunks)

    @staticmethod
    def _row_to_book(row: Dict[str, Any]) -> Book:
        return Book(
            id=row['id'],
            title=row['title'],
            author=row['author'],
            source_type=row['source_type'],
            genre=Genre.parse(row['genre']),
            raw_content=row['raw_content'],
            processed_char_count=row['processed_char_count'],
            total_chunks=row['total_chunks'],
            last_chapter_title=row['last_chapter_title'],
            created_at=row['created_at']
        )
