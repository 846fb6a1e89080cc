"""Main CLI entry point for the reading-card pipeline."""
import asyncio
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from utils.logger import setup_logger
from storage.database import Database
from ingestion.errors import PDFExtractionError
from ingestion.models import ExtractedDocument, ExtractionMode
from ingestion.pdf_extractor import PageTextExtractor
from ingestion.web_extractor import WebArticleExtractor, WebExtractionError
from segmentation.genre_detector import GenreDetector
from segmentation.orchestrator import ChunkingOrchestrator, OrchestrationError
from segmentation.pipeline import BookProcessor
from segmentation.providers import ProviderConfigError, create_client, create_provider
import config

logger = setup_logger(__name__)
console = Console()


def build_processor(db: Database) -> BookProcessor:
    """Wire the configured provider, genre detector and storage together.

    Raises:
        ProviderConfigError: If the segmentation provider cannot be built
    """
    client = create_client()
    provider = create_provider(config.SEGMENTATION_PROVIDER, client=client)
    return BookProcessor(
        db=db,
        orchestrator=ChunkingOrchestrator(provider),
        genre_detector=GenreDetector(client)
    )


async def extract_document(file: Optional[str], url: Optional[str], mode: str) -> ExtractedDocument:
    """Extract a file or web article, showing page progress for PDFs."""
    if url:
        with console.status("Fetching article..."):
            return await WebArticleExtractor().extract_url(url)

    extractor = PageTextExtractor(mode=ExtractionMode(mode))
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console
    ) as progress:
        task = progress.add_task("Extracting text...", total=100)
        doc = await extractor.extract_file(
            file,
            progress=lambda percent: progress.update(task, completed=percent)
        )
        progress.update(task, completed=100)
    return doc


@click.group()
def cli():
    """Reading Cards - turn books and articles into swipeable reading cards"""
    pass


@cli.command()
@click.option('--file', 'file', type=click.Path(exists=True, dir_okay=False), help='Path to a PDF or text file')
@click.option('--url', help='URL of a web article')
@click.option('--mode', type=click.Choice([m.value for m in ExtractionMode]), default=ExtractionMode.LAYOUT.value,
              show_default=True, help='How PDF text runs are grouped into lines')
def ingest(file, url, mode):
    """Extract a document, store it and chunk its first batch."""
    if bool(file) == bool(url):
        raise click.UsageError("Provide exactly one of --file or --url")

    console.print("\n[bold cyan]Book Ingestion[/bold cyan]\n")

    try:
        doc = asyncio.run(extract_document(file, url, mode))
    except (PDFExtractionError, WebExtractionError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return

    console.print(f"Extracted [cyan]{doc.title}[/cyan]: {doc.word_count:,} words")

    db = Database()
    try:
        processor = build_processor(db)
    except ProviderConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        return

    with console.status("Chunking first batch..."):
        try:
            book = asyncio.run(processor.ingest(doc))
        except (PDFExtractionError, OrchestrationError) as e:
            console.print(f"[red]Error: {e}[/red]")
            logger.exception("Ingestion failed")
            return

    console.print(f"\n[green]✓ Ingestion complete![/green]")
    console.print(f"Book ID: [cyan]{book.id}[/cyan]")
    console.print(f"Genre: {book.genre.value}")
    console.print(f"Chunks: {book.total_chunks}")
    console.print(f"Processed: {book.processed_char_count:,}/{len(book.raw_content):,} chars")


@cli.command(name='load-more')
@click.option('--book-id', required=True, help='Book UUID')
@click.option('--all', 'load_all', is_flag=True, help='Keep loading until the book is fully chunked')
def load_more(book_id, load_all):
    """Chunk the next batch of a stored book."""
    db = Database()
    book = db.get_book(book_id)
    if book is None:
        console.print("[red]Error: No book found for this ID[/red]")
        return
    if not book.has_more:
        console.print("[yellow]Book is already fully processed[/yellow]")
        return

    try:
        processor = build_processor(db)
    except ProviderConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        return

    async def run() -> int:
        batches = 0
        while True:
            result = await processor.load_more(book_id)
            if result is None:
                break
            batches += 1
            note = " [yellow](fallback)[/yellow]" if result.used_fallback else ""
            console.print(f"Batch {batches}: {len(result.chunks)} chunks, next index {result.next_index}{note}")
            if not load_all:
                break
        return batches

    try:
        batches = asyncio.run(run())
    except OrchestrationError as e:
        console.print(f"[red]Error: {e}[/red]")
        logger.exception("Load more failed")
        return

    book = db.get_book(book_id)
    console.print(f"\n[green]✓ Loaded {batches} batch(es)[/green]")
    console.print(f"Chunks: {book.total_chunks}")
    console.print(f"Remaining: {book.remaining_chars:,} chars")


@cli.command()
def books():
    """Show all stored books."""
    db = Database()
    all_books = db.list_books()

    if not all_books:
        console.print("[yellow]No books have been ingested yet[/yellow]")
        return

    table = Table(title="Library")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Genre")
    table.add_column("Chunks", justify="right")
    table.add_column("Progress", justify="right")
    table.add_column("Added", style="dim")

    for book in all_books:
        total = len(book.raw_content) or 1
        table.add_row(
            book.id[:8] + "...",
            book.title,
            book.genre.value,
            str(book.total_chunks),
            f"{book.processed_char_count / total:.0%}",
            book.created_at[:10]
        )

    console.print(table)


@cli.command()
@click.option('--book-id', required=True, help='Book UUID')
@click.option('--start', default=0, show_default=True, help='First chunk index')
@click.option('--limit', default=10, show_default=True, help='Number of chunks to show')
def show(book_id, start, limit):
    """Print stored chunks of a book."""
    db = Database()
    chunks = db.get_chunks(book_id, start=start, limit=limit)

    if not chunks:
        console.print("[yellow]No chunks found[/yellow]")
        return

    for chunk in chunks:
        header = f"[bold]#{chunk.index}[/bold] [cyan]{escape(chunk.chapter_title)}[/cyan]"
        if chunk.context_label:
            header += f" [dim]· {escape(chunk.context_label)}[/dim]"
        if chunk.is_new_scene:
            header += " [magenta](new scene)[/magenta]"
        console.print(header)
        console.print(chunk.text, markup=False, highlight=False)
        if chunk.shareable_quote:
            console.print(f"[italic]“{escape(chunk.shareable_quote)}”[/italic]")
        console.print(f"[dim]~{chunk.estimated_time}s[/dim]\n")


@cli.command()
@click.option('--file', 'file', required=True, type=click.Path(exists=True, dir_okay=False), help='Path to a PDF or text file')
@click.option('--mode', type=click.Choice([m.value for m in ExtractionMode]), default=ExtractionMode.LAYOUT.value,
              show_default=True, help='How PDF text runs are grouped into lines')
def clean(file, mode):
    """Extract and clean a document, then print the linear text."""
    try:
        doc = asyncio.run(extract_document(file, None, mode))
    except PDFExtractionError as e:
        console.print(f"[red]Error: {e}[/red]")
        return

    console.print(doc.text, markup=False, highlight=False)


if __name__ == '__main__':
    cli()
