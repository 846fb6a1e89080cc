"""Web article extraction.

Fetches a page and keeps only its readable body: headings, paragraphs,
list items and block quotes from the article (or main) element, with
navigation, sidebars and scripts thrown away.
"""
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup

from utils.logger import setup_logger
from ingestion.cleaner import polish_text
from ingestion.models import ExtractedDocument
import config

logger = setup_logger(__name__)

NOISE_TAGS = ["script", "style", "nav", "header", "footer", "aside", "form", "noscript", "iframe"]
TEXT_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "blockquote", "pre"]


class WebExtractionError(Exception):
    """Raised when an article cannot be fetched or has no readable text."""
    pass


class WebArticleExtractor:
    """Fetches web articles and converts them to linear text."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        """Initialize extractor.

        Args:
            client: Shared HTTP client; a short-lived one is created per
                request when omitted
        """
        self.client = client

    async def extract_url(self, url: str) -> ExtractedDocument:
        """Fetch ``url`` and extract its article text.

        Raises:
            WebExtractionError: On transport errors, non-2xx responses or
                pages without enough text
        """
        url = url.strip()
        logger.info(f"Fetching article from: {url}")

        try:
            html = await self._fetch(url)
        except httpx.HTTPError as e:
            raise WebExtractionError(f"Failed to fetch {url}: {e}") from e

        return self.parse_html(html, url)

    async def _fetch(self, url: str) -> str:
        headers = {"User-Agent": config.WEB_USER_AGENT}
        if self.client is not None:
            response = await self.client.get(url, headers=headers, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=config.WEB_TIMEOUT_SECONDS) as client:
                response = await client.get(url, headers=headers, follow_redirects=True)
        response.raise_for_status()
        return response.text

    def parse_html(self, html: str, url: str = "") -> ExtractedDocument:
        """Extract title and body text from raw HTML.

        Args:
            html: Page source
            url: Original URL, kept in metadata

        Returns:
            ExtractedDocument with source_type "web_article"
        """
        soup = BeautifulSoup(html, "html.parser")

        title = self._title(soup) or url or "Untitled Article"
        author = self._author(soup)

        for tag in soup(NOISE_TAGS):
            tag.decompose()

        root = soup.find("article") or soup.find("main") or soup.body or soup
        blocks: List[str] = []
        for element in root.find_all(TEXT_TAGS):
            # Nested matches (p inside li/blockquote) are emitted by the parent
            if element.find_parent(TEXT_TAGS) is not None:
                continue
            text = element.get_text(" ", strip=True)
            if text:
                blocks.append(text)

        if not blocks:
            # Pages without semantic markup
            blocks = [line for line in root.get_text("\n").split("\n") if line.strip()]

        text = polish_text("\n\n".join(blocks))
        if len(text) < config.MIN_ARTICLE_CHARS:
            raise WebExtractionError("Fetched content too short")

        logger.info(f"Extracted article '{title}' ({len(text.split())} words)")

        return ExtractedDocument(
            title=title,
            text=text,
            source_type="web_article",
            author=author,
            metadata={'url': url, 'word_count': len(text.split())}
        )

    def _title(self, soup: BeautifulSoup) -> str:
        heading = soup.find("h1")
        if heading and heading.get_text(strip=True):
            return heading.get_text(" ", strip=True)
        if soup.title and soup.title.string:
            return soup.title.string.strip()
        return ""

    def _author(self, soup: BeautifulSoup) -> str:
        meta = soup.find("meta", attrs={"name": "author"})
        if meta and meta.get("content"):
            return meta["content"].strip()
        return "Unknown"
