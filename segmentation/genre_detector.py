"""Genre classification for new books."""
from anthropic import AsyncAnthropic

from utils.logger import setup_logger
from segmentation.models import Genre
from segmentation import prompts
import config

logger = setup_logger(__name__)


class GenreDetector:
    """Picks the instruction profile for a book from a text sample.

    Classification failures are never fatal: the detector falls back to
    non-fiction, the most generic profile.
    """

    def __init__(
        self,
        client: AsyncAnthropic,
        model: str = config.ANTHROPIC_MODEL,
        sample_chars: int = config.GENRE_SAMPLE_CHARS
    ):
        self.client = client
        self.model = model
        self.sample_chars = sample_chars

    async def detect(self, text: str) -> Genre:
        """Classify the opening of ``text``.

        Args:
            text: Full book text

        Returns:
            Detected genre, Genre.NON_FICTION on any failure
        """
        sample = text[:self.sample_chars]
        if not sample.strip():
            return Genre.NON_FICTION

        logger.info("Detecting genre for new book...")
        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=16,
                temperature=config.LLM_TEMPERATURE,
                messages=[
                    {"role": "user", "content": prompts.genre_classification_prompt(sample)}
                ]
            )
            answer = "".join(
                block.text for block in message.content if getattr(block, "type", "text") == "text"
            )
        except Exception as e:
            logger.error(f"Genre detection failed, falling back to non_fiction: {e}")
            return Genre.NON_FICTION

        genre = Genre.parse(answer)
        logger.info(f"Detected genre: {genre.value}")
        return genre
