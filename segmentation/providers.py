"""Segmentation service providers.

A provider turns one batch window into a list of validated segments or
raises. Exactly one provider is built per process (see ``create_provider``)
and injected into the orchestrator.
"""
import json
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import anthropic
from anthropic import AsyncAnthropic
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from utils.logger import setup_logger
from segmentation.models import SegmentationRequest, SegmentPayload
from segmentation import prompts
import config

logger = setup_logger(__name__)

# Errors worth another attempt: network, rate limit, overload/5xx
TRANSIENT_ERRORS = (
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)


class SegmentationError(Exception):
    """Raised when the segmentation service returns nothing usable."""
    pass


class ProviderConfigError(Exception):
    """Raised when a provider cannot be constructed."""
    pass


class SegmentationProvider(ABC):
    """Interface of the external segmentation service."""

    provider_id: str = ""

    @abstractmethod
    async def segment(self, request: SegmentationRequest) -> List[SegmentPayload]:
        """Split the request window into segments.

        Raises:
            Exception: Any failure (network, quota, malformed response)
        """
        pass


def extract_json(response_text: str) -> Any:
    """Parse JSON from an LLM response, tolerating fences and chatter.

    Raises:
        SegmentationError: If no valid JSON can be recovered
    """
    if not response_text or not response_text.strip():
        raise SegmentationError("Empty response from segmentation service")

    try:
        return json.loads(response_text)
    except json.JSONDecodeError:
        pass

    # Try ```json ... ``` then a generic ``` ... ``` block
    extracted = None
    if "```json" in response_text:
        extracted = response_text.split("```json", 1)[1].split("```")[0].strip()
    elif "```" in response_text:
        parts = response_text.split("```")
        if len(parts) >= 3:
            extracted = parts[1].strip()

    if extracted:
        try:
            return json.loads(extracted)
        except json.JSONDecodeError:
            pass

    # Last resort: outermost array or object
    start_arr = response_text.find('[')
    start_obj = response_text.find('{')
    candidates = [(pos, end_char) for pos, end_char in ((start_arr, ']'), (start_obj, '}')) if pos != -1]
    for start, end_char in sorted(candidates):
        end = response_text.rfind(end_char)
        if end > start:
            try:
                return json.loads(response_text[start:end + 1])
            except json.JSONDecodeError:
                continue

    logger.error(f"Could not extract valid JSON from response. First 500 chars: {response_text[:500]}")
    raise SegmentationError("Could not parse or extract JSON from segmentation response")


def parse_segments(response_text: str) -> List[SegmentPayload]:
    """Validate a segmentation response against the segment schema.

    Accepts a JSON array of segments, or an object wrapping one under
    "segments", "cards" or "chunks".

    Raises:
        SegmentationError: On unparseable, empty or schema-invalid payloads
    """
    data = extract_json(response_text)

    if isinstance(data, dict):
        for key in ("segments", "cards", "chunks"):
            if isinstance(data.get(key), list):
                data = data[key]
                break

    if not isinstance(data, list):
        raise SegmentationError(f"Expected a JSON array of segments, got {type(data).__name__}")
    if not data:
        raise SegmentationError("Segmentation service returned no segments")

    try:
        return [SegmentPayload.model_validate(item) for item in data]
    except ValidationError as e:
        raise SegmentationError(f"Segment schema mismatch: {e}") from e


class AnthropicSegmentationProvider(SegmentationProvider):
    """Segmentation through the Anthropic Messages API."""

    provider_id = "anthropic"

    def __init__(
        self,
        client: AsyncAnthropic,
        model: str = config.ANTHROPIC_MODEL,
        max_tokens: int = config.SEGMENTATION_MAX_TOKENS,
        max_attempts: int = config.MAX_RETRIES
    ):
        """Initialize provider.

        Args:
            client: Async Anthropic API client
            model: Model name to use
            max_tokens: Output token budget per batch
            max_attempts: Attempts for transient API errors
        """
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.max_attempts = max_attempts
        self.total_tokens_used = 0

        logger.info(f"AnthropicSegmentationProvider initialized with model: {model}")

    async def segment(self, request: SegmentationRequest) -> List[SegmentPayload]:
        response_text = await self._call_llm(
            system=prompts.chunking_system_instruction(request.genre),
            prompt=prompts.chunking_user_prompt(request)
        )
        segments = parse_segments(response_text)
        logger.info(f"Segmentation service returned {len(segments)} segments")
        return segments

    async def _call_llm(self, system: str, prompt: str) -> str:
        """Call the Messages API, retrying transient errors with backoff.

        Raises:
            anthropic.APIError: When the last attempt fails
            SegmentationError: When the reply has no text
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=config.RETRY_BACKOFF_MULTIPLIER, min=2, max=60),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            reraise=True
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        f"Retrying segmentation call ({attempt.retry_state.attempt_number}/{self.max_attempts})"
                    )
                message = await self.client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=config.LLM_TEMPERATURE,
                    system=system,
                    messages=[
                        {"role": "user", "content": prompt}
                    ]
                )

        # Track token usage
        usage = getattr(message, "usage", None)
        if usage is not None:
            self.total_tokens_used += usage.input_tokens + usage.output_tokens

        text = "".join(
            block.text for block in message.content if getattr(block, "type", "text") == "text"
        )
        if not text:
            raise SegmentationError("No response text from segmentation service")
        return text


def create_client(api_key: Optional[str] = None) -> AsyncAnthropic:
    """Build the async Anthropic client.

    Raises:
        ProviderConfigError: If no API key is configured
    """
    key = api_key or config.ANTHROPIC_API_KEY
    if not key:
        raise ProviderConfigError("ANTHROPIC_API_KEY is not set")
    # Retries are handled by tenacity at the call site
    return AsyncAnthropic(api_key=key, timeout=config.API_TIMEOUT_SECONDS, max_retries=0)


def create_provider(
    name: str = config.SEGMENTATION_PROVIDER,
    api_key: Optional[str] = None,
    client: Optional[AsyncAnthropic] = None
) -> SegmentationProvider:
    """Construct the configured segmentation provider.

    Args:
        name: Provider identifier
        api_key: API key override
        client: Pre-built client to share with other components

    Raises:
        ProviderConfigError: For unknown providers or missing credentials
    """
    provider_name = (name or "").strip().lower()
    if provider_name == AnthropicSegmentationProvider.provider_id:
        return AnthropicSegmentationProvider(client or create_client(api_key))

    raise ProviderConfigError(f"Unknown segmentation provider: {name}")
