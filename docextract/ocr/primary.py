"""Vision-language-model OCR client with retry and backoff.

Sends the enhanced image to an OpenAI-compatible chat completions
endpoint. Transient provider failures are retried with exponential
backoff; exhaustion is raised to the caller, never swallowed.
"""

import asyncio
import base64
from collections.abc import Awaitable, Callable
from typing import Any

import openai
from openai import AsyncOpenAI
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from docextract.errors import ExtractionCancelledError, PrimaryExtractionError
from docextract.utils.config import PrimaryEngineConfig
from docextract.utils.logger import get_logger

logger = get_logger(__name__)

# APITimeoutError is a subclass of APIConnectionError.
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)

SYSTEM_PROMPT = """You are a precise OCR engine. Your only task is to transcribe \
the text visible in the image exactly as written, in whatever language or \
script it uses. You never translate, summarize, explain, or comment, and you \
never add text that is not in the image."""

USER_PROMPT = """Extract all text from this image.

Rules:
- Reproduce the text exactly, in its original language and script.
- Preserve paragraph breaks and line breaks.
- Preserve lists, numbering, bullet points, and headings.
- Keep right-to-left text (Arabic, Hebrew, Persian, Urdu) in its natural \
reading order.
- Transcribe mathematical formulas as written.
- Keep the indentation of code exactly.
- Do not translate anything.
- Do not add commentary, explanations, labels, or formatting notes.
- If the image contains no text, return an empty response.

Return only the extracted text."""

_MAGIC_MIME_TYPES = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF8", "image/gif"),
    (b"II*\x00", "image/tiff"),
    (b"MM\x00*", "image/tiff"),
    (b"BM", "image/bmp"),
)


def guess_mime_type(data: bytes) -> str:
    """Guess an image MIME type from magic bytes, defaulting to JPEG."""
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    for magic, mime in _MAGIC_MIME_TYPES:
        if data.startswith(magic):
            return mime
    return "image/jpeg"


class PrimaryExtractionClient:
    """OCR through a vision-capable chat model.

    One instance is shared by every request; it holds only immutable
    configuration and the SDK client.

    Args:
        config: Primary engine settings.
        client: Pre-built ``AsyncOpenAI`` compatible client. Built from
            ``config`` when omitted and an API key is configured.
        sleep: Awaitable used for backoff delays.
    """

    def __init__(
        self,
        config: PrimaryEngineConfig,
        client: Any | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config
        if client is None and config.api_key:
            client = AsyncOpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.timeout,
                max_retries=0,
            )
        self._client = client
        self._sleep = sleep

    @property
    def available(self) -> bool:
        """Whether the client can make requests."""
        return self._client is not None

    def build_messages(self, image_data: bytes) -> list[dict[str, Any]]:
        """Build the chat messages for one extraction request.

        Args:
            image_data: Encoded image bytes.

        Returns:
            System and user messages with the image inlined as a data URL.
        """
        encoded = base64.b64encode(image_data).decode("ascii")
        data_url = f"data:{guess_mime_type(image_data)};base64,{encoded}"
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": USER_PROMPT},
                    {
                        "type": "image_url",
                        "image_url": {
                            "url": data_url,
                            "detail": self.config.image_detail,
                        },
                    },
                ],
            },
        ]

    async def extract(
        self, image_data: bytes, cancel_event: asyncio.Event | None = None
    ) -> str:
        """Extract text from an image, retrying transient failures.

        Args:
            image_data: Encoded (normally enhanced JPEG) image bytes.
            cancel_event: Optional signal checked before every attempt.

        Returns:
            Raw text returned by the model (may be empty).

        Raises:
            PrimaryExtractionError: If the client is not configured, a
                request is rejected, or every attempt failed.
            ExtractionCancelledError: If ``cancel_event`` was set.
        """
        if self._client is None:
            raise PrimaryExtractionError("Primary engine is not configured")

        messages = self.build_messages(image_data)
        retryer = AsyncRetrying(
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(
                multiplier=self.config.backoff_base, max=self.config.backoff_max
            ),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        attempts = 0
        try:
            async for attempt in retryer:
                with attempt:
                    if cancel_event is not None and cancel_event.is_set():
                        raise ExtractionCancelledError(
                            "Extraction cancelled before primary attempt"
                        )
                    attempts = attempt.retry_state.attempt_number
                    response = await self._client.chat.completions.create(
                        model=self.config.model,
                        messages=messages,
                        max_tokens=self.config.max_tokens,
                        temperature=self.config.temperature,
                    )
        except TRANSIENT_ERRORS as exc:
            raise PrimaryExtractionError(
                f"Primary engine failed after {attempts} attempts: {exc}",
                attempts=attempts,
            ) from exc
        except openai.OpenAIError as exc:
            raise PrimaryExtractionError(
                f"Primary engine rejected the request: {exc}", attempts=attempts
            ) from exc

        text = _response_text(response)
        logger.info(
            "Primary engine returned %d characters after %d attempt(s)",
            len(text),
            attempts,
        )
        return text

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "Primary attempt %d/%d failed (%s), retrying in %.1fs",
            retry_state.attempt_number,
            self.config.max_attempts,
            exc,
            delay,
        )


def _response_text(response: Any) -> str:
    choices = getattr(response, "choices", None)
    if not choices:
        return ""
    content = choices[0].message.content
    return content or ""
