"""OpenAI chat completion requests with rate-limit backoff.

Flow:
1. Send the whole conversation to the chat completions endpoint
2. On HTTP 429, back off exponentially (with jitter) and try again
3. On any other failure, stop immediately

Failures are returned as CompletionError values, never raised, so the
caller can decide what to do with the history it was building.
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

from openai import APIStatusError, AsyncOpenAI, RateLimitError

from app.config import Settings
from app.schemas.chat import ChatMessage, Role
from app.services.retry import (
    BackoffPolicy,
    RetriesExhaustedError,
    RetryEvent,
    retry_with_backoff,
)

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Required configuration is missing or invalid."""


class CompletionError(Exception):
    """Terminal failure of a completion request."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class RetriesExhausted(CompletionError):
    """Still rate limited after every allowed retry."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Failed to generate chat after {attempts} attempts due to rate limiting"
        )


class UpstreamError(CompletionError):
    """Non-retryable failure from the completion API."""


class MalformedResponseError(Exception):
    """Completion response had no usable reply."""


@dataclass(frozen=True)
class CompletionConfig:
    model: str = "gpt-3.5-turbo"
    max_retries: int = 5
    initial_delay_ms: int = 1000
    timeout: float = 30.0

    def __post_init__(self):
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        # Raises ValueError for retry or delay values BackoffPolicy rejects
        self.backoff_policy()

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionConfig":
        return cls(
            model=settings.OPENAI_MODEL,
            max_retries=settings.OPENAI_MAX_RETRIES,
            initial_delay_ms=settings.OPENAI_INITIAL_DELAY_MS,
            timeout=settings.OPENAI_TIMEOUT,
        )

    def backoff_policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            max_retries=self.max_retries,
            initial_delay_ms=self.initial_delay_ms,
        )


@dataclass(frozen=True)
class CompletionResult:
    """Either the assistant reply or the error that prevented it."""
    message: Optional[ChatMessage] = None
    error: Optional[CompletionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def is_rate_limited(error: BaseException) -> bool:
    """True when the API answered 429 Too Many Requests."""
    if isinstance(error, RateLimitError):
        return True
    return isinstance(error, APIStatusError) and error.status_code == 429


def build_openai_client(settings: Settings) -> AsyncOpenAI:
    """
    Create the OpenAI client from explicit settings.

    Raises:
        ConfigurationError: If no API key is configured
    """
    if not settings.OPENAI_API_KEY:
        logger.error("OPENAI_API_KEY is not set")
        raise ConfigurationError("OpenAI API Key is missing.")

    return AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY,
        organization=settings.OPENAI_ORGANIZATION_ID,
        # Retries are handled by CompletionRequester
        max_retries=0,
    )


class CompletionRequester:
    """Requests one assistant reply for a conversation."""

    def __init__(
        self,
        client: AsyncOpenAI,
        config: Optional[CompletionConfig] = None,
        *,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ):
        self.client = client
        self.config = config or CompletionConfig()
        self.logger = logger or logging.getLogger(__name__)
        self._sleep = sleep
        self._rand = rand

    async def request_completion(self, conversation: Sequence[ChatMessage]) -> CompletionResult:
        """
        Get the model's reply to a conversation.

        Args:
            conversation: Messages oldest first, ending with the user's new message

        Returns:
            CompletionResult holding the assistant message, or RetriesExhausted /
            UpstreamError

        Raises:
            ValueError: If conversation is empty or does not end with a user message
        """
        if not conversation:
            raise ValueError("Conversation must not be empty")
        if conversation[-1].role != Role.USER:
            raise ValueError("Conversation must end with a user message")

        messages = [message.to_openai() for message in conversation]
        policy = self.config.backoff_policy()

        try:
            reply = await retry_with_backoff(
                lambda attempt: self._create(messages),
                is_rate_limited,
                policy,
                sleep=self._sleep,
                rand=self._rand,
                on_retry=self._log_retry,
            )
        except RetriesExhaustedError as e:
            self.logger.error(
                f"OpenAI rate limit persisted after {e.attempts} attempts (model={self.config.model})"
            )
            return CompletionResult(error=RetriesExhausted(e.attempts))
        except Exception as e:
            self.logger.error(f"OpenAI API error: {e}")
            return CompletionResult(error=UpstreamError(str(e)))

        return CompletionResult(message=reply)

    async def _create(self, messages: list[dict[str, str]]) -> ChatMessage:
        response = await self.client.chat.completions.create(
            model=self.config.model,
            messages=messages,
            timeout=self.config.timeout,
        )
        return self._extract_reply(response)

    @staticmethod
    def _extract_reply(response: Any) -> ChatMessage:
        choices = getattr(response, "choices", None)
        if not choices:
            raise MalformedResponseError("Completion response contained no choices")

        message = choices[0].message
        if message is None or message.content is None:
            raise MalformedResponseError("Completion choice contained no message content")

        return ChatMessage(role=Role.ASSISTANT, content=message.content)

    def _log_retry(self, event: RetryEvent) -> None:
        self.logger.warning(
            f"Rate limit hit on attempt {event.attempt}. Retrying in "
            f"{event.delay_ms / 1000:.2f}s ({event.retries_left} retries left)"
        )
