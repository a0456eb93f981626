"""Builders for fake OpenAI clients, responses and errors."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import httpx
from openai import APIConnectionError, APIStatusError, RateLimitError

COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"


def make_completion(content: str = "Hello from the model"):
    """Minimal object shaped like a ChatCompletion."""
    message = SimpleNamespace(role="assistant", content=content)
    return SimpleNamespace(choices=[SimpleNamespace(index=0, message=message)])


def make_status_error(status_code: int, message: str = "upstream error") -> APIStatusError:
    request = httpx.Request("POST", COMPLETIONS_URL)
    response = httpx.Response(status_code, request=request)
    if status_code == 429:
        return RateLimitError(message, response=response, body=None)
    return APIStatusError(message, response=response, body=None)


def make_connection_error() -> APIConnectionError:
    return APIConnectionError(request=httpx.Request("POST", COMPLETIONS_URL))


def make_openai_client(*outcomes) -> Mock:
    """
    Fake AsyncOpenAI whose chat.completions.create yields outcomes in order.

    Exceptions in outcomes are raised, anything else is returned.
    """
    client = Mock()
    client.chat.completions.create = AsyncMock(side_effect=list(outcomes))
    return client


def always(outcome, times: int = 50) -> list:
    return [outcome] * times
