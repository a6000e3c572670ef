"""LLM client: HTTP connection to an OpenAI-style chat completion endpoint.

The persona layer injects an LLM callable matching the protocol:

    async def __call__(self, messages: list[ChatMessage]) -> str: ...

and gets back the raw completion text. Every failure (connection, timeout,
non-2xx status, malformed body, empty content) surfaces as LLMError so the
retry wrapper can treat them uniformly.

    ChatLLM       real HTTP client for the Pollinations /openai endpoint
                  (or anything else speaking the same wire format).
    with_retries  bounded exponential backoff around any async operation,
                  returning a fallback value instead of raising.

Tests use StubLLM (defined in the test helpers) instead of ChatLLM.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar

import httpx

from transporter.config import DEFAULT_ENDPOINT, DEFAULT_MODEL, Settings
from transporter.models import ChatMessage

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Protocol: every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, messages: list[ChatMessage]) -> str: ...


# ---------------------------------------------------------------------------
# ChatLLM: connects to a real backend
# ---------------------------------------------------------------------------

class ChatLLM:
    """Async HTTP client for chat completion backends.

    POST {endpoint}  {"messages": [...], "model": ..., "seed": <0..999999>}
    Response: {"choices": [{"message": {"content": "..."}}]}

    Args:
        endpoint: Full URL of the completion endpoint.
        model:    Model identifier sent with every request.
        timeout:  HTTP timeout in seconds. Defaults to 60.
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        model: str = DEFAULT_MODEL,
        timeout: float = 60.0,
    ) -> None:
        self._endpoint = endpoint
        self._model = model
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> ChatLLM:
        return cls(
            endpoint=settings.llm_endpoint,
            model=settings.llm_model,
            timeout=settings.llm_timeout,
        )

    def _build_body(self, messages: list[ChatMessage]) -> dict:
        return {
            "messages": [m.model_dump(exclude_none=True) for m in messages],
            "model": self._model,
            "seed": random.randrange(1_000_000),
        }

    def _parse_response(self, resp: httpx.Response) -> str:
        """Extract the completion text from the response body."""
        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError("LLM backend returned a non-JSON body") from e
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError("Unexpected response format from LLM backend") from e
        if not isinstance(content, str) or not content.strip():
            raise LLMError("LLM backend returned an empty completion")
        return content

    async def __call__(self, messages: list[ChatMessage]) -> str:
        body = self._build_body(messages)
        logger.debug("llm call url=%s turns=%d", self._endpoint, len(messages))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    self._endpoint,
                    json=body,
                    headers={"Content-Type": "application/json"},
                )
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._endpoint}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.TransportError as e:
            raise LLMError(f"Transport error talking to LLM backend: {e}") from e

        text = self._parse_response(resp)
        logger.debug("llm response len=%d", len(text))
        return text


# ---------------------------------------------------------------------------
# Retry wrapper
# ---------------------------------------------------------------------------

async def with_retries(
    operation: Callable[[], Awaitable[T]],
    *,
    fallback: T,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """Run operation until it succeeds, at most max_attempts times.

    Waits base_delay * 2**attempt between attempts. Only LLMError is retried;
    when every attempt fails the fallback is returned instead of raising.
    """
    last_error: LLMError | None = None
    for attempt in range(max_attempts):
        try:
            return await operation()
        except LLMError as e:
            last_error = e
            logger.warning("Attempt %d/%d failed: %s", attempt + 1, max_attempts, e)
            if attempt < max_attempts - 1:
                await sleep(base_delay * 2 ** attempt)

    logger.error("All %d attempts failed. Last error: %s", max_attempts, last_error)
    return fallback


# ---------------------------------------------------------------------------
# LLMError: raised for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an unusable reply."""
