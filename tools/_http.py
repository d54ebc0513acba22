"""Async HTTP helper with retry shared by the Google Maps tools."""
from __future__ import annotations

from typing import Any, Optional, Type

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

import config

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS
    return False


async def request(method: str, url: str, *, timeout: Optional[float] = None, **kw: Any) -> httpx.Response:
    """Send a request, retrying transport errors and 429/5xx with backoff.

    Non-retryable responses (including 4xx) are returned as-is so each tool
    can turn them into its own error type. Exhausted retries re-raise the
    last ``httpx`` exception.
    """
    async for attempt in AsyncRetrying(
        retry=retry_if_exception(_is_retryable),
        wait=wait_exponential(min=0.5, max=6),
        stop=stop_after_attempt(max(1, config.HTTP_MAX_RETRIES)),
        reraise=True,
    ):
        with attempt:
            async with httpx.AsyncClient(timeout=timeout or config.HTTP_TIMEOUT_SECONDS) as client:
                resp = await client.request(method, url, **kw)
                if resp.status_code in RETRYABLE_STATUS:
                    resp.raise_for_status()
                return resp
    raise RuntimeError("unreachable")  # pragma: no cover


def json_body(resp: httpx.Response, error_cls: Type[Exception], expected: type = dict) -> Any:
    """Decode a successful response, raising ``error_cls`` for a malformed body.

    A JSON ``null`` decodes to an empty ``expected`` value.
    """
    try:
        data = resp.json()
    except ValueError as e:
        raise error_cls(f"Response body is not JSON: {e}") from e
    if data is None:
        return expected()
    if not isinstance(data, expected):
        raise error_cls(f"Expected a JSON {expected.__name__}, got {type(data).__name__}")
    return data
