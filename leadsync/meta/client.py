"""Graph API client with retry and backoff for the advertising platform.

Every request carries the long-lived ``access_token`` as a query parameter.
Transient failures (HTTP 429, 5xx, the platform's throttling codes) are
retried with capped exponential backoff plus jitter, and a ``Retry-After``
header always wins when it asks for a longer wait. Anything else raises
``UpstreamError`` straight away.
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

_FULL_URL_RE = re.compile(r"^https?://", re.IGNORECASE)


class UpstreamError(Exception):
    """Graph API request failed (after retries, when the error was transient)."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        code: int | None = None,
        subcode: int | None = None,
        retry_after: float = 0.0,
    ):
        self.message = message
        self.status = status
        self.code = code
        self.subcode = subcode
        self.retry_after = retry_after
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.status is not None:
            parts.append(f"status={self.status}")
        if self.code is not None:
            parts.append(f"code={self.code}")
        if self.subcode is not None:
            parts.append(f"subcode={self.subcode}")
        return " ".join(parts)


def parse_retry_after(value: str | None) -> float:
    """Seconds from a ``Retry-After`` header; 0 when absent or not numeric."""
    if not value:
        return 0.0
    try:
        seconds = float(value.strip())
    except ValueError:
        return 0.0
    return max(seconds, 0.0)


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return None


def error_from_response(response: httpx.Response) -> UpstreamError:
    """Build an UpstreamError from a non-2xx Graph response."""
    message = f"HTTP {response.status_code}"
    code = None
    subcode = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        err = body["error"]
        if err.get("message"):
            message = str(err["message"])
        code = _as_int(err.get("code"))
        subcode = _as_int(err.get("error_subcode"))
    return UpstreamError(
        message,
        status=response.status_code,
        code=code,
        subcode=subcode,
        retry_after=parse_retry_after(response.headers.get("retry-after")),
    )


@dataclass
class RetryPolicy:
    """How many times to try, how long to wait, and what counts as transient."""

    max_attempts: int = 6
    base_delay_ms: int = 500
    max_delay_ms: int = 30_000
    max_jitter_ms: int = 250
    transient_codes: frozenset[int] = field(
        default_factory=lambda: frozenset({1, 2, 4, 17, 32, 341, 613})
    )
    transient_subcodes: frozenset[int] = field(default_factory=lambda: frozenset({99}))

    def is_retryable(self, error: UpstreamError) -> bool:
        # No status means the request never got a response (timeout, connection reset).
        if error.status is None:
            return True
        if error.status == 429 or 500 <= error.status <= 599:
            return True
        if error.code is not None and error.code in self.transient_codes:
            return True
        if error.subcode is not None and error.subcode in self.transient_subcodes:
            return True
        return False

    def backoff_ms(self, attempt: int, retry_after_seconds: float = 0.0, jitter_ms: float = 0.0) -> float:
        """Wait before retrying after failed attempt ``attempt`` (1-indexed)."""
        exponential = min(self.max_delay_ms, self.base_delay_ms * (2 ** max(0, attempt - 1)))
        return max(retry_after_seconds * 1000, exponential + jitter_ms)

    def delay_seconds(
        self, attempt: int, retry_after_seconds: float = 0.0, rng: random.Random | None = None
    ) -> float:
        jitter_ms = (rng or random).random() * self.max_jitter_ms
        return self.backoff_ms(attempt, retry_after_seconds, jitter_ms) / 1000


def account_path(ad_account_id: str) -> str:
    """Graph node for an ad account (``act_`` prefixed)."""
    account = str(ad_account_id).strip()
    return account if account.startswith("act_") else f"act_{account}"


class GraphClient:
    """Async Graph API client.

    Usage:
        async with GraphClient(token) as graph:
            page = await graph.get("act_123/ads", {"fields": "id,name"})
            async for rows in graph.iter_pages("123456/leads", {"limit": 100}):
                ...
    """

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str | None = None,
        policy: RetryPolicy | None = None,
        timeout: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        rng: random.Random | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.access_token = access_token
        self.base_url = (base_url or settings.graph_url).rstrip("/")
        self.policy = policy or RetryPolicy(max_attempts=settings.meta_max_attempts)
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()
        self._client = httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.meta_request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "GraphClient":
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    def _url(self, path_or_url: str) -> str:
        if _FULL_URL_RE.match(path_or_url):
            return path_or_url
        return f"{self.base_url}/{path_or_url.lstrip('/')}"

    async def _request_once(self, url: httpx.URL) -> dict[str, Any]:
        try:
            response = await self._client.get(url)
        except httpx.TransportError as exc:
            raise UpstreamError(f"transport error: {exc!r}") from exc

        if response.status_code >= 400:
            raise error_from_response(response)
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamError("invalid JSON in response", status=response.status_code) from exc
        return body if isinstance(body, dict) else {"data": body}

    async def get(self, path_or_url: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """GET a relative Graph path or a full ``paging.next`` URL."""
        url = self._url(path_or_url)
        query = dict(params or {})
        query["access_token"] = self.access_token
        # paging.next URLs carry their own query (cursor included); merge into it.
        request_url = httpx.URL(url).copy_merge_params(query)

        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._request_once(request_url)
            except UpstreamError as err:
                if not self.policy.is_retryable(err) or attempt >= self.policy.max_attempts:
                    raise
                wait = self.policy.delay_seconds(attempt, err.retry_after, self._rng)
                logger.warning(
                    "Retrying Graph GET %s (attempt %d/%d) in %.0fms: %s",
                    url.split("?")[0],
                    attempt,
                    self.policy.max_attempts,
                    wait * 1000,
                    err,
                )
                await self._sleep(wait)

    async def iter_pages(
        self, path: str, params: dict[str, Any] | None = None
    ) -> AsyncIterator[list[dict]]:
        """Yield ``data[]`` one page at a time, following ``paging.next``.

        The next page is only requested once the consumer asks for it.
        """
        url: str = path
        query: dict[str, Any] | None = dict(params or {})
        while True:
            body = await self.get(url, query)
            rows = body.get("data")
            yield [row for row in rows if isinstance(row, dict)] if isinstance(rows, list) else []

            paging = body.get("paging")
            next_url = paging.get("next") if isinstance(paging, dict) else None
            if not isinstance(next_url, str) or not next_url:
                break
            # The next URL already carries every query parameter.
            url = next_url
            query = None
