"""
http.py - Async HTTP client built on *aiohttp* driven by a
          :class:`~adaptive_crawler.config.RetryPolicy`.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from email.utils import parsedate_to_datetime
from typing import Dict, Mapping, Optional

import aiohttp

from ..config import HttpConfig, RetryPolicy

logger = logging.getLogger(__name__)

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:123.0) Gecko/20100101 Firefox/123.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:123.0) Gecko/20100101 Firefox/123.0",
)


def random_user_agent() -> str:
    return random.choice(USER_AGENTS)


def default_headers() -> Dict[str, str]:
    return {
        "User-Agent": random_user_agent(),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Accept-Encoding": "gzip, deflate",
        "DNT": "1",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
    }


class HttpClient:
    """
    Thin wrapper over *aiohttp.ClientSession* adding:

    * browser-like default headers with a rotated user-agent
    * exponential back-off **with jitter** for the policy's retryable
      statuses and for connection errors
    * transparent parsing of *Retry-After* header
    * async context-manager support

    Non-retryable error statuses raise :class:`aiohttp.ClientResponseError`
    on the first attempt.
    """

    def __init__(
        self,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 30.0,
        max_redirects: int = 5,
        retry: Optional[RetryPolicy] = None,
        default_headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._external_session = session
        self._timeout = timeout
        self._max_redirects = max_redirects
        self._retry = retry or RetryPolicy()
        self._own_session: Optional[aiohttp.ClientSession] = None
        self._default_headers: Dict[str, str] = dict(default_headers or {})

    @classmethod
    def from_config(cls, cfg: HttpConfig) -> "HttpClient":
        return cls(
            timeout=cfg.timeout,
            max_redirects=cfg.max_redirects,
            retry=cfg.retry,
            default_headers=default_headers(),
        )

    # ---------------------------------------------- #
    # Async context-manager
    async def __aenter__(self) -> "HttpClient":  # noqa: D401
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        await self.close()

    # ---------------------------------------------- #
    # Session management
    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._external_session:
            return self._external_session
        if self._own_session is None or self._own_session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            self._own_session = aiohttp.ClientSession(timeout=timeout)
        return self._own_session

    async def close(self) -> None:
        if self._own_session and not self._own_session.closed:
            await self._own_session.close()
            self._own_session = None

    # ---------------------------------------------- #
    # Internal helpers
    @staticmethod
    def _parse_retry_after(header_val: str | None) -> Optional[float]:
        """Return seconds given a Retry-After header value."""
        if not header_val:
            return None
        header_val = header_val.strip()
        # seconds
        if header_val.isdigit():
            return float(header_val)
        # HTTP-date
        try:
            retry_at = parsedate_to_datetime(header_val).timestamp()
            return max(0.0, retry_at - time.time())
        except (TypeError, ValueError):
            return None

    def _backoff(self, attempt: int) -> float:
        policy = self._retry
        exponential = min(
            policy.base_delay * policy.backoff_factor ** (attempt - 1), policy.max_delay
        )
        return exponential + random.uniform(0, policy.base_delay)

    def _merge_headers(self, extra: Mapping[str, str] | None) -> Dict[str, str]:
        merged: Dict[str, str] = {**self._default_headers}
        if extra:
            merged.update(extra)
        return merged

    async def _request(self, method: str, url: str, **kwargs) -> aiohttp.ClientResponse:
        """Perform a request with retries; returns *aiohttp.ClientResponse*."""
        session = await self._ensure_session()

        kwargs["headers"] = self._merge_headers(kwargs.pop("headers", None))
        kwargs.setdefault("max_redirects", self._max_redirects)
        retry_for_status = tuple(self._retry.retry_on_status)
        attempts = self._retry.max_retries + 1

        for attempt in range(1, attempts + 1):
            try:
                resp = await session.request(method, url, **kwargs)
                if resp.status not in retry_for_status:
                    resp.raise_for_status()
                    return resp

                resp.release()
                raise aiohttp.ClientResponseError(
                    resp.request_info,
                    resp.history,
                    status=resp.status,
                    message=f"retryable status {resp.status}",
                    headers=resp.headers,
                )
            except (aiohttp.ClientConnectionError, aiohttp.ClientResponseError, asyncio.TimeoutError) as e:
                retryable = not isinstance(e, aiohttp.ClientResponseError) or e.status in retry_for_status
                # final attempt or non-retryable status - re-raise
                if attempt == attempts or not retryable:
                    logger.error("HTTP %s %s failed after %d attempt(s): %s", method, url, attempt, e)
                    raise

                retry_after_hdr = (
                    e.headers.get("Retry-After")
                    if isinstance(e, aiohttp.ClientResponseError) and e.headers
                    else None
                )
                retry_after_s = self._parse_retry_after(retry_after_hdr)
                sleep_seconds = retry_after_s if retry_after_s is not None else self._backoff(attempt)

                logger.warning(
                    "HTTP %s %s failed (attempt %d/%d - will retry in %.1fs): %s",
                    method,
                    url,
                    attempt,
                    attempts,
                    sleep_seconds,
                    str(e).splitlines()[0] if str(e) else type(e).__name__,
                )
                await asyncio.sleep(sleep_seconds)

        # Should never hit here
        raise RuntimeError("Unreachable retry loop")

    # ---------------------------------------------- #
    # Public helpers
    async def get_text(self, url: str, **kwargs) -> str:
        async with await self._request("GET", url, **kwargs) as resp:
            return await resp.text()
