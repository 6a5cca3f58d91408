#!/usr/bin/env python3
"""Tests for HttpClient retry behaviour against a fake aiohttp session."""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from adaptive_crawler.config import RetryPolicy
from adaptive_crawler.infra.http import HttpClient


def response(status, body="", headers=None):
    resp = MagicMock()
    resp.status = status
    resp.headers = headers or {}
    resp.history = ()
    resp.text = AsyncMock(return_value=body)
    resp.__aenter__.return_value = resp
    if status >= 400:
        resp.raise_for_status.side_effect = aiohttp.ClientResponseError(
            MagicMock(), (), status=status, message="error"
        )
    return resp


def client_with(*responses, max_retries=3):
    session = MagicMock()
    session.request = AsyncMock(side_effect=list(responses))
    policy = RetryPolicy(max_retries=max_retries, base_delay=0.0)
    return HttpClient(session=session, retry=policy), session


class TestHttpClient:

    @pytest.mark.asyncio
    async def test_retries_retryable_status(self):
        client, session = client_with(response(503), response(502), response(200, "<html>ok</html>"))
        assert await client.get_text("https://example.com") == "<html>ok</html>"
        assert session.request.await_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        client, session = client_with(*[response(503) for _ in range(3)], max_retries=2)
        with pytest.raises(aiohttp.ClientResponseError) as exc:
            await client.get_text("https://example.com")
        assert exc.value.status == 503
        assert session.request.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_status_raises_immediately(self):
        client, session = client_with(response(404), response(200, "never"))
        with pytest.raises(aiohttp.ClientResponseError):
            await client.get_text("https://example.com/missing")
        assert session.request.await_count == 1

    @pytest.mark.asyncio
    async def test_connection_errors_are_retried(self):
        client, session = client_with(
            aiohttp.ClientConnectionError("reset"), response(200, "recovered")
        )
        assert await client.get_text("https://example.com") == "recovered"

    def test_retry_after_parsing(self):
        assert HttpClient._parse_retry_after("5") == 5.0
        assert HttpClient._parse_retry_after(None) is None
        assert HttpClient._parse_retry_after("not a date") is None

    def test_backoff_grows_and_is_capped(self):
        client = HttpClient(retry=RetryPolicy(base_delay=1.0, backoff_factor=2.0, max_delay=5.0))
        assert 1.0 <= client._backoff(1) <= 2.0
        assert 4.0 <= client._backoff(3) <= 5.0
        assert 5.0 <= client._backoff(10) <= 6.0
