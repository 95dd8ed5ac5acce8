"""
ResilientFetcher - Async HTTP lookup with bounded retry and failure classification.

One call to `fetch` issues up to `max_retries` GET requests. A failure is
retried after `base_delay * attempt` when its classification is retryable;
otherwise, or once attempts are exhausted, a LookupFailedError carrying the
classification is raised.
"""

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable

import httpx
from loguru import logger

from platebot.services.errors import (
    InvalidResponseError,
    LookupFailedError,
    classify_error,
)

SleepFunc = Callable[[float], Awaitable[Any]]

DEFAULT_HEADERS = {
    "User-Agent": "platebot/1.0",
    "Accept": "application/json",
}


@dataclass
class FetcherStats:
    """Counters for observability."""

    requests: int = 0
    retries: int = 0
    failures: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "requests": self.requests,
            "retries": self.retries,
            "failures": self.failures,
        }


class ResilientFetcher:
    """
    HTTP client for a CKAN-style `datastore_search` endpoint.

    Usage:
        async with ResilientFetcher(base_url=URL, max_retries=3) as fetcher:
            records = await fetcher.search_records(resource_id, "1234567")
    """

    SERVICE_ID = "datastore"

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        max_retries: int = 3,
        base_delay: timedelta = timedelta(seconds=1),
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay
        self._headers = {**DEFAULT_HEADERS, **(headers or {})}
        self._transport = transport
        self._sleep = sleep
        self._stats = FetcherStats()

        # HTTP client (lazy initialization)
        self._http_client: httpx.AsyncClient | None = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=self._headers,
                transport=self._transport,
                follow_redirects=True,
            )
        return self._http_client

    async def fetch(self, params: dict[str, Any]) -> dict[str, Any]:
        """
        GET the endpoint with `params`, retrying transient failures.

        Returns:
            The decoded JSON envelope (with `success: true`)

        Raises:
            LookupFailedError: classified failure after the last attempt
        """
        attempt = 1
        while True:
            try:
                return await self._execute_request(params)
            except Exception as e:
                classification = classify_error(e)

                if attempt < self.max_retries and classification.retryable:
                    delay = self.base_delay * attempt
                    self._stats.retries += 1
                    logger.warning(
                        f"Lookup failed ({classification.code.value}), retrying "
                        f"({attempt}/{self.max_retries}) in {delay.total_seconds()}s"
                    )
                    await self._sleep(delay.total_seconds())
                    attempt += 1
                    continue

                self._stats.failures += 1
                logger.error(
                    f"Lookup failed with {classification.code.value} "
                    f"after {attempt} attempt(s): {e}"
                )
                raise LookupFailedError(
                    classification,
                    attempts=attempt,
                    service_id=self.SERVICE_ID,
                    detail=str(e),
                ) from e

    async def search_records(
        self, resource_id: str, query: str, limit: int = 10
    ) -> list[dict[str, Any]]:
        """Run a datastore search and return `result.records`."""
        payload = await self.fetch({"resource_id": resource_id, "limit": limit, "q": query})
        result = payload.get("result")
        if not isinstance(result, dict):
            return []
        return list(result.get("records") or [])

    async def _execute_request(self, params: dict[str, Any]) -> dict[str, Any]:
        """Execute one HTTP request and validate the envelope."""
        client = await self._get_http_client()
        self._stats.requests += 1

        response = await client.get(self.base_url, params=params)
        response.raise_for_status()

        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidResponseError(
                f"Response is not JSON: {e}", service_id=self.SERVICE_ID
            ) from e

        if not isinstance(payload, dict) or payload.get("success") is not True:
            raise InvalidResponseError(
                "Response missing success indicator", service_id=self.SERVICE_ID
            )

        return payload

    def get_stats(self) -> dict[str, Any]:
        return {
            "base_url": self.base_url,
            "timeout": self.timeout,
            "max_retries": self.max_retries,
            **self._stats.to_dict(),
        }

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("ResilientFetcher closed")

    async def __aenter__(self) -> "ResilientFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
