"""Shared HTTP plumbing for platform source adapters.

Each adapter turns one platform's library API into a list of RawPlatformGame.
This base class owns the request path: injected httpx client, per-call
timeout, status-to-UpstreamError mapping, and tenacity retries for
retryable failures (429, 5xx, timeouts).
"""
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from gamelib.core.exceptions import UpstreamError
from gamelib.core.logging import get_logger
from gamelib.core.metrics import upstream_requests_failure_total
from gamelib.models.enums import Platform
from gamelib.services.sync.types import RawPlatformGame

logger = get_logger(__name__)

USER_AGENT = "GameLib/1.0"


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, UpstreamError) and exc.retryable


class BaseSourceAdapter(ABC):
    """
    Base class for platform library adapters.

    Attributes:
        platform: Platform this adapter reads
        source: Short upstream name used in errors and metrics
        max_attempts: Attempts per request, including the first
    """

    platform: Platform
    source: str = "upstream"
    max_attempts: int = 3

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        retry_wait=None,
    ):
        """
        Args:
            http_client: Shared client; one is created lazily if omitted
            timeout: Default per-request timeout in seconds
            sleep: Pause used between pages (injectable for tests)
            retry_wait: tenacity wait strategy between retry attempts
        """
        self._client = http_client
        self._owns_client = http_client is None
        self.timeout = timeout
        self.sleep = sleep
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=8)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        """Close the HTTP client if this adapter created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @abstractmethod
    async def fetch_library(self, credential: Any) -> List[RawPlatformGame]:
        """
        Fetch the user's full library from the platform.

        Returns:
            One record per game; an empty list means the library is empty

        Raises:
            UpstreamError: if the first page of the library cannot be read
        """

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """GET url and decode JSON, retrying retryable failures."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(f"{self.source}: retrying {url} (attempt {attempt.retry_state.attempt_number})")
                return await self._get_json_once(url, params, headers, timeout)

    async def _get_json_once(
        self,
        url: str,
        params: Optional[Dict[str, Any]],
        headers: Optional[Dict[str, str]],
        timeout: Optional[float],
    ) -> Any:
        request_headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        request_headers.update(headers or {})

        try:
            response = await self._get_client().get(
                url,
                params=params,
                headers=request_headers,
                timeout=timeout or self.timeout,
            )
        except httpx.TimeoutException as e:
            upstream_requests_failure_total.labels(source=self.source, error_type="timeout").inc()
            raise UpstreamError(f"{self.source} request timed out", source=self.source) from e
        except httpx.RequestError as e:
            upstream_requests_failure_total.labels(source=self.source, error_type="transport").inc()
            raise UpstreamError(f"{self.source} request failed: {e}", source=self.source) from e

        if response.status_code != 200:
            upstream_requests_failure_total.labels(
                source=self.source, error_type=str(response.status_code)
            ).inc()
            raise UpstreamError(
                f"{self.source} returned HTTP {response.status_code}",
                status=response.status_code,
                source=self.source,
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"{self.source} returned invalid JSON",
                status=response.status_code,
                retryable=False,
                source=self.source,
            ) from e
