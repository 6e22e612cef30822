"""
Base HTTP client with unified retry logic and error handling.

Implements bounded concurrency, exponential backoff with jitter and
standardized error classification on top of httpx.AsyncClient.
"""
import asyncio
import logging
import random
from typing import Any, Dict, Optional

import httpx

from indiebookshop.core.api_errors import (
    APIError,
    RetryableError,
    RateLimitError,
    FatalError,
    ConfigurationError,
    ValidationError,
    classify_http_error,
)

logger = logging.getLogger(__name__)


class BaseAPIClient:
    """
    Base class for JSON API clients.

    Provides unified:
    - HTTP request handling with retry logic
    - Exponential backoff with jitter
    - Bounded concurrency via semaphore
    - Standardized error classification
    - Connection pooling

    Subclasses should:
    - Set SOURCE_NAME
    - Implement API-specific methods that call get()
    - Override _check_api_error() for API-specific error payloads
    """

    SOURCE_NAME: str = "unknown"

    DEFAULT_MAX_CONCURRENCY: int = 4
    DEFAULT_TIMEOUT: float = 15.0
    DEFAULT_CONNECT_TIMEOUT: float = 5.0
    DEFAULT_MAX_RETRIES: int = 3
    DEFAULT_BACKOFF_FACTOR: float = 2.0
    DEFAULT_BASE_DELAY: float = 0.5
    DEFAULT_MAX_BACKOFF: float = 30.0
    DEFAULT_JITTER_FACTOR: float = 0.25

    def __init__(
        self,
        base_url: str,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        base_delay: float = DEFAULT_BASE_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the API client.

        Args:
            base_url: Root URL that request paths are joined to
            max_concurrency: Maximum concurrent requests (semaphore size)
            max_retries: Maximum attempts for a request (at least one is made)
            backoff_factor: Exponential backoff multiplier
            base_delay: First backoff delay in seconds
            timeout: Request timeout in seconds
            connect_timeout: Connection timeout in seconds
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        if not base_url:
            raise ConfigurationError(f"{self.SOURCE_NAME} client needs a base URL (API_BASE_URL)")
        self.base_url = base_url.rstrip("/")
        self.max_concurrency = max_concurrency
        self.max_retries = max(1, max_retries)
        self.backoff_factor = backoff_factor
        self.base_delay = base_delay
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self._transport = transport

        self.semaphore = asyncio.Semaphore(max_concurrency)
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            f"Initialized {self.SOURCE_NAME} client: base_url={self.base_url}, "
            f"max_concurrency={max_concurrency}, max_retries={self.max_retries}"
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client with connection pooling."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
                follow_redirects=True,
                transport=self._transport,
                limits=httpx.Limits(
                    max_connections=self.max_concurrency * 2,
                    max_keepalive_connections=self.max_concurrency
                )
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.debug(f"{self.SOURCE_NAME} client closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _backoff_delay(self, attempt: int) -> float:
        """Exponential delay with ±25% jitter for a 0-indexed attempt."""
        delay = min(
            self.base_delay * (self.backoff_factor ** attempt),
            self.DEFAULT_MAX_BACKOFF
        )
        jitter = delay * self.DEFAULT_JITTER_FACTOR * (2 * random.random() - 1)
        return max(0.0, delay + jitter)

    async def _backoff(self, attempt: int) -> None:
        delay = self._backoff_delay(attempt)
        logger.debug(f"Backing off for {delay:.2f}s (attempt {attempt + 1})")
        await asyncio.sleep(delay)

    def _check_api_error(self, data: Any, resource_id: str) -> Optional[APIError]:
        """
        Check a decoded payload for an error envelope.

        The read API reports failures as {"detail": ...} or {"message": ...}
        with a non-2xx status, so a 2xx body is only rejected when it carries
        an explicit "error" key.
        """
        if isinstance(data, dict) and "error" in data:
            error_msg = data.get("error")
            if isinstance(error_msg, dict):
                error_msg = error_msg.get("message", str(error_msg))
            return FatalError(f"{resource_id}: {error_msg}")
        return None

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": f"IndieBookshop/{self.SOURCE_NAME}-client"
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        resource_id: str = "unknown",
    ) -> Any:
        """
        Make HTTP request with retry logic.

        Args:
            method: HTTP method
            path: Path relative to base_url, or an absolute URL
            params: Query parameters
            resource_id: Identifier for logging

        Returns:
            Decoded JSON response

        Raises:
            APIError: On unrecoverable errors
        """
        if path.startswith("http"):
            url = path
        else:
            url = f"{self.base_url}/{path.lstrip('/')}"

        params = {k: v for k, v in (params or {}).items() if v is not None}
        headers = self._build_headers()

        async with self.semaphore:
            client = await self._get_client()
            last_error: Optional[APIError] = None

            for attempt in range(self.max_retries):
                has_next = attempt < self.max_retries - 1
                try:
                    logger.debug(
                        f"[{self.SOURCE_NAME}] {method} {resource_id} "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    response = await client.request(method, url, params=params, headers=headers)
                    response.raise_for_status()
                    data = response.json()

                    api_error = self._check_api_error(data, resource_id)
                    if api_error:
                        raise api_error

                    logger.debug(f"[{self.SOURCE_NAME}] Successfully fetched {resource_id}")
                    return data

                except httpx.HTTPStatusError as e:
                    error = classify_http_error(
                        e.response.status_code,
                        e.response.text[:500],
                        headers=e.response.headers,
                        resource=resource_id,
                    )
                    if not error.retryable or not has_next:
                        raise error

                    if isinstance(error, RateLimitError):
                        wait_time = min(error.retry_after, self.DEFAULT_MAX_BACKOFF)
                        logger.warning(f"[{self.SOURCE_NAME}] Rate limited. Waiting {wait_time}s")
                        await asyncio.sleep(wait_time)
                    else:
                        logger.warning(f"[{self.SOURCE_NAME}] Retryable HTTP error: {error}")
                        await self._backoff(attempt)
                    last_error = error

                except httpx.RequestError as e:
                    # Network errors and timeouts are retryable
                    error = RetryableError(f"Request for {resource_id} failed: {e!r}")
                    if not has_next:
                        raise error
                    logger.warning(
                        f"[{self.SOURCE_NAME}] Request error (attempt {attempt + 1}): {e!r}"
                    )
                    await self._backoff(attempt)
                    last_error = error

                except ValueError as e:
                    # Body was not JSON
                    raise ValidationError(f"Invalid JSON response for {resource_id}: {e}")

            raise last_error or RetryableError(
                f"Failed to fetch {resource_id} after {self.max_retries} attempts"
            )

    async def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        resource_id: str = "unknown"
    ) -> Any:
        """
        Make GET request.

        Args:
            path: Path relative to base_url, or an absolute URL
            params: Query parameters
            resource_id: Identifier for logging

        Returns:
            Decoded JSON response
        """
        return await self._request("GET", path, params=params, resource_id=resource_id)
