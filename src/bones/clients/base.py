from __future__ import annotations

from typing import Any

import httpx
import structlog
from circuitbreaker import CircuitBreaker
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger()

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class RetryableHTTPError(Exception):
    """HTTP errors that should be retried."""


class PermanentHTTPError(Exception):
    """HTTP errors that should not be retried."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def is_retryable_status(status_code: int) -> bool:
    """Determine if HTTP status code is retryable."""
    return status_code in RETRYABLE_STATUS_CODES


class BaseHTTPClient:
    """JSON-over-HTTP client with bounded retries and a circuit breaker.

    Each instance owns its breaker, named after ``system`` and the base URL.
    """

    system = "http"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max(0, max_retries)
        self._backoff_factor = backoff_factor
        breaker = CircuitBreaker(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            expected_exception=RetryableHTTPError,
            name=f"{self.system}:{self._base_url}",
        )
        self._send_guarded = breaker(self._send)

    def _headers(self) -> dict[str, str]:
        """Override to provide custom headers."""
        return {"Content-Type": "application/json"}

    def _is_retryable(self, response: httpx.Response) -> bool:
        """Override to treat system-specific responses (e.g. rate limits) as transient."""
        return is_retryable_status(response.status_code)

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(RetryableHTTPError),
            stop=stop_after_attempt(self._max_retries + 1),
            wait=wait_exponential(multiplier=self._backoff_factor, max=30),
            reraise=True,
        )

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None,
        json: dict[str, Any] | None,
        headers: dict[str, str],
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.request(
                    method, url, params=params, json=json, headers=headers
                )
        except (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError) as exc:
            logger.warning(
                "http_network_error", system=self.system, method=method, url=url, error=str(exc)
            )
            raise RetryableHTTPError(str(exc)) from exc

        if self._is_retryable(response):
            logger.warning(
                "http_retryable_error",
                system=self.system,
                status=response.status_code,
                method=method,
                url=url,
            )
            raise RetryableHTTPError(f"HTTP {response.status_code}: {response.text}")

        if response.is_error:
            logger.error(
                "http_permanent_error",
                system=self.system,
                status=response.status_code,
                method=method,
                url=url,
            )
            raise PermanentHTTPError(
                f"HTTP {response.status_code} for {method} {url}: {response.text}",
                response.status_code,
            )

        return response.json() if response.content else {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one logical request; transient failures are retried."""
        return await self._retrying()(
            self._send_guarded,
            method,
            f"{self._base_url}{path}",
            params=params,
            json=json,
            headers=self._headers(),
        )

    async def get(self, path: str, *, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self._request("GET", path, params=params)

    async def post(self, path: str, *, json: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self._request("POST", path, json=json)

    async def delete(self, path: str) -> dict[str, Any]:
        return await self._request("DELETE", path)
