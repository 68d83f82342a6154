"""
Shared async HTTP plumbing for the session-store clients.

Every call goes through ``request`` which retries timeouts, connection
errors and 5xx responses with exponential backoff, and never raises for
network problems: the outcome is always a ServiceResult.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from loguru import logger

from src.services.results import ServiceResult


class BaseApiClient:
    """Base class for JSON APIs that answer ``{"success": bool, ...}``."""

    service_name = "API"

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        timeout_ms: int = 10000,
        retry_attempts: int = 3,
    ):
        """
        Initialize the client.

        Args:
            api_url: Base URL of the session store
            api_key: Optional bearer token
            timeout_ms: Request timeout in milliseconds
            retry_attempts: Number of attempts per request
        """
        self.api_url = api_url.rstrip("/")
        self.timeout_seconds = timeout_ms / 1000.0
        self.retry_attempts = max(1, retry_attempts)
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_seconds),
            headers=headers,
            follow_redirects=True,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def url(self, path: str) -> str:
        return f"{self.api_url}{path}"

    async def request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        failure_message: str = "Request failed",
    ) -> ServiceResult:
        """
        Send a JSON request with retry.

        Returns:
            ServiceResult whose data is the decoded response body
        """
        last_error: Exception | None = None
        url = self.url(path)
        sender = getattr(self.client, method.lower())
        kwargs: dict[str, Any] = {} if payload is None else {"json": payload}

        for attempt in range(self.retry_attempts):
            try:
                response = await sender(url, **kwargs)
                response.raise_for_status()
                data = response.json()
                if not isinstance(data, dict) or not data.get("success", False):
                    error = data.get("error") if isinstance(data, dict) else None
                    return ServiceResult.fail(error or failure_message)
                return ServiceResult.ok(data)

            except httpx.TimeoutException as e:
                last_error = e
                wait_time = 2 ** attempt
                logger.warning(
                    f"{self.service_name} timeout on attempt {attempt + 1}/{self.retry_attempts}. "
                    f"Retrying in {wait_time}s..."
                )
                if attempt < self.retry_attempts - 1:
                    await asyncio.sleep(wait_time)

            except httpx.HTTPStatusError as e:
                last_error = e
                if e.response.status_code >= 500:
                    wait_time = 2 ** attempt
                    logger.warning(
                        f"{self.service_name} server error {e.response.status_code} on attempt "
                        f"{attempt + 1}/{self.retry_attempts}. Retrying in {wait_time}s..."
                    )
                    if attempt < self.retry_attempts - 1:
                        await asyncio.sleep(wait_time)
                else:
                    # 4xx is final
                    logger.error(f"{self.service_name} client error: {e.response.status_code}")
                    return ServiceResult.fail(_error_from_response(e.response) or failure_message)

            except httpx.RequestError as e:
                last_error = e
                wait_time = 2 ** attempt
                logger.warning(
                    f"{self.service_name} request error on attempt {attempt + 1}/{self.retry_attempts}: {e}. "
                    f"Retrying in {wait_time}s..."
                )
                if attempt < self.retry_attempts - 1:
                    await asyncio.sleep(wait_time)

            except ValueError as e:
                logger.error(f"{self.service_name} returned invalid JSON for {path}: {e}")
                return ServiceResult.fail(f"{failure_message}: invalid response")

        logger.error(f"{self.service_name} {method} {path} failed after {self.retry_attempts} attempts: {last_error}")
        return ServiceResult.fail(f"Network error: {failure_message}")

    async def health_check(self) -> bool:
        """
        Check if the API is reachable.

        Returns:
            True if the health endpoint answers 200
        """
        try:
            response = await self.client.get(self.url("/health"))
            return response.status_code == 200
        except httpx.HTTPError:
            return False


def _error_from_response(response: httpx.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        return None
    return data.get("error") if isinstance(data, dict) else None
