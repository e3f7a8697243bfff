from __future__ import annotations

from typing import Dict, Any, AsyncIterator, Optional, TypeVar, Generic
from datetime import datetime, timezone
import logging
from contextlib import asynccontextmanager

import httpx
from pydantic import BaseModel, Field

ConfigType = TypeVar('ConfigType', bound='IntegrationConfig')


# Base configuration
class IntegrationConfig(BaseModel):
    """Base configuration for all integrations."""

    model_config = {"extra": "forbid"}

    name: str
    enabled: bool = True
    timeout: float = Field(default=30.0, gt=0, le=300)


class IntegrationMetrics(BaseModel):
    """Integration performance metrics."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_response_time: float = 0.0
    last_error: Optional[str] = None
    last_success: Optional[datetime] = None


# Custom exceptions
class IntegrationError(Exception):
    """Base exception for integration errors."""

    def __init__(
        self,
        message: str,
        integration_name: str,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message)
        self.integration_name = integration_name
        self.status_code = status_code
        self.response_data = response_data
        self.timestamp = datetime.now(timezone.utc)


class AuthenticationError(IntegrationError):
    """Authentication failed."""
    pass


class RateLimitError(IntegrationError):
    """Rate limit exceeded."""
    pass


class ValidationError(IntegrationError):
    """Request rejected by the service."""
    pass


class NetworkError(IntegrationError):
    """Network/connectivity error."""
    pass


class ResponseFormatError(IntegrationError):
    """Service answered 2xx but not in the expected shape."""
    pass


class BaseIntegration(Generic[ConfigType]):
    """
    Base class for remote HTTP services.

    Provides common functionality:
    - HTTP client management
    - Status-code classification into IntegrationError subclasses
    - Metrics tracking

    Requests are made exactly once; callers own any fallback.
    """

    def __init__(
        self,
        config: ConfigType,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        self.config = config
        self.metrics = IntegrationMetrics()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @asynccontextmanager
    async def _get_client(self):
        """Get HTTP client with proper lifecycle management."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout,
                headers=self._get_default_headers(),
                transport=self._transport
            )

        yield self._client

    def _get_default_headers(self) -> Dict[str, str]:
        """Get default headers for requests."""
        return {
            "User-Agent": f"Feature-Request-Tracker/{self.config.name}",
            "Accept": "application/json",
            "Content-Type": "application/json"
        }

    async def _make_request(
        self,
        method: str,
        url: str,
        **kwargs
    ) -> httpx.Response:
        """
        Make a single HTTP request and classify failures.

        Raises:
            Various IntegrationError subclasses
        """
        self._ensure_enabled()
        start_time = datetime.now(timezone.utc)

        try:
            async with self._get_client() as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise self._network_error(e) from e

        if response.is_success:
            self._update_metrics_success(start_time)
            return response

        self._update_metrics_failure(f"HTTP {response.status_code}")
        raise self._error_for_status(response.status_code, self._safe_json(response))

    @asynccontextmanager
    async def _stream_request(
        self,
        method: str,
        url: str,
        **kwargs
    ) -> AsyncIterator[httpx.Response]:
        """
        Open a streamed response; the body is left for the caller to read.

        Redirect responses are handed back as-is. Other non-2xx statuses are
        classified like ``_make_request`` without reading the body.
        """
        self._ensure_enabled()
        start_time = datetime.now(timezone.utc)

        try:
            async with self._get_client() as client:
                async with client.stream(method, url, **kwargs) as response:
                    if not (response.is_success or response.is_redirect):
                        self._update_metrics_failure(f"HTTP {response.status_code}")
                        raise self._error_for_status(response.status_code)

                    self._update_metrics_success(start_time)
                    yield response
        except httpx.HTTPError as e:
            raise self._network_error(e) from e

    def _ensure_enabled(self) -> None:
        if not self.config.enabled:
            raise IntegrationError(f"{self.config.name} integration is disabled", self.config.name)

    def _network_error(self, error: httpx.HTTPError) -> NetworkError:
        if isinstance(error, httpx.TimeoutException):
            self._update_metrics_failure("timeout")
            return NetworkError(f"Request timeout after {self.config.timeout}s", self.config.name)

        self._update_metrics_failure(str(error))
        return NetworkError(f"Network error: {str(error)}", self.config.name)

    def _error_for_status(
        self,
        status_code: int,
        response_data: Optional[Dict[str, Any]] = None
    ) -> IntegrationError:
        if status_code in (401, 403):
            return AuthenticationError("Authentication failed", self.config.name, status_code, response_data)
        elif status_code == 429:
            return RateLimitError("Rate limit exceeded", self.config.name, status_code, response_data)
        elif 400 <= status_code < 500:
            return ValidationError(f"Client error: {status_code}", self.config.name, status_code, response_data)

        return IntegrationError(f"Server error: {status_code}", self.config.name, status_code, response_data)

    def _safe_json(self, response: httpx.Response) -> Optional[Dict[str, Any]]:
        """Safely parse JSON response."""
        try:
            return response.json()
        except ValueError:
            return None

    def _update_metrics_success(self, start_time: datetime) -> None:
        """Update metrics for successful request."""
        duration = (datetime.now(timezone.utc) - start_time).total_seconds()

        self.metrics.total_requests += 1
        self.metrics.successful_requests += 1
        self.metrics.last_success = datetime.now(timezone.utc)

        # Update rolling average
        if self.metrics.average_response_time == 0:
            self.metrics.average_response_time = duration
        else:
            self.metrics.average_response_time = (
                (self.metrics.average_response_time * 0.9) + (duration * 0.1)
            )

    def _update_metrics_failure(self, error: str) -> None:
        """Update metrics for failed request."""
        self.metrics.total_requests += 1
        self.metrics.failed_requests += 1
        self.metrics.last_error = error

    async def close(self) -> None:
        """Close HTTP client and cleanup resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

        if self.metrics.total_requests:
            self._logger.info(
                f"{self.config.name}: {self.metrics.total_requests} requests, "
                f"{self.metrics.failed_requests} failed, "
                f"avg {self.metrics.average_response_time:.2f}s"
            )


def mask_sensitive_data(data: Dict[str, Any], sensitive_keys: list) -> Dict[str, Any]:
    """Mask sensitive data in dictionary for logging."""
    masked = data.copy()

    for key in sensitive_keys:
        if key in masked:
            if isinstance(masked[key], str) and len(masked[key]) > 4:
                masked[key] = masked[key][:4] + "***"
            else:
                masked[key] = "***"

    return masked


__all__ = [
    "BaseIntegration",
    "IntegrationConfig",
    "IntegrationMetrics",
    "IntegrationError",
    "AuthenticationError",
    "RateLimitError",
    "ValidationError",
    "NetworkError",
    "ResponseFormatError",
    "mask_sensitive_data"
]
