"""Outbound HTTP client for external user APIs.

Thin wrapper over httpx.AsyncClient that adds API key headers and turns
responses into ApiResponse values. Transport failures raise ApiRequestError;
non-2xx responses do not raise, callers check ApiResponse.success.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class ApiRequestError(Exception):
    """Request could not be completed (timeout, connection failure)."""
    pass


@dataclass
class ApiResponse:
    status_code: int
    data: Any = None

    @property
    def success(self) -> bool:
        return 200 <= self.status_code < 300

    def error_message(self, default: str) -> str:
        if isinstance(self.data, dict):
            return self.data.get("message") or self.data.get("error") or default
        return default


class ApiClient:
    """API client for an external user system."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Initialize API client

        Args:
            base_url: Root URL of the external API
            api_key: Sent as Bearer token and X-API-Key
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
            headers["X-API-Key"] = api_key
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def _path(endpoint: str) -> str:
        return endpoint if endpoint.startswith("/") else f"/{endpoint}"

    async def request(
        self,
        method: str,
        endpoint: str,
        json: Any = None,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ApiResponse:
        path = self._path(endpoint)
        try:
            response = await self._client.request(
                method,
                path,
                json=json,
                headers=headers,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TimeoutException as e:
            raise ApiRequestError(f"Request timeout after {timeout or self.timeout}s: {method} {path}") from e
        except httpx.HTTPError as e:
            raise ApiRequestError(f"Request failed: {method} {path}: {e}") from e

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                data = response.json()
            except ValueError:
                data = response.text
        else:
            data = response.text

        if not 200 <= response.status_code < 300:
            logger.warning(f"{method} {self.base_url}{path} returned {response.status_code}")
        return ApiResponse(status_code=response.status_code, data=data)

    async def get(self, endpoint: str, **kwargs) -> ApiResponse:
        return await self.request("GET", endpoint, **kwargs)

    async def post(self, endpoint: str, json: Any = None, **kwargs) -> ApiResponse:
        return await self.request("POST", endpoint, json=json, **kwargs)

    async def close(self) -> None:
        await self._client.aclose()
