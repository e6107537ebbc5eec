"""Base HTTP client for collaborator services."""

from typing import Any, Dict, Optional

import httpx

from knowledge_ingestion.services.retry import RetryPolicy
from knowledge_ingestion.utils.errors import ExternalServiceError
from knowledge_ingestion.utils.logging import get_logger

logger = get_logger("service_client")


class ServiceClient:
    """
    Base HTTP client for collaborator services.

    Handles:
    - Bearer token injection
    - URL building from a base endpoint
    - Mapping non-2xx responses to ExternalServiceError
    - Running every request under the injected RetryPolicy

    The httpx.AsyncClient is owned by the caller and shared across clients.
    """

    service_name = "service"

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient,
        access_key: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Base URL of the service (e.g., "http://localhost:8321")
            http_client: Shared async HTTP client
            access_key: Optional bearer token
            retry_policy: Retry/deadline policy (defaults from settings)
        """
        self.base_url = base_url.rstrip("/")
        self._http = http_client
        self._retry = retry_policy or RetryPolicy.from_settings()
        self._headers: Dict[str, str] = {}
        if access_key:
            self._headers["Authorization"] = f"Bearer {access_key}"

    def _build_url(self, path: str) -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.base_url}{path}"

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = self._build_url(path)
        logger.debug(f"{method} {url}")
        response = await self._http.request(method, url, headers=self._headers, **kwargs)
        if response.status_code >= 400:
            body = response.text[:500]
            raise ExternalServiceError(
                service=self.service_name,
                message=f"{self.service_name} returned {response.status_code} for {method} {path}: {body}",
                upstream_status=response.status_code,
            )
        return response

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request under the retry policy.

        Raises:
            ExternalServiceError: On a non-2xx response after retries
            httpx.TransportError: On connection failures after retries
            asyncio.TimeoutError: When the per-attempt deadline elapses on every attempt
        """
        return await self._retry.call(lambda: self._send(method, path, **kwargs))

    @staticmethod
    def parse_json(response: httpx.Response) -> Dict[str, Any]:
        """Decode a JSON object body; empty bodies decode to {}."""
        if not response.content:
            return {}
        data = response.json()
        return data if isinstance(data, dict) else {}
