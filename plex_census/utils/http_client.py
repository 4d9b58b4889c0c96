"""HTTP client with timeouts and structured failure logging."""
import httpx
from typing import Optional, Dict, Any
import structlog

logger = structlog.get_logger(__name__)


class HTTPClient:
    """Thin wrapper over httpx.Client: one attempt per request, failures logged."""

    def __init__(
        self,
        default_timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.default_timeout = default_timeout
        self._client = httpx.Client(
            timeout=default_timeout,
            transport=transport,
            follow_redirects=True,
        )

    def get_sync(
        self,
        url: str,
        service_name: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> httpx.Response:
        """GET request (synchronous), raises httpx.HTTPError on failure."""
        timeout = timeout or self.default_timeout
        try:
            response = self._client.get(url, headers=headers, params=params, timeout=timeout)
            response.raise_for_status()
            return response
        except httpx.HTTPError as e:
            logger.error(
                "http_request_failed",
                service=service_name,
                url=url,
                error=str(e),
            )
            raise

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HTTPClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
