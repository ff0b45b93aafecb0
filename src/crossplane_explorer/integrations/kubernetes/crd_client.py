"""HTTP client for provider CRD files published in package repositories."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from crossplane_explorer.integrations.kubernetes.exceptions import CrdDownloadError

logger = structlog.get_logger()


class CrdDownloadClient:
    """Downloads raw CRD manifests over HTTP.

    Connection failures and timeouts are retried; any other failure,
    including a non-2xx response, raises CrdDownloadError.

    Args:
        timeout: Request timeout in seconds.
        retries: Number of attempts for connection failures.
        transport: Optional httpx transport (tests pass a MockTransport).
    """

    def __init__(
        self,
        timeout: float = 30.0,
        retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self._retries = retries
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._log = logger.bind(entity="crd_download_client")

    def _build_client(self, **kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
            transport=self._transport,
            **kwargs,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = self._build_client()
        return self._client

    async def __aenter__(self) -> CrdDownloadClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._log.debug("crd_download_client_closed")

    async def fetch(self, url: str) -> str:
        """Return the body of ``url`` as text.

        Raises:
            CrdDownloadError: On connection failure or a non-2xx status.
        """

        @retry(
            retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
            stop=stop_after_attempt(self._retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            reraise=True,
        )
        async def _request() -> httpx.Response:
            return await self.client.get(url)

        try:
            response = await _request()
        except httpx.HTTPError as e:
            self._log.warning("crd_download_failed", url=url, error=str(e))
            raise CrdDownloadError(url, f"Failed to download {url}: {e}") from e

        if response.status_code >= 400:
            self._log.debug("crd_download_rejected", url=url, status_code=response.status_code)
            raise CrdDownloadError(
                url, f"HTTP {response.status_code}", status_code=response.status_code
            )
        return response.text
