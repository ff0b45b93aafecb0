"""Unit tests for CrdDownloadClient."""

from __future__ import annotations

import httpx
import pytest

from crossplane_explorer.integrations.kubernetes.crd_client import CrdDownloadClient
from crossplane_explorer.integrations.kubernetes.exceptions import CrdDownloadError

CRD_URL = "https://raw.example.org/org/provider-upjet-aws/v1.14.0/package/crds/a_b.yaml"


@pytest.mark.unit
class TestCrdDownloadClient:
    """Tests for downloading CRD files."""

    @pytest.mark.asyncio
    async def test_fetch_returns_body(self) -> None:
        """A 200 response yields the body text."""
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return httpx.Response(200, text="kind: CustomResourceDefinition\n")

        async with CrdDownloadClient(transport=httpx.MockTransport(handler)) as client:
            body = await client.fetch(CRD_URL)

        assert body == "kind: CustomResourceDefinition\n"
        assert requested == [CRD_URL]

    @pytest.mark.asyncio
    async def test_not_found_raises_with_status(self) -> None:
        """Non-2xx responses raise CrdDownloadError carrying the status code."""
        transport = httpx.MockTransport(lambda request: httpx.Response(404, text="404: Not Found"))

        async with CrdDownloadClient(transport=transport) as client:
            with pytest.raises(CrdDownloadError) as exc_info:
                await client.fetch(CRD_URL)

        assert exc_info.value.status_code == 404
        assert exc_info.value.url == CRD_URL
        assert exc_info.value.message == "HTTP 404"

    @pytest.mark.asyncio
    async def test_connection_failure_raises(self) -> None:
        """Connection errors surface as CrdDownloadError once retries run out."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("connection refused", request=request)

        async with CrdDownloadClient(
            retries=1, transport=httpx.MockTransport(handler)
        ) as client:
            with pytest.raises(CrdDownloadError) as exc_info:
                await client.fetch(CRD_URL)

        assert calls == 1
        assert exc_info.value.status_code is None
        assert "connection refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_close_releases_client(self) -> None:
        """close drops the underlying httpx client so a new one is built on reuse."""
        client = CrdDownloadClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        first = client.client

        await client.close()

        assert first.is_closed
        assert client.client is not first
        await client.close()
