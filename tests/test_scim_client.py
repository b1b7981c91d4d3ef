from __future__ import annotations

import base64

import httpx
import pytest

from ias_connector.infra.http.scim_client import ApiError, ScimApiClient


def make_client(transport: httpx.AsyncBaseTransport, *, retries: int = 0) -> ScimApiClient:
    return ScimApiClient(
        baseUrl="https://ias.local/service/scim/",
        username="client",
        password="secret",
        retries=retries,
        retryBackoffSeconds=0,
        transport=transport,
    )


@pytest.mark.asyncio
async def test_get_json_sends_scim_accept_and_basic_auth():
    def responder(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/service/scim/Users"
        assert request.url.params["count"] == "1"
        assert request.headers["accept"] == "application/scim+json"
        expected = base64.b64encode(b"client:secret").decode("ascii")
        assert request.headers["authorization"] == f"Basic {expected}"
        return httpx.Response(200, json={"totalResults": 7})

    client = make_client(httpx.MockTransport(responder))

    data = await client.getJson("/Users", {"count": 1})

    assert data == {"totalResults": 7}
    assert client.baseUrl == "https://ias.local/service/scim"


@pytest.mark.asyncio
async def test_http_error_maps_to_api_error_with_snippet():
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="x" * 500)

    client = make_client(httpx.MockTransport(responder))

    with pytest.raises(ApiError) as exc:
        await client.getJson("/Users")

    assert exc.value.code == "HTTP_404"
    assert exc.value.status_code == 404
    assert len(exc.value.body_snippet) == 200
    assert exc.value.to_dict()["category"] == "api"


@pytest.mark.asyncio
async def test_no_retry_by_default():
    calls = {"count": 0}

    def responder(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(500, text="fail")

    client = make_client(httpx.MockTransport(responder))

    with pytest.raises(ApiError) as exc:
        await client.getJson("/Users")

    assert calls["count"] == 1
    assert exc.value.retryable is True
    assert client.getRetryAttempts() == 0


@pytest.mark.asyncio
async def test_retries_on_500_when_enabled():
    calls = {"count": 0}

    def responder(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            return httpx.Response(500, text="fail")
        return httpx.Response(200, json={"ok": True})

    client = make_client(httpx.MockTransport(responder), retries=1)

    assert await client.getJson("/Users") == {"ok": True}
    assert client.getRetryAttempts() == 1

    client.resetRetryAttempts()
    assert client.getRetryAttempts() == 0


@pytest.mark.asyncio
async def test_network_error_raises_api_error():
    def responder(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom")

    client = make_client(httpx.MockTransport(responder))

    with pytest.raises(ApiError) as exc:
        await client.getJson("/Users")

    assert exc.value.code == "NETWORK_ERROR"
    assert exc.value.status_code is None


@pytest.mark.asyncio
async def test_invalid_json_raises_api_error():
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="not-json")

    client = make_client(httpx.MockTransport(responder))

    with pytest.raises(ApiError) as exc:
        await client.getJson("/Users")

    assert exc.value.code == "INVALID_JSON"
    await client.aclose()
