# tests/test_http_client.py
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import asyncio
import json
from urllib.parse import parse_qs

import aiohttp
import pytest
from aioresponses import aioresponses, CallbackResult

from infra.http_client import HttpClient, HttpError, _mask

BASE = "https://merchant-api.ifood.com.br"


@pytest.mark.asyncio
async def test_get_returns_decoded_json(http_client: HttpClient):
    with aioresponses() as m:
        m.get(f"{BASE}/order/v1.0/orders/o1", payload={"id": "o1", "totalPrice": 42.5})
        resp = await http_client.get("/order/v1.0/orders/o1")
        assert resp == {"id": "o1", "totalPrice": 42.5}


@pytest.mark.asyncio
async def test_empty_body_returns_none(http_client: HttpClient):
    with aioresponses() as m:
        m.get(f"{BASE}/order/v1.0/events:polling", status=204)
        assert await http_client.get("/order/v1.0/events:polling") is None


@pytest.mark.asyncio
async def test_form_post_sends_urlencoded_body(http_client: HttpClient):
    seen = {}

    def _assert_form(url, **kwargs):
        seen["headers"] = kwargs["headers"]
        seen["data"] = kwargs["data"]
        return CallbackResult(status=200, payload={"accessToken": "abc", "expiresIn": 3600})

    with aioresponses() as m:
        m.post(f"{BASE}/authentication/v1.0/oauth/token", callback=_assert_form)
        resp = await http_client.post_form(
            "/authentication/v1.0/oauth/token",
            {"grant_type": "client_credentials", "client_id": "id", "client_secret": "s3cret"},
        )

    assert resp["accessToken"] == "abc"
    assert seen["headers"]["Content-Type"] == "application/x-www-form-urlencoded"
    form = parse_qs(seen["data"])
    assert form["grant_type"] == ["client_credentials"]
    assert form["client_secret"] == ["s3cret"]


@pytest.mark.asyncio
async def test_json_post_with_headers(http_client: HttpClient):
    def _assert_post(url, **kwargs):
        assert kwargs["headers"]["Authorization"] == "Bearer t"
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert json.loads(kwargs["data"]) == {"cancellationCode": "501"}
        return CallbackResult(status=202, body="")

    with aioresponses() as m:
        m.post(f"{BASE}/order/v1.0/orders/o1/requestCancellation", callback=_assert_post)
        resp = await http_client.post(
            "/order/v1.0/orders/o1/requestCancellation",
            json_body={"cancellationCode": "501"},
            headers={"Authorization": "Bearer t"},
        )
        assert resp is None


@pytest.mark.asyncio
async def test_retry_on_429_and_5xx(http_client: HttpClient, monkeypatch):
    """
    First two answers are 429/500, the third succeeds.
    Backoff sleep is replaced with a no-op to keep the test fast.
    """
    monkeypatch.setattr(http_client, "_sleep_backoff", lambda attempt: asyncio.sleep(0))

    calls = {"n": 0}
    def _flaky(url, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            return CallbackResult(status=429, payload={"message": "rate limit"})
        if calls["n"] == 2:
            return CallbackResult(status=500, payload={"message": "server error"})
        return CallbackResult(status=200, payload=[{"id": "e1"}])

    with aioresponses() as m:
        m.get(f"{BASE}/order/v1.0/events:polling", callback=_flaky, repeat=True)
        resp = await http_client.get("/order/v1.0/events:polling")
        assert resp == [{"id": "e1"}]
        assert calls["n"] == 3


@pytest.mark.asyncio
async def test_client_error_is_not_retried(http_client: HttpClient):
    calls = {"n": 0}
    def _not_found(url, **kwargs):
        calls["n"] += 1
        return CallbackResult(status=404, payload={"code": "NotFound", "message": "order not found"})

    with aioresponses() as m:
        m.get(f"{BASE}/order/v1.0/orders/missing", callback=_not_found, repeat=True)
        with pytest.raises(HttpError) as ei:
            await http_client.get("/order/v1.0/orders/missing")

    assert ei.value.status == 404
    assert ei.value.payload["code"] == "NotFound"
    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_http_error_status_raises_after_retries(http_client: HttpClient, monkeypatch):
    monkeypatch.setattr(http_client, "_sleep_backoff", lambda attempt: asyncio.sleep(0))
    with aioresponses() as m:
        m.get(f"{BASE}/order/v1.0/events:polling", status=503, body="svc unavailable", repeat=True)
        with pytest.raises(HttpError) as ei:
            await http_client.get("/order/v1.0/events:polling")
        assert ei.value.status == 503


@pytest.mark.asyncio
async def test_network_error_maps_to_599(http_client: HttpClient, monkeypatch):
    monkeypatch.setattr(http_client, "_sleep_backoff", lambda attempt: asyncio.sleep(0))
    with aioresponses() as m:
        m.get(f"{BASE}/order/v1.0/events:polling",
              exception=aiohttp.ClientConnectionError("connection reset"), repeat=True)
        with pytest.raises(HttpError) as ei:
            await http_client.get("/order/v1.0/events:polling")
        assert ei.value.status == 599


@pytest.mark.asyncio
async def test_form_post_is_never_retried(http_client: HttpClient):
    calls = {"n": 0}
    def _down(url, **kwargs):
        calls["n"] += 1
        return CallbackResult(status=502, body="bad gateway")

    with aioresponses() as m:
        m.post(f"{BASE}/authentication/v1.0/oauth/token", callback=_down, repeat=True)
        with pytest.raises(HttpError):
            await http_client.post_form("/authentication/v1.0/oauth/token", {"grant_type": "client_credentials"})
    assert calls["n"] == 1


def test_base_url_from_cfg():
    cfg = {"merchant": {"base_url": "https://sandbox.example.com/"}, "timeouts": {"rest_ms": 1500}}

    async def _build():
        async with HttpClient(cfg) as c:
            return c.base_url, c.timeout_ms

    base, timeout_ms = asyncio.run(_build())
    assert base == "https://sandbox.example.com"
    assert timeout_ms == 1500


def test_mask():
    assert _mask("") == ""
    assert _mask("short") == "*****"
    assert _mask("abcd1234efgh") == "abcd****efgh"
