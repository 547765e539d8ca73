"""
Tests for RestTableClient using an httpx mock transport.
"""

import json

import httpx
import pytest

from crowdchain.db import RestTableClient, StoreAuthError, StoreError, StoreMutationError, StoreQueryError


BASE_URL = "https://store.example.co"


def _client(handler, **kwargs):
    return RestTableClient(
        base_url=BASE_URL + "/",
        api_key="anon-key",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_select_sends_filters_and_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["headers"] = request.headers
        return httpx.Response(200, json=[{"id": "1"}])

    client = _client(handler)
    await client.set_actor("0x" + "AB" * 20)

    rows = await client.select("campaigns", {"id": "1"})
    await client.close()

    assert rows == [{"id": "1"}]
    assert seen["path"] == "/rest/v1/campaigns"
    assert seen["params"] == {"select": "*", "id": "eq.1"}
    assert seen["headers"]["apikey"] == "anon-key"
    assert seen["headers"]["authorization"] == "Bearer anon-key"
    assert seen["headers"]["x-actor-address"] == "0x" + "ab" * 20


@pytest.mark.asyncio
async def test_insert_asks_for_representation():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["prefer"] = request.headers.get("prefer")
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=[{"id": "new", **seen["body"]}])

    client = _client(handler)
    row = await client.insert("campaigns", {"title": "Roof"})

    assert seen["prefer"] == "return=representation"
    assert row == {"id": "new", "title": "Roof"}


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [150, [{"amount_collected": 150}], {"amount_collected": "150"}])
async def test_record_donation_calls_rpc(payload):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=payload)

    client = _client(handler)
    total = await client.record_donation("7", "0x" + "D0" * 20, 50)

    assert total == 150
    assert seen["path"] == "/rest/v1/rpc/record_donation"
    assert seen["body"] == {"p_campaign_id": "7", "p_donor_address": "0x" + "d0" * 20, "p_amount": 50}


@pytest.mark.asyncio
async def test_record_donation_without_result_fails():
    client = _client(lambda request: httpx.Response(200, json=[]))

    with pytest.raises(StoreMutationError):
        await client.record_donation("7", "0x" + "d0" * 20, 50)


@pytest.mark.asyncio
async def test_unauthorized():
    client = _client(lambda request: httpx.Response(401, json={"message": "JWT expired"}))

    with pytest.raises(StoreAuthError):
        await client.select("campaigns")


@pytest.mark.asyncio
async def test_server_error_on_select():
    client = _client(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(StoreQueryError):
        await client.select("campaigns")


@pytest.mark.asyncio
async def test_health_check_reports_unhealthy():
    client = _client(lambda request: httpx.Response(503, text="down"))

    status = await client.health_check()

    assert status["status"] == "unhealthy"


def test_missing_url(monkeypatch):
    monkeypatch.setattr("crowdchain.db.rest_client.settings.store_url", "")

    with pytest.raises(StoreError):
        RestTableClient(base_url="")


@pytest.mark.asyncio
async def test_non_json_body_on_select():
    client = _client(lambda request: httpx.Response(200, text="<html>gateway</html>"))

    with pytest.raises(StoreQueryError):
        await client.select("campaigns")


@pytest.mark.asyncio
async def test_non_json_body_on_writes():
    client = _client(lambda request: httpx.Response(200, text="<html>gateway</html>"))

    with pytest.raises(StoreMutationError):
        await client.insert("campaigns", {"title": "Roof"})
    with pytest.raises(StoreMutationError):
        await client.record_donation("7", "0x" + "d0" * 20, 50)


@pytest.mark.asyncio
async def test_non_numeric_donation_total():
    client = _client(lambda request: httpx.Response(200, json={"amount_collected": "lots"}))

    with pytest.raises(StoreMutationError):
        await client.record_donation("7", "0x" + "d0" * 20, 50)
