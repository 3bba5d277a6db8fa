import asyncio

import httpx
import pytest

from canvasslog.clients import store as store_client
from canvasslog.config import Settings
from canvasslog.core.models import CITIES, HOMES
from canvasslog.utils.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DuplicateRecordError,
    NetworkError,
    StoreError,
)


def test_encode_filters_and_order():
    params = store_client.encode_filters(
        [("city_id", "eq", "c1"), ("latitude", "not.is", None), ("id", "in", ["a", "b"])]
    )
    assert params == [("city_id", "eq.c1"), ("latitude", "not.is.null"), ("id", "in.(a,b)")]
    assert store_client.encode_order([("date_visited", False), ("address", True)]) == (
        "date_visited.desc,address.asc"
    )
    assert store_client.encode_order(None) is None


def test_unknown_operator_is_rejected():
    with pytest.raises(ValueError):
        store_client.encode_filters([("a", "between", 1)])


def test_select_sends_headers_and_params(settings, store, client, katy):
    rows = asyncio.run(
        store_client.select(
            CITIES,
            settings,
            columns="id, name",
            filters=[("name", "eq", "Katy")],
            order=[("name", True)],
            limit=5,
            client=client,
        )
    )

    request = store.requests[0]
    assert rows == [katy]
    assert request.url.path == "/rest/v1/cities"
    assert request.url.params["select"] == "id, name"
    assert request.url.params["name"] == "eq.Katy"
    assert request.url.params["order"] == "name.asc"
    assert request.url.params["limit"] == "5"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["authorization"] == "Bearer anon-key"


def test_access_token_overrides_bearer(settings, store, client):
    settings = settings.model_copy(update={"store_access_token": "user-jwt"})
    asyncio.run(store_client.select(CITIES, settings, client=client))
    assert store.requests[0].headers["authorization"] == "Bearer user-jwt"


def test_unique_violation_becomes_duplicate_error(settings, client, katy):
    with pytest.raises(DuplicateRecordError) as excinfo:
        asyncio.run(store_client.insert(CITIES, [{"name": "Katy"}], settings, client=client))
    assert excinfo.value.code == "23505"


def test_error_payload_becomes_store_error(settings, store, client):
    store.fail("GET", HOMES, status=400, code="42703", message="column does not exist")

    with pytest.raises(StoreError) as excinfo:
        asyncio.run(store_client.select(HOMES, settings, client=client))

    assert excinfo.value.code == "42703"
    assert excinfo.value.message == "column does not exist"
    assert not isinstance(excinfo.value, DuplicateRecordError)


def test_unauthorized_becomes_authentication_error(settings, store, client):
    store.fail("GET", HOMES, status=401, code="PGRST301", message="JWT expired")

    with pytest.raises(AuthenticationError):
        asyncio.run(store_client.select(HOMES, settings, client=client))


def test_non_json_error_body(settings):
    transport = httpx.MockTransport(lambda request: httpx.Response(502, text="Bad gateway"))

    async def call():
        async with httpx.AsyncClient(transport=transport) as http:
            await store_client.select(HOMES, settings, client=http)

    with pytest.raises(StoreError, match="HTTP 502"):
        asyncio.run(call())


def test_transport_failure_becomes_network_error(settings):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def call():
        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as http:
            await store_client.select(HOMES, settings, client=http)

    with pytest.raises(NetworkError):
        asyncio.run(call())


def test_missing_configuration_raises_before_any_request(store, client):
    settings = Settings(_env_file=None, store_url=None, store_api_key=None)

    with pytest.raises(ConfigurationError):
        asyncio.run(store_client.select(HOMES, settings, client=client))
    assert store.requests == []


def test_update_and_delete_require_filters(settings, client):
    with pytest.raises(ValueError):
        asyncio.run(store_client.update(HOMES, [], {"notes": "x"}, settings, client=client))
    with pytest.raises(ValueError):
        asyncio.run(store_client.delete(HOMES, [], settings, client=client))


def test_update_patches_matching_rows(settings, store, client, katy):
    home = store.seed(HOMES, address="1 A St", city_id=katy["id"], date_visited="2024-01-01")

    updated = asyncio.run(
        store_client.update(
            HOMES, [("id", "eq", home["id"])], {"notes": "gate code"}, settings, client=client
        )
    )

    assert updated[0]["notes"] == "gate code"
    assert store.tables[HOMES][0]["notes"] == "gate code"
