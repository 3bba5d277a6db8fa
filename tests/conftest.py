import asyncio
import itertools
import json

import httpx
import pytest

from canvasslog.config import Settings
from canvasslog.core.models import ADMIN_NOTES, CITIES, HOMES, SUBDIVISIONS, SYNC_LOG

STORE_URL = "https://store.test"

UNIQUE_KEYS = {
    CITIES: ("name",),
    SUBDIVISIONS: ("name", "city_id"),
    HOMES: ("address", "city_id"),
}


def _matches(row, column, expression):
    if expression.startswith("not."):
        return not _matches(row, column, expression[4:])
    operator, _, raw = expression.partition(".")
    value = row.get(column)
    if operator == "is":
        return value is None if raw == "null" else str(value).lower() == raw
    if operator == "eq":
        return value is not None and str(value) == raw
    if operator == "neq":
        return str(value) != raw
    raise AssertionError(f"fake store does not support {operator}")


class FakeStore:
    """In-memory PostgREST double with unique constraints and embedded joins."""

    def __init__(self):
        self.tables = {name: [] for name in (CITIES, SUBDIVISIONS, HOMES, ADMIN_NOTES, SYNC_LOG)}
        self.requests = []
        self.forced_errors = {}
        self._ids = itertools.count(1)
        self._clock = itertools.count(0)

    def _timestamp(self):
        tick = next(self._clock)
        return f"2024-01-15T10:{tick // 60:02d}:{tick % 60:02d}+00:00"

    def seed(self, collection, **row):
        row.setdefault("id", f"{collection[:3]}-{next(self._ids)}")
        row.setdefault("created_at", self._timestamp())
        if collection == HOMES:
            row.setdefault("street_name", row.get("address", ""))
            row.setdefault("source", "manual")
        self.tables[collection].append(row)
        return row

    def fail(self, method, collection, status=500, code="XX000", message="boom"):
        self.forced_errors[(method, collection)] = (
            status,
            {"code": code, "message": message, "details": None, "hint": None},
        )

    def _embed(self, collection, row, select):
        row = dict(row)
        if "cities" in select and collection in (HOMES, SUBDIVISIONS):
            city = self._find(CITIES, row.get("city_id"))
            row["cities"] = {"id": city["id"], "name": city["name"]} if city else None
        if "subdivisions" in select and collection == HOMES:
            sub = self._find(SUBDIVISIONS, row.get("subdivision_id"))
            row["subdivisions"] = {"id": sub["id"], "name": sub["name"]} if sub else None
        return row

    def _find(self, collection, row_id):
        if row_id is None:
            return None
        return next((r for r in self.tables[collection] if r["id"] == row_id), None)

    def _filtered(self, collection, params):
        rows = self.tables[collection]
        for column, expression in params:
            rows = [row for row in rows if _matches(row, column, expression)]
        return rows

    def _violates_unique(self, collection, new_row):
        keys = UNIQUE_KEYS.get(collection)
        if not keys:
            return False
        return any(
            all(row.get(key) == new_row.get(key) for key in keys)
            for row in self.tables[collection]
        )

    def handle(self, request):
        self.requests.append(request)
        collection = request.url.path.rsplit("/", 1)[-1]
        params = request.url.params
        select = params.get("select", "*")
        filter_params = [
            (key, value)
            for key, value in params.multi_items()
            if key not in ("select", "order", "limit")
        ]

        forced = self.forced_errors.get((request.method, collection))
        if forced:
            status, payload = forced
            return httpx.Response(status, json=payload)

        if request.method == "GET":
            rows = self._filtered(collection, filter_params)
            for term in reversed((params.get("order") or "").split(",")):
                if not term:
                    continue
                column, _, direction = term.partition(".")
                rows = sorted(
                    rows, key=lambda r: r.get(column) or "", reverse=direction == "desc"
                )
            if "limit" in params:
                rows = rows[: int(params["limit"])]
            return httpx.Response(200, json=[self._embed(collection, r, select) for r in rows])

        if request.method == "POST":
            created = []
            for new_row in json.loads(request.content):
                if self._violates_unique(collection, new_row):
                    return httpx.Response(
                        409,
                        json={
                            "code": "23505",
                            "message": "duplicate key value violates unique constraint",
                            "details": None,
                            "hint": None,
                        },
                    )
                created.append(self.seed(collection, **new_row))
            return httpx.Response(
                201, json=[self._embed(collection, r, select) for r in created]
            )

        if request.method == "PATCH":
            rows = self._filtered(collection, filter_params)
            for row in rows:
                row.update(json.loads(request.content))
            return httpx.Response(200, json=rows)

        if request.method == "DELETE":
            rows = self._filtered(collection, filter_params)
            self.tables[collection] = [r for r in self.tables[collection] if r not in rows]
            if collection == CITIES:
                ids = {r["id"] for r in rows}
                self.tables[SUBDIVISIONS] = [
                    s for s in self.tables[SUBDIVISIONS] if s.get("city_id") not in ids
                ]
                for home in self.tables[HOMES]:
                    if home.get("city_id") in ids:
                        home["city_id"] = None
            return httpx.Response(200, json=rows)

        return httpx.Response(405)


class FakeMaps:
    """Google geocoding and geolocation doubles."""

    def __init__(self):
        self.addresses = {}
        self.reverse = {}
        self.position = None
        self.requests = []

    def handle(self, request):
        self.requests.append(request)
        if request.url.path.endswith("/geolocate"):
            if self.position is None:
                return httpx.Response(404, json={"error": {"code": 404}})
            lat, lng = self.position
            return httpx.Response(200, json={"location": {"lat": lat, "lng": lng}, "accuracy": 30})

        params = request.url.params
        if "latlng" in params:
            formatted = self.reverse.get(params["latlng"])
            results = [{"formatted_address": formatted}] if formatted else []
        else:
            found = self.addresses.get(params.get("address"))
            results = (
                [{"geometry": {"location": {"lat": found[0], "lng": found[1]}}}]
                if found
                else []
            )
        status = "OK" if results else "ZERO_RESULTS"
        return httpx.Response(200, json={"status": status, "results": results})


class Services:
    def __init__(self):
        self.store = FakeStore()
        self.maps = FakeMaps()

    def handle(self, request):
        if request.url.host == "store.test":
            return self.store.handle(request)
        return self.maps.handle(request)

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        store_url=STORE_URL,
        store_api_key="anon-key",
        canvasser_id="user-1",
        maps_api_key=None,
    )


@pytest.fixture
def maps_settings(settings):
    return settings.model_copy(update={"maps_api_key": "maps-key"})


@pytest.fixture
def services():
    return Services()


@pytest.fixture
def store(services):
    return services.store


@pytest.fixture
def maps(services):
    return services.maps


@pytest.fixture
def client(services):
    http = services.client()
    yield http
    asyncio.run(http.aclose())


@pytest.fixture
def katy(store):
    return store.seed(CITIES, name="Katy")


@pytest.fixture
def cypress(store):
    return store.seed(CITIES, name="Cypress")


def run(coro):
    return asyncio.run(coro)
