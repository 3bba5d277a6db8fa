"""
City and subdivision management.

Deleting a city cascades to its subdivisions in the record store and clears
``city_id`` on its homes; ``prune_city`` mirrors that on a local listing.
"""

import httpx

from ..clients import store
from ..config import Settings
from ..utils.exceptions import ValidationError
from ..utils.logging import get_logger
from . import mappers
from .models import CITIES, SUBDIVISIONS, City, Subdivision

logger = get_logger(__name__)

SUBDIVISION_COLUMNS = "*, cities (id, name)"


def _clean_name(name: str, field_name: str = "name") -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name cannot be blank", field_name=field_name)
    return name


async def list_cities(
    settings: Settings, client: httpx.AsyncClient | None = None
) -> list[City]:
    rows = await store.select(CITIES, settings, order=[("name", True)], client=client)
    return [mappers.map_row_to_city(row) for row in rows]


async def list_subdivisions(
    settings: Settings,
    city_id: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[Subdivision]:
    """Subdivisions with their city joined in, optionally for one city."""
    filters = [("city_id", "eq", city_id)] if city_id else None
    rows = await store.select(
        SUBDIVISIONS,
        settings,
        columns=SUBDIVISION_COLUMNS,
        filters=filters,
        order=[("name", True)],
        client=client,
    )
    return [mappers.map_row_to_subdivision(row) for row in rows]


async def add_city(
    name: str, settings: Settings, client: httpx.AsyncClient | None = None
) -> City:
    name = _clean_name(name)
    rows = await store.insert(CITIES, [{"name": name}], settings, client=client)
    city = mappers.map_row_to_city(rows[0])
    logger.audit("add_city", city_id=city.id, name=city.name)
    return city


async def add_subdivision(
    name: str,
    city_id: str,
    settings: Settings,
    client: httpx.AsyncClient | None = None,
) -> Subdivision:
    name = _clean_name(name)
    if not city_id:
        raise ValidationError("Select a city for the subdivision", field_name="city_id")

    rows = await store.insert(
        SUBDIVISIONS,
        [{"name": name, "city_id": city_id}],
        settings,
        columns=SUBDIVISION_COLUMNS,
        client=client,
    )
    subdivision = mappers.map_row_to_subdivision(rows[0])
    logger.audit("add_subdivision", subdivision_id=subdivision.id, city_id=city_id)
    return subdivision


async def delete_city(
    city_id: str, settings: Settings, client: httpx.AsyncClient | None = None
) -> None:
    await store.delete(CITIES, [("id", "eq", city_id)], settings, client=client)
    logger.audit("delete_city", city_id=city_id)


async def delete_subdivision(
    subdivision_id: str, settings: Settings, client: httpx.AsyncClient | None = None
) -> None:
    await store.delete(SUBDIVISIONS, [("id", "eq", subdivision_id)], settings, client=client)
    logger.audit("delete_subdivision", subdivision_id=subdivision_id)


def prune_city(
    cities: list[City], subdivisions: list[Subdivision], city_id: str
) -> tuple[list[City], list[Subdivision]]:
    """Drop a deleted city and its subdivisions from local listings."""
    return (
        [city for city in cities if city.id != city_id],
        [sub for sub in subdivisions if sub.city_id != city_id],
    )


def find_city(cities: list[City], value: str) -> City | None:
    """Match a city by id or by case-insensitive name."""
    lowered = value.strip().lower()
    for city in cities:
        if city.id == value or city.name.lower() == lowered:
            return city
    return None


def find_subdivision(
    subdivisions: list[Subdivision], value: str, city_id: str | None = None
) -> Subdivision | None:
    lowered = value.strip().lower()
    for sub in subdivisions:
        if city_id and sub.city_id != city_id:
            continue
        if sub.id == value or sub.name.lower() == lowered:
            return sub
    return None
