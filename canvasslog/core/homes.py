"""
Home queries for the list and map screens.

The whole collection is fetched with its city and subdivision joined in;
filtering happens client-side except for the coordinate-presence and result
predicates the map view pushes down to the store.
"""

import httpx

from ..clients import store
from ..config import Settings
from ..utils.exceptions import FilterError
from ..utils.logging import get_logger
from . import mappers
from .models import HOMES, Home, VisitResult

logger = get_logger(__name__)

HOME_COLUMNS = "*, cities (id, name), subdivisions (id, name)"


async def fetch_homes(
    settings: Settings, client: httpx.AsyncClient | None = None
) -> list[Home]:
    """Fetch every home, newest visit first."""
    rows = await store.select(
        HOMES,
        settings,
        columns=HOME_COLUMNS,
        order=[("date_visited", False), ("created_at", False)],
        client=client,
    )
    homes = [mappers.map_row_to_home(row) for row in rows]
    logger.info("Fetched homes", count=len(homes))
    return homes


async def fetch_map_homes(
    settings: Settings,
    result: VisitResult | str | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[Home]:
    """Fetch homes that have coordinates, optionally for a single result."""
    filters: list[store.Filter] = [
        ("latitude", "not.is", None),
        ("longitude", "not.is", None),
    ]
    if result:
        try:
            wanted = VisitResult(result)
        except ValueError:
            raise FilterError(
                f"Unknown visit result: {result}",
                filter_expression=str(result),
                filter_type="result",
            ) from None
        filters.append(("result", "eq", wanted.value))

    rows = await store.select(
        HOMES,
        settings,
        columns=HOME_COLUMNS,
        filters=filters,
        order=[("date_visited", False)],
        client=client,
    )
    homes = [mappers.map_row_to_home(row) for row in rows]
    logger.info("Fetched mappable homes", count=len(homes), result=str(result or ""))
    return homes
