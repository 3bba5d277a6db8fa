"""
Record store client functions.

Functional async client for the hosted PostgREST record store. Every call is
a single request with no retry; error responses are raised as ``StoreError``
(``DuplicateRecordError`` for unique-constraint violations).
"""

from collections.abc import Iterable, Sequence
from typing import Any

import httpx
import structlog

from ..config import Settings
from ..utils.exceptions import ConfigurationError, NetworkError, parse_store_error

logger = structlog.get_logger(__name__)

# (column, operator, value), e.g. ("city_id", "eq", "c-1") or ("latitude", "not.is", None)
Filter = tuple[str, str, Any]
# (column, ascending)
Order = tuple[str, bool]

OPERATORS = {"eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike", "is", "not.is", "in"}


def _require_store(settings: Settings) -> None:
    if not settings.store_configured:
        raise ConfigurationError(
            "Record store URL and API key are required for data operations",
            config_key="store_url / store_api_key",
        )


def _headers(settings: Settings) -> dict[str, str]:
    token = settings.store_access_token or settings.store_api_key
    return {
        "apikey": settings.store_api_key or "",
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
        "Prefer": "return=representation",
    }


def _collection_url(settings: Settings, collection: str) -> str:
    return f"{settings.store_url}/rest/v1/{collection}"


def _encode_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set)):
        return "(" + ",".join(str(item) for item in value) + ")"
    return str(value)


def encode_filters(filters: Iterable[Filter] | None) -> list[tuple[str, str]]:
    """Encode filter triples as PostgREST query parameters."""
    params = []
    for column, operator, value in filters or ():
        if operator not in OPERATORS:
            raise ValueError(f"Unsupported filter operator: {operator}")
        params.append((column, f"{operator}.{_encode_value(value)}"))
    return params


def encode_order(order: Sequence[Order] | None) -> str | None:
    """Encode ordering pairs as a PostgREST ``order`` parameter."""
    if not order:
        return None
    return ",".join(
        f"{column}.{'asc' if ascending else 'desc'}" for column, ascending in order
    )


async def _request(
    method: str,
    collection: str,
    settings: Settings,
    client: httpx.AsyncClient | None,
    params: list[tuple[str, str]] | None = None,
    json: Any = None,
) -> list[dict[str, Any]]:
    _require_store(settings)

    should_close_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=settings.http_timeout)

    url = _collection_url(settings, collection)
    try:
        response = await client.request(
            method, url, headers=_headers(settings), params=params, json=json
        )
    except httpx.TimeoutException as e:
        raise NetworkError(
            f"Record store request timed out: {collection}",
            host=settings.store_url,
            timeout=settings.http_timeout,
        ) from e
    except httpx.HTTPError as e:
        raise NetworkError(
            f"Could not reach the record store: {e!s}", host=settings.store_url
        ) from e
    finally:
        if should_close_client:
            await client.aclose()

    if response.is_error:
        error = parse_store_error(response, collection)
        logger.warning(
            "Record store request failed",
            method=method,
            collection=collection,
            status_code=response.status_code,
            store_code=error.code,
        )
        raise error

    if not response.content:
        return []
    data = response.json()
    if isinstance(data, dict):
        return [data]
    return data


async def select(
    collection: str,
    settings: Settings,
    columns: str = "*",
    filters: Iterable[Filter] | None = None,
    order: Sequence[Order] | None = None,
    limit: int | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[dict[str, Any]]:
    """Select rows, optionally with embedded joins such as ``*, cities(id, name)``."""
    params = [("select", columns), *encode_filters(filters)]
    order_param = encode_order(order)
    if order_param:
        params.append(("order", order_param))
    if limit is not None:
        params.append(("limit", str(limit)))

    rows = await _request("GET", collection, settings, client, params=params)
    logger.debug("Selected rows", collection=collection, count=len(rows))
    return rows


async def insert(
    collection: str,
    rows: list[dict[str, Any]],
    settings: Settings,
    columns: str = "*",
    client: httpx.AsyncClient | None = None,
) -> list[dict[str, Any]]:
    """Insert rows and return them as stored."""
    created = await _request(
        "POST",
        collection,
        settings,
        client,
        params=[("select", columns)],
        json=rows,
    )
    logger.debug("Inserted rows", collection=collection, count=len(created))
    return created


async def update(
    collection: str,
    filters: Iterable[Filter],
    patch: dict[str, Any],
    settings: Settings,
    client: httpx.AsyncClient | None = None,
) -> list[dict[str, Any]]:
    """Patch every row matching the filters."""
    params = encode_filters(filters)
    if not params:
        raise ValueError("Refusing to update without a filter")

    updated = await _request("PATCH", collection, settings, client, params=params, json=patch)
    logger.debug("Updated rows", collection=collection, count=len(updated))
    return updated


async def delete(
    collection: str,
    filters: Iterable[Filter],
    settings: Settings,
    client: httpx.AsyncClient | None = None,
) -> list[dict[str, Any]]:
    """Delete every row matching the filters."""
    params = encode_filters(filters)
    if not params:
        raise ValueError("Refusing to delete without a filter")

    deleted = await _request("DELETE", collection, settings, client, params=params)
    logger.debug("Deleted rows", collection=collection, count=len(deleted))
    return deleted
