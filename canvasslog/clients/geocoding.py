"""
Geocoding client functions.

Functional async client for the Google Maps geocoding web service. Lookups
return the single best match, or ``None`` on any failure.
"""

from typing import Any

import httpx
import structlog

from ..config import Settings
from ..core.models import Coordinates

logger = structlog.get_logger(__name__)


async def _geocode_request(
    params: dict[str, Any], settings: Settings, client: httpx.AsyncClient | None
) -> dict[str, Any] | None:
    """Run a geocode query and return the first result."""
    if not settings.maps_api_key:
        logger.warning("Maps API key not configured")
        return None

    should_close_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=settings.http_timeout)

    try:
        response = await client.get(
            f"{settings.maps_base_url}/geocode/json",
            params={**params, "key": settings.maps_api_key},
        )
        response.raise_for_status()
        data = response.json()

    except (httpx.HTTPError, ValueError) as e:
        logger.error("Geocoding request failed", error=str(e))
        return None
    finally:
        if should_close_client:
            await client.aclose()

    if not isinstance(data, dict):
        logger.warning("Unexpected geocoding response", **params)
        return None

    results = data.get("results") or []
    if data.get("status") != "OK" or not results:
        logger.warning("No geocoding results", status=data.get("status"), **params)
        return None
    if not isinstance(results, list) or not isinstance(results[0], dict):
        logger.warning("Unexpected geocoding response", **params)
        return None
    return results[0]


async def geocode(
    address: str, settings: Settings, client: httpx.AsyncClient | None = None
) -> Coordinates | None:
    """Look up coordinates for an address string."""
    if not address.strip():
        return None

    result = await _geocode_request({"address": address}, settings, client)
    if result is None:
        return None

    try:
        location = result["geometry"]["location"]
        return Coordinates(float(location["lat"]), float(location["lng"]))
    except (KeyError, TypeError, ValueError):
        logger.warning("Malformed geocoding result", address=address)
        return None


async def reverse_geocode(
    lat: float, lng: float, settings: Settings, client: httpx.AsyncClient | None = None
) -> str | None:
    """Look up the formatted street address nearest to a coordinate."""
    result = await _geocode_request({"latlng": f"{lat},{lng}"}, settings, client)
    if result is None:
        return None
    return result.get("formatted_address") or None
