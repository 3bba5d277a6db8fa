"""
Device geolocation client.

Estimates the current position through the Google geolocation web service
with a fixed timeout. Any failure yields ``None``.
"""

import httpx
import structlog

from ..config import Settings
from ..core.models import Coordinates

logger = structlog.get_logger(__name__)


async def get_current_position(
    settings: Settings, client: httpx.AsyncClient | None = None
) -> Coordinates | None:
    """Get the current device position."""
    if not settings.maps_api_key:
        logger.warning("Geolocation is not available without a maps API key")
        return None

    should_close_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=settings.geolocation_timeout)

    try:
        response = await client.post(
            settings.geolocation_url,
            params={"key": settings.maps_api_key},
            json={"considerIp": True},
            timeout=settings.geolocation_timeout,
        )
        response.raise_for_status()
        location = response.json()["location"]
        return Coordinates(float(location["lat"]), float(location["lng"]))

    except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
        logger.error("Error getting current location", error=str(e))
        return None
    finally:
        if should_close_client:
            await client.aclose()
