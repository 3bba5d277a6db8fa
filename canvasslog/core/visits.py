"""
Log-visit flow.

Validate the form, capture a location for the pin, then insert the home.
A unique-constraint violation on ``(address, city_id)`` is reported as a
duplicate outcome instead of an error.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

import httpx

from ..clients import geocoding, geolocation, store
from ..config import Settings
from ..utils.exceptions import DuplicateRecordError
from ..utils.logging import generate_correlation_id, get_logger, operation_logger
from . import mappers
from .duplicates import DuplicateWarning, check_duplicate
from .forms import VisitForm
from .homes import HOME_COLUMNS
from .models import HOMES, Coordinates, Home

logger = get_logger(__name__)


class VisitStatus(str, Enum):
    CREATED = "created"
    DUPLICATE = "duplicate"


@dataclass
class LogVisitOutcome:
    status: VisitStatus
    home: Home | None = None
    warning: DuplicateWarning | None = None
    location: Coordinates | None = None

    @property
    def created(self) -> bool:
        return self.status is VisitStatus.CREATED


def geocode_query(form: VisitForm, city_name: str | None, state: str) -> str:
    """Address string sent to the geocoder: ``"<address>, <city>, <state>"``."""
    parts = [form.address, city_name, state]
    return ", ".join(part for part in parts if part)


async def resolve_location(
    form: VisitForm,
    settings: Settings,
    client: httpx.AsyncClient | None = None,
    city_name: str | None = None,
    use_device_location: bool = False,
    geocode_address: bool = True,
) -> Coordinates | None:
    """
    Pick coordinates for the visit.

    Explicit coordinates on the form win, then the device position when
    requested, then a geocode of the typed address. Every lookup failure
    falls through to the next source and finally to ``None``.
    """
    if form.latitude is not None and form.longitude is not None:
        return Coordinates(form.latitude, form.longitude)

    if use_device_location:
        position = await geolocation.get_current_position(settings, client)
        if position is not None:
            return position
        logger.warning("Device location unavailable, falling back to geocoding")

    if geocode_address and settings.maps_configured:
        return await geocoding.geocode(
            geocode_query(form, city_name, settings.default_state), settings, client
        )
    return None


async def log_visit(
    form: VisitForm,
    settings: Settings,
    city_name: str | None = None,
    use_device_location: bool = False,
    geocode_address: bool = True,
    client: httpx.AsyncClient | None = None,
    correlation_id: str | None = None,
    now: datetime | None = None,
) -> LogVisitOutcome:
    """Submit a visit. Duplicates are skipped, any other store error propagates."""
    correlation_id = correlation_id or generate_correlation_id()
    start = time.time()

    with operation_logger(
        "log_visit", correlation_id, address=form.address, result=form.result.value
    ) as op_logger:
        op_logger.with_canvasser(settings.canvasser_id)
        should_close_client = client is None
        http = client or httpx.AsyncClient(timeout=settings.http_timeout)
        try:
            location = await resolve_location(
                form,
                settings,
                http,
                city_name=city_name,
                use_device_location=use_device_location,
                geocode_address=geocode_address,
            )

            payload = form.to_insert_payload(settings.canvasser_id)
            if location is not None:
                payload["latitude"] = location.lat
                payload["longitude"] = location.lng
                payload["location_pinned_at"] = (
                    now or datetime.now(timezone.utc)
                ).isoformat()

            try:
                rows = await store.insert(
                    HOMES, [payload], settings, columns=HOME_COLUMNS, client=http
                )
            except DuplicateRecordError:
                warning = await check_duplicate(form.address, form.city_id, settings, http)
                op_logger.warning(
                    "Home already logged, skipping",
                    address=form.address,
                    city_id=form.city_id,
                )
                return LogVisitOutcome(
                    VisitStatus.DUPLICATE, warning=warning, location=location
                )
        finally:
            if should_close_client:
                await http.aclose()

        home = mappers.map_row_to_home(rows[0]) if rows else None
        op_logger.performance(
            "Visit logged",
            duration_ms=(time.time() - start) * 1000,
            pinned=location is not None,
        )
        op_logger.audit(
            "log_visit",
            home_id=home.id if home else None,
            canvasser_id=settings.canvasser_id,
        )
        return LogVisitOutcome(VisitStatus.CREATED, home=home, location=location)
