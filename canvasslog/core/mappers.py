"""
Mapping functions for canvasslog.

Pure functions for transforming record store rows into domain models and
domain models into insert payloads and export rows.
"""

from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..utils.exceptions import DataMappingError
from .models import AdminNote, City, Home, HomeSource, Subdivision, SyncLogEntry, VisitResult

IMPORTED_NOTE_PREFIX = "[IMPORTED]"
DEFAULT_IMPORTED_NOTE = f"{IMPORTED_NOTE_PREFIX} Prospective home to visit"

EXPORT_HEADERS = [
    "Date Visited",
    "Address",
    "Street",
    "City",
    "Subdivision",
    "Result",
    "Contact Name",
    "Phone Number",
    "Follow Up Date",
    "Notes",
    "Latitude",
    "Longitude",
    "Created At",
]


def _build(model: type, row: dict[str, Any]) -> Any:
    try:
        return model.model_validate(row)
    except PydanticValidationError as e:
        raise DataMappingError(
            f"Could not map {model.__name__} row: {e.error_count()} invalid field(s)",
            source_data=row,
            expected_format=model.__name__,
        ) from e


def map_row_to_city(row: dict[str, Any]) -> City:
    return _build(City, row)


def map_row_to_subdivision(row: dict[str, Any]) -> Subdivision:
    """Map a subdivision row with an optional embedded ``cities`` object."""
    data = {key: value for key, value in row.items() if key != "cities"}
    if row.get("cities"):
        data["city"] = row["cities"]
    return _build(Subdivision, data)


def map_row_to_home(row: dict[str, Any]) -> Home:
    """Map a home row with optional embedded ``cities`` / ``subdivisions`` joins."""
    data = {
        key: value
        for key, value in row.items()
        if key not in ("cities", "subdivisions")
    }
    if row.get("cities"):
        data["city"] = row["cities"]
    if row.get("subdivisions"):
        data["subdivision"] = row["subdivisions"]
    return _build(Home, data)


def map_row_to_note(row: dict[str, Any]) -> AdminNote:
    return _build(AdminNote, row)


def map_row_to_sync_log(row: dict[str, Any]) -> SyncLogEntry:
    return _build(SyncLogEntry, row)


def map_parsed_row_to_insert(
    address: str,
    street_name: str | None,
    city_id: str,
    subdivision_id: str | None,
    notes: str | None,
    canvasser_id: str | None,
    date_visited: str,
) -> dict[str, Any]:
    """Build the insert payload for an imported prospect."""
    return {
        "address": address,
        "street_name": street_name or address,
        "city_id": city_id,
        "subdivision_id": subdivision_id,
        "result": VisitResult.NOT_HOME.value,
        "notes": f"{IMPORTED_NOTE_PREFIX} {notes}" if notes else DEFAULT_IMPORTED_NOTE,
        "canvasser_id": canvasser_id,
        "source": HomeSource.IMPORTED.value,
        "date_visited": date_visited,
    }


def _format_timestamp(value: str | None) -> str:
    if not value:
        return ""
    try:
        return datetime.fromisoformat(value).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return value


def _number(value: float | None) -> str:
    return "" if value is None else str(value)


def map_home_to_export_row(home: Home) -> list[str]:
    """Flatten a home into the delimited export column order."""
    return [
        home.date_visited,
        home.address,
        home.street_name,
        home.city_name or "",
        home.subdivision_name or "",
        home.result.value if home.result else "",
        home.contact_name or "",
        home.phone_number or "",
        home.follow_up_date or "",
        home.notes or "",
        _number(home.latitude),
        _number(home.longitude),
        _format_timestamp(home.created_at),
    ]


def map_home_to_export_record(home: Home) -> dict[str, Any]:
    """Normalize a home into the structured export record."""
    return {
        "date_visited": home.date_visited,
        "address": home.address,
        "street_name": home.street_name,
        "city": home.city_name or "",
        "subdivision": home.subdivision_name or "",
        "result": home.result.value if home.result else "",
        "contact_name": home.contact_name or "",
        "phone_number": home.phone_number or "",
        "follow_up_date": home.follow_up_date or "",
        "notes": home.notes or "",
        "latitude": home.latitude,
        "longitude": home.longitude,
        "created_at": home.created_at,
    }
