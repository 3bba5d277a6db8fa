"""
Domain models for canvasslog.

Pydantic models mirroring the record store collections. Dates are kept as
ISO ``yyyy-MM-dd`` strings so range filters can compare them lexically.
"""

from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict

CITIES = "cities"
SUBDIVISIONS = "subdivisions"
HOMES = "homes"
ADMIN_NOTES = "admin_notes"
SYNC_LOG = "sync_log"


class VisitResult(str, Enum):
    """Outcome of a canvassing visit."""

    NOT_HOME = "Not Home"
    SCHEDULED_DEMO = "Scheduled Demo"
    DND = "DND (Do Not Disturb)"
    ALREADY_HAS_SYSTEM = "Already Has System"
    NOT_INTERESTED = "Not Interested"
    INTERESTED_CALL_BACK = "Interested - Call Back"
    SOLD_CLOSED = "Sold/Closed"


class HomeSource(str, Enum):
    MANUAL = "manual"
    IMPORTED = "imported"


class SyncStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    PARTIAL = "partial"


class Coordinates(NamedTuple):
    lat: float
    lng: float


class StoreModel(BaseModel):
    model_config = ConfigDict(extra="ignore", use_enum_values=False)


class City(StoreModel):
    id: str
    name: str
    created_at: str | None = None


class Subdivision(StoreModel):
    id: str
    name: str
    city_id: str | None = None
    created_at: str | None = None
    city: City | None = None


class Home(StoreModel):
    """A logged visit, optionally carrying its joined city and subdivision."""

    id: str
    city_id: str | None = None
    subdivision_id: str | None = None
    street_name: str = ""
    address: str
    result: VisitResult | None = None
    contact_name: str | None = None
    phone_number: str | None = None
    follow_up_date: str | None = None
    notes: str | None = None
    canvasser_id: str | None = None
    date_visited: str
    source: HomeSource = HomeSource.MANUAL
    external_id: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    location_pinned_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    city: City | None = None
    subdivision: Subdivision | None = None

    @property
    def city_name(self) -> str | None:
        return self.city.name if self.city else None

    @property
    def subdivision_name(self) -> str | None:
        return self.subdivision.name if self.subdivision else None

    @property
    def coordinates(self) -> Coordinates | None:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(self.latitude, self.longitude)


class AdminNote(StoreModel):
    id: str
    note: str
    user_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class SyncLogEntry(StoreModel):
    id: str | None = None
    sync_date: str | None = None
    records_fetched: int = 0
    records_added: int = 0
    status: SyncStatus
    error_message: str | None = None
