"""
Map view helpers.

Marker colors per visit result, the map center for a set of homes, and
Google Maps directions links. Drawing the map itself is left to the viewer.
"""

from dataclasses import dataclass
from urllib.parse import quote

from .models import Coordinates, Home, VisitResult

DEFAULT_CENTER = Coordinates(29.7604, -95.3698)
DIRECTIONS_URL = "https://www.google.com/maps/dir/?api=1&destination={destination}"
MARKER_ICON_URL = "https://maps.google.com/mapfiles/ms/icons/{color}-dot.png"

MARKER_COLORS = {
    VisitResult.SCHEDULED_DEMO: "green",
    VisitResult.INTERESTED_CALL_BACK: "blue",
    VisitResult.NOT_HOME: "yellow",
    VisitResult.DND: "red",
    VisitResult.NOT_INTERESTED: "gray",
    VisitResult.ALREADY_HAS_SYSTEM: "purple",
    VisitResult.SOLD_CLOSED: "orange",
}
DEFAULT_MARKER_COLOR = "red"


@dataclass(frozen=True)
class Marker:
    home_id: str
    position: Coordinates
    color: str
    title: str
    directions_url: str

    @property
    def icon_url(self) -> str:
        return MARKER_ICON_URL.format(color=self.color)


def marker_color(result: VisitResult | str | None) -> str:
    try:
        return MARKER_COLORS[VisitResult(result)]
    except (KeyError, ValueError):
        return DEFAULT_MARKER_COLOR


def map_center(homes: list[Home], default: Coordinates = DEFAULT_CENTER) -> Coordinates:
    """Average position of the homes, or ``default`` when there are none."""
    if not homes:
        return default
    lat = sum(home.latitude or 0 for home in homes) / len(homes)
    lng = sum(home.longitude or 0 for home in homes) / len(homes)
    return Coordinates(lat, lng)


def directions_url(address: str, city: str | None = None, state: str = "TX") -> str:
    destination = f"{address}, {city}, {state}" if city else address
    return DIRECTIONS_URL.format(destination=quote(destination, safe=""))


def directions_url_to_coords(lat: float, lng: float) -> str:
    return DIRECTIONS_URL.format(destination=f"{lat},{lng}")


def build_markers(homes: list[Home], state: str = "TX") -> list[Marker]:
    """One marker per home that has coordinates."""
    markers = []
    for home in homes:
        position = home.coordinates
        if position is None:
            continue
        markers.append(
            Marker(
                home_id=home.id,
                position=position,
                color=marker_color(home.result),
                title=home.address,
                directions_url=directions_url(home.address, home.city_name, state),
            )
        )
    return markers
