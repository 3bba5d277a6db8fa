"""
Filtering and sorting functions for canvasslog.

Pure functions deriving the visible list of homes from the fetched list and
the current predicate values. Every predicate treats an empty value as "no
filter"; active predicates combine as a conjunction.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

from ..utils.exceptions import FilterError
from .models import Home, VisitResult

HomeFilter = Callable[[list[Home]], list[Home]]

DEFAULT_SEARCH_FIELDS = ("address", "street_name", "contact_name")


class SortOrder(str, Enum):
    DATE_DESC = "date_desc"
    DATE_ASC = "date_asc"
    ADDRESS_ASC = "address_asc"
    ADDRESS_DESC = "address_desc"
    CITY_ASC = "city_asc"
    CITY_DESC = "city_desc"


_SORT_KEYS: dict[SortOrder, tuple[Callable[[Home], str], bool]] = {
    SortOrder.DATE_DESC: (lambda home: home.date_visited, True),
    SortOrder.DATE_ASC: (lambda home: home.date_visited, False),
    SortOrder.ADDRESS_ASC: (lambda home: home.address.lower(), False),
    SortOrder.ADDRESS_DESC: (lambda home: home.address.lower(), True),
    SortOrder.CITY_ASC: (lambda home: (home.city_name or "").lower(), False),
    SortOrder.CITY_DESC: (lambda home: (home.city_name or "").lower(), True),
}


def filter_by_text(
    homes: list[Home], query: str | None, fields: Sequence[str] = DEFAULT_SEARCH_FIELDS
) -> list[Home]:
    """Case-insensitive substring match against any of the given fields."""
    if not query:
        return homes

    query_lower = query.lower()

    def text_matches(home: Home) -> bool:
        for field in fields:
            value = getattr(home, field, None)
            if value and query_lower in str(value).lower():
                return True
        return False

    return [home for home in homes if text_matches(home)]


def filter_by_result(homes: list[Home], result: VisitResult | str | None) -> list[Home]:
    """Exact match on the visit result."""
    if not result:
        return homes

    try:
        wanted = VisitResult(result)
    except ValueError:
        raise FilterError(
            f"Unknown visit result: {result}",
            filter_expression=str(result),
            filter_type="result",
        ) from None
    return [home for home in homes if home.result == wanted]


def filter_by_city(homes: list[Home], city_name: str | None) -> list[Home]:
    """Exact match on the joined city name."""
    if not city_name:
        return homes

    return [home for home in homes if home.city_name == city_name]


def filter_by_date_range(
    homes: list[Home], start: str | None = None, end: str | None = None
) -> list[Home]:
    """Inclusive ``date_visited`` range on ISO ``yyyy-MM-dd`` strings."""
    if not start and not end:
        return homes

    def date_matches(home: Home) -> bool:
        if start and home.date_visited < start:
            return False
        if end and home.date_visited > end:
            return False
        return True

    return [home for home in homes if date_matches(home)]


def sort_homes(homes: list[Home], order: SortOrder | str = SortOrder.DATE_DESC) -> list[Home]:
    """Return a new list in one of the fixed orderings."""
    try:
        order = SortOrder(order)
    except ValueError:
        raise FilterError(
            f"Unknown sort order: {order}",
            filter_expression=str(order),
            filter_type="sort",
        ) from None

    key, reverse = _SORT_KEYS[order]
    return sorted(homes, key=key, reverse=reverse)


def apply_filters(homes: list[Home], filters: list[HomeFilter]) -> list[Home]:
    """Apply a series of filter functions to homes."""
    result = homes
    for filter_func in filters:
        result = filter_func(result)
    return result


def create_text_filter(
    query: str | None, fields: Sequence[str] = DEFAULT_SEARCH_FIELDS
) -> HomeFilter:
    return lambda homes: filter_by_text(homes, query, fields)


def create_result_filter(result: VisitResult | str | None) -> HomeFilter:
    return lambda homes: filter_by_result(homes, result)


def create_city_filter(city_name: str | None) -> HomeFilter:
    return lambda homes: filter_by_city(homes, city_name)


def create_date_range_filter(start: str | None, end: str | None) -> HomeFilter:
    return lambda homes: filter_by_date_range(homes, start, end)


@dataclass
class HomeFilters:
    """Current predicate values of a list screen."""

    search: str | None = None
    city: str | None = None
    result: VisitResult | str | None = None
    date_from: str | None = None
    date_to: str | None = None
    sort: SortOrder | str = SortOrder.DATE_DESC
    search_fields: Sequence[str] = DEFAULT_SEARCH_FIELDS

    def pipeline(self) -> list[HomeFilter]:
        return [
            create_city_filter(self.city),
            create_result_filter(self.result),
            create_text_filter(self.search, self.search_fields),
            create_date_range_filter(self.date_from, self.date_to),
        ]

    @property
    def active(self) -> bool:
        return any([self.search, self.city, self.result, self.date_from, self.date_to])


def derive_visible(homes: list[Home], filters: HomeFilters) -> list[Home]:
    """Filter then sort the fetched list."""
    return sort_homes(apply_filters(homes, filters.pipeline()), filters.sort)


def unique_city_names(homes: list[Home]) -> list[str]:
    """Sorted distinct city names present in the list."""
    return sorted({home.city_name for home in homes if home.city_name})
