"""
Dashboard statistics.

Computed client-side over the full home list. The week runs Sunday to
Saturday and dates compare as ISO strings.
"""

from collections import Counter
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import Any

from .models import Home, VisitResult

UNKNOWN_CITY = "Unknown"
NO_CITY = "-"


@dataclass(frozen=True)
class DashboardStats:
    total_visits: int = 0
    this_week: int = 0
    demos_scheduled: int = 0
    follow_ups: int = 0
    top_city: str = NO_CITY
    conversion_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def week_bounds(today: date) -> tuple[str, str]:
    """Sunday and Saturday of the week containing ``today``."""
    start = today - timedelta(days=(today.weekday() + 1) % 7)
    end = start + timedelta(days=6)
    return start.isoformat(), end.isoformat()


def top_city(homes: list[Home]) -> str:
    """Most visited city name; ties go to the city seen first."""
    counts = Counter(home.city_name or UNKNOWN_CITY for home in homes)
    if not counts:
        return NO_CITY
    return counts.most_common(1)[0][0]


def compute_dashboard_stats(homes: list[Home], today: date | None = None) -> DashboardStats:
    today = today or date.today()
    week_start, week_end = week_bounds(today)
    today_str = today.isoformat()

    total = len(homes)
    demos = sum(1 for home in homes if home.result is VisitResult.SCHEDULED_DEMO)

    return DashboardStats(
        total_visits=total,
        this_week=sum(1 for home in homes if week_start <= home.date_visited <= week_end),
        demos_scheduled=demos,
        follow_ups=sum(
            1 for home in homes if home.follow_up_date and home.follow_up_date >= today_str
        ),
        top_city=top_city(homes),
        conversion_rate=(demos / total * 100) if total else 0.0,
    )
