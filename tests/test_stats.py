from datetime import date

from canvasslog.core.models import City, Home, VisitResult
from canvasslog.core.stats import compute_dashboard_stats, top_city, week_bounds

# Wednesday
TODAY = date(2024, 1, 17)


def make_home(n, date_visited, city=None, result=None, follow_up_date=None):
    return Home(
        id=str(n),
        address=f"{n} Main St",
        date_visited=date_visited,
        result=result,
        follow_up_date=follow_up_date,
        city=City(id=city.lower(), name=city) if city else None,
    )


def test_week_runs_sunday_to_saturday():
    assert week_bounds(TODAY) == ("2024-01-14", "2024-01-20")
    assert week_bounds(date(2024, 1, 14)) == ("2024-01-14", "2024-01-20")
    assert week_bounds(date(2024, 1, 20)) == ("2024-01-14", "2024-01-20")


def test_dashboard_stats():
    homes = [
        make_home(1, "2024-01-13", "Katy", VisitResult.SCHEDULED_DEMO),
        make_home(2, "2024-01-14", "Katy", VisitResult.NOT_HOME, follow_up_date="2024-01-16"),
        make_home(3, "2024-01-17", "Cypress", VisitResult.SCHEDULED_DEMO, "2024-01-17"),
        make_home(4, "2024-01-20", None, VisitResult.DND, follow_up_date="2024-02-01"),
        make_home(5, "2024-01-21", "Katy"),
    ]

    stats = compute_dashboard_stats(homes, TODAY)

    assert stats.total_visits == 5
    assert stats.this_week == 3
    assert stats.demos_scheduled == 2
    assert stats.follow_ups == 2
    assert stats.top_city == "Katy"
    assert stats.conversion_rate == 40.0


def test_empty_dashboard():
    stats = compute_dashboard_stats([], TODAY)
    assert stats.to_dict() == {
        "total_visits": 0,
        "this_week": 0,
        "demos_scheduled": 0,
        "follow_ups": 0,
        "top_city": "-",
        "conversion_rate": 0.0,
    }


def test_homes_without_city_count_as_unknown():
    homes = [make_home(1, "2024-01-01"), make_home(2, "2024-01-02"), make_home(3, "2024-01-03", "Katy")]
    assert top_city(homes) == "Unknown"
