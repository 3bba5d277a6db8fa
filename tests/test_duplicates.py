import asyncio

from canvasslog.core import duplicates
from canvasslog.core.duplicates import Debouncer, LogVisitSession
from canvasslog.core.models import HOMES, VisitResult


def test_check_duplicate_finds_same_address_and_city(settings, store, client, katy, cypress):
    store.seed(
        HOMES,
        address="123 Main St",
        city_id=katy["id"],
        date_visited="2024-01-05",
        result="Scheduled Demo",
    )

    warning = asyncio.run(
        duplicates.check_duplicate(" 123 Main St ", katy["id"], settings, client)
    )
    other_city = asyncio.run(
        duplicates.check_duplicate("123 Main St", cypress["id"], settings, client)
    )

    assert warning.date_visited == "2024-01-05"
    assert warning.result is VisitResult.SCHEDULED_DEMO
    assert "2024-01-05" in warning.message
    assert other_city is None


def test_check_duplicate_is_exact_match(settings, store, client, katy):
    store.seed(HOMES, address="123 Main St", city_id=katy["id"], date_visited="2024-01-05")

    assert asyncio.run(
        duplicates.check_duplicate("123 Main Street", katy["id"], settings, client)
    ) is None


def test_check_duplicate_skips_empty_input(settings, store, client):
    assert asyncio.run(duplicates.check_duplicate("   ", "c1", settings, client)) is None
    assert asyncio.run(duplicates.check_duplicate("1 A St", "", settings, client)) is None
    assert store.requests == []


def test_store_failure_is_only_logged(settings, store, client, katy):
    store.fail("GET", HOMES)
    assert asyncio.run(
        duplicates.check_duplicate("1 A St", katy["id"], settings, client)
    ) is None


def test_debouncer_runs_only_last_trigger():
    calls = []

    async def record(value):
        calls.append(value)

    async def scenario():
        debouncer = Debouncer(0.05, record)
        for value in ("1", "12", "123"):
            debouncer.trigger(value)
            await asyncio.sleep(0.005)
        await debouncer.drain()
        return debouncer.pending

    assert asyncio.run(scenario()) is False
    assert calls == ["123"]


def test_debouncer_does_not_cancel_call_in_flight():
    calls = []

    async def slow(value):
        await asyncio.sleep(0.03)
        calls.append(value)

    async def scenario():
        debouncer = Debouncer(0.01, slow)
        debouncer.trigger("first")
        await asyncio.sleep(0.02)
        debouncer.trigger("second")
        await debouncer.drain()

    asyncio.run(scenario())
    assert calls == ["first", "second"]


def test_debouncer_cancel_drops_pending_call():
    calls = []

    async def record(value):
        calls.append(value)

    async def scenario():
        debouncer = Debouncer(0.01, record)
        debouncer.trigger("x")
        debouncer.cancel()
        await asyncio.sleep(0.03)

    asyncio.run(scenario())
    assert calls == []


def test_session_checks_once_after_typing(settings, store, client, katy):
    store.seed(HOMES, address="123 Main St", city_id=katy["id"], date_visited="2024-01-05")

    async def scenario():
        session = LogVisitSession(settings, client, delay=0.02)
        for partial in ("1", "12", "123 Main", "123 Main St"):
            session.location_changed(partial, katy["id"])
        return session, await session.settle()

    session, warning = asyncio.run(scenario())

    assert session.checks_run == 1
    assert warning is not None
    assert warning.address == "123 Main St"


def test_session_clears_warning_when_address_emptied(settings, store, client, katy):
    store.seed(HOMES, address="123 Main St", city_id=katy["id"], date_visited="2024-01-05")

    async def scenario():
        session = LogVisitSession(settings, client, delay=0.01)
        session.location_changed("123 Main St", katy["id"])
        await session.settle()
        assert session.warning is not None
        session.location_changed("", katy["id"])
        return await session.settle()

    assert asyncio.run(scenario()) is None
