"""
Duplicate detection for the log-visit flow.

A home is a duplicate when another home has exactly the same address and
city. The check is advisory: it produces a warning and never blocks a
submission. Checks are debounced while the address is being typed.
"""

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass
from typing import Any

import httpx

from ..clients import store
from ..config import Settings
from ..utils.exceptions import CanvassLogError
from ..utils.logging import get_logger
from . import mappers
from .models import HOMES, Home, VisitResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class DuplicateWarning:
    home_id: str
    address: str
    date_visited: str
    result: VisitResult | None

    @property
    def message(self) -> str:
        outcome = self.result.value if self.result else "no result recorded"
        return (
            f"{self.address} was already visited on {self.date_visited} "
            f"({outcome})"
        )


async def find_existing_home(
    address: str,
    city_id: str,
    settings: Settings,
    client: httpx.AsyncClient | None = None,
) -> Home | None:
    """Most recent home with exactly this address and city, if any."""
    rows = await store.select(
        HOMES,
        settings,
        filters=[("address", "eq", address), ("city_id", "eq", city_id)],
        order=[("date_visited", False)],
        limit=1,
        client=client,
    )
    return mappers.map_row_to_home(rows[0]) if rows else None


async def check_duplicate(
    address: str,
    city_id: str,
    settings: Settings,
    client: httpx.AsyncClient | None = None,
) -> DuplicateWarning | None:
    """Warn when the address and city pair was already logged."""
    address = address.strip()
    if not address or not city_id:
        return None

    try:
        existing = await find_existing_home(address, city_id, settings, client)
    except CanvassLogError as e:
        logger.warning("Duplicate check failed", error=str(e), address=address)
        return None

    if existing is None:
        return None

    logger.info(
        "Possible duplicate visit",
        address=address,
        city_id=city_id,
        previous_visit=existing.date_visited,
    )
    return DuplicateWarning(
        home_id=existing.id,
        address=existing.address,
        date_visited=existing.date_visited,
        result=existing.result,
    )


class Debouncer:
    """
    Trailing-edge debounce for an async callback.

    Each trigger restarts the delay; only the last trigger inside the window
    runs. A call that has already started is never cancelled, so an older
    response can still land after a newer one.
    """

    def __init__(self, delay: float, callback: Callable[..., Awaitable[Any]]):
        self.delay = delay
        self.callback = callback
        self._timer: asyncio.Task | None = None
        self._running: set[asyncio.Task] = set()

    def trigger(self, *args: Any, **kwargs: Any) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.create_task(self._fire(args, kwargs))

    async def _fire(self, args: tuple, kwargs: dict[str, Any]) -> None:
        await asyncio.sleep(self.delay)

        task = asyncio.current_task()
        self._timer = None
        self._running.add(task)
        try:
            await self.callback(*args, **kwargs)
        finally:
            self._running.discard(task)

    @property
    def pending(self) -> bool:
        return self._timer is not None or bool(self._running)

    async def drain(self) -> None:
        """Wait for the pending call, if any, and every call in flight."""
        while self.pending:
            tasks = [*self._running]
            if self._timer is not None:
                tasks.append(self._timer)
            with suppress(asyncio.CancelledError):
                await asyncio.gather(*tasks, return_exceptions=True)

    def cancel(self) -> None:
        """Drop the pending call; calls in flight still complete."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class LogVisitSession:
    """State of one log-visit screen: the latest duplicate warning."""

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient | None = None,
        delay: float | None = None,
    ):
        self.settings = settings
        self.client = client
        self.warning: DuplicateWarning | None = None
        self.checks_run = 0
        if delay is None:
            delay = settings.duplicate_check_delay_ms / 1000
        self._debouncer = Debouncer(delay, self._check)

    def location_changed(self, address: str, city_id: str | None) -> None:
        """Schedule a duplicate check for the new address and city pair."""
        if not address.strip() or not city_id:
            self._debouncer.cancel()
            self.warning = None
            return
        self._debouncer.trigger(address, city_id)

    async def _check(self, address: str, city_id: str) -> None:
        self.checks_run += 1
        self.warning = await check_duplicate(address, city_id, self.settings, self.client)

    async def settle(self) -> DuplicateWarning | None:
        """Wait for outstanding checks and return the current warning."""
        await self._debouncer.drain()
        return self.warning
