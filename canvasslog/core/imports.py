"""
CSV import of prospective homes.

Parses the fixed positional CSV layout and reconciles each row against the
known cities and subdivisions before inserting it. Rows are inserted one at
a time; there is no transaction across rows, so partial success is normal.
"""

import csv
import io
import time
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

import httpx

from ..clients import store
from ..config import Settings
from ..utils.exceptions import DuplicateRecordError, ImportFileError, NetworkError, StoreError
from ..utils.logging import generate_correlation_id, get_logger, operation_logger
from . import mappers
from .models import CITIES, HOMES, SUBDIVISIONS, SYNC_LOG, SyncLogEntry, SyncStatus

logger = get_logger(__name__)

CSV_COLUMNS = ("address", "street_name", "city_name", "subdivision_name", "notes")
MIN_COLUMNS = 3


@dataclass(frozen=True)
class ParsedHome:
    address: str
    street_name: str
    city_name: str
    subdivision_name: str | None = None
    notes: str | None = None


@dataclass
class ImportResult:
    success: int = 0
    duplicates: int = 0
    unresolved: int = 0
    errors: int = 0
    dry_run: bool = False
    details: list[dict[str, Any]] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def failed(self) -> int:
        return self.duplicates + self.unresolved + self.errors

    @property
    def processed(self) -> int:
        return self.success + self.failed

    @property
    def status(self) -> SyncStatus:
        if self.failed == 0:
            return SyncStatus.SUCCESS
        if self.success > 0:
            return SyncStatus.PARTIAL
        return SyncStatus.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "failed": self.failed,
            "duplicates": self.duplicates,
            "unresolved": self.unresolved,
            "errors": self.errors,
            "dry_run": self.dry_run,
            "details": self.details,
        }


def parse_csv_text(text: str) -> list[ParsedHome]:
    """
    Parse import rows from CSV text.

    The first non-blank line is a header and is discarded. Columns map by
    position to address, street name, city, subdivision and notes. Rows with
    fewer than three columns, or without an address or city, are dropped.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        raise ImportFileError("CSV file is empty")

    homes = []
    for values in csv.reader(io.StringIO("\n".join(lines[1:]))):
        values = [value.strip() for value in values]
        if len(values) < MIN_COLUMNS:
            continue

        values += [""] * (len(CSV_COLUMNS) - len(values))
        address, street_name, city_name, subdivision_name, notes = values[:5]
        if not address or not city_name:
            continue

        homes.append(
            ParsedHome(
                address=address,
                street_name=street_name,
                city_name=city_name,
                subdivision_name=subdivision_name or None,
                notes=notes or None,
            )
        )

    if not homes:
        raise ImportFileError("No valid homes found in CSV. Please check the format.")

    logger.info("Parsed import file", rows=len(homes), lines=len(lines) - 1)
    return homes


def read_csv_file(path: Path) -> list[ParsedHome]:
    """Read and parse an import file from disk."""
    if path.suffix.lower() != ".csv":
        raise ImportFileError("Please select a CSV file", path=str(path))
    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise ImportFileError(f"Could not read {path}: {e.strerror}", path=str(path)) from e
    return parse_csv_text(text)


def build_city_lookup(cities: list[dict[str, Any]]) -> dict[str, str]:
    """Lower-cased city name to city id."""
    return {city["name"].lower(): city["id"] for city in cities}


def build_subdivision_lookup(subdivisions: list[dict[str, Any]]) -> dict[tuple[str, str], str]:
    """(city id, lower-cased subdivision name) to subdivision id."""
    return {
        (sub["city_id"], sub["name"].lower()): sub["id"]
        for sub in subdivisions
        if sub.get("city_id")
    }


def resolve_row(
    row: ParsedHome,
    city_lookup: dict[str, str],
    subdivision_lookup: dict[tuple[str, str], str],
) -> tuple[str | None, str | None]:
    """Resolve a row's city and subdivision names to ids, case-insensitively."""
    city_id = city_lookup.get(row.city_name.lower())
    if city_id is None:
        return None, None

    subdivision_id = None
    if row.subdivision_name:
        subdivision_id = subdivision_lookup.get((city_id, row.subdivision_name.lower()))
    return city_id, subdivision_id


def _detail(index: int, row: ParsedHome, action: str, reason: str | None = None) -> dict[str, Any]:
    detail = {"row": index, "address": row.address, "action": action}
    if reason:
        detail["reason"] = reason
    return detail


async def _write_sync_log(
    result: ImportResult,
    settings: Settings,
    client: httpx.AsyncClient,
) -> None:
    entry = {
        "records_fetched": result.processed,
        "records_added": result.success,
        "status": result.status.value,
        "error_message": (
            f"{result.failed} row(s) failed: {result.duplicates} duplicate, "
            f"{result.unresolved} unknown city, {result.errors} error"
            if result.failed
            else None
        ),
    }
    try:
        await store.insert(SYNC_LOG, [entry], settings, client=client)
    except (StoreError, NetworkError) as e:
        logger.warning("Could not record import in sync log", error=str(e))


async def import_homes(
    rows: list[ParsedHome],
    settings: Settings,
    dry_run: bool = False,
    today: date | None = None,
    client: httpx.AsyncClient | None = None,
    correlation_id: str | None = None,
) -> ImportResult:
    """Insert parsed rows one by one, counting duplicates and unknown cities."""
    correlation_id = correlation_id or generate_correlation_id()
    date_visited = (today or date.today()).isoformat()
    result = ImportResult(dry_run=dry_run)
    start = time.time()

    with operation_logger(
        "import_homes", correlation_id, rows=len(rows), dry_run=dry_run
    ) as op_logger:
        op_logger.with_canvasser(settings.canvasser_id)
        should_close_client = client is None
        http = client or httpx.AsyncClient(timeout=settings.http_timeout)
        try:
            cities = await store.select(CITIES, settings, columns="id, name", client=http)
            subdivisions = await store.select(
                SUBDIVISIONS, settings, columns="id, name, city_id", client=http
            )
            city_lookup = build_city_lookup(cities)
            subdivision_lookup = build_subdivision_lookup(subdivisions)
            op_logger.info(
                "Loaded location lookups",
                cities=len(city_lookup),
                subdivisions=len(subdivision_lookup),
            )

            for index, row in enumerate(rows, 1):
                city_id, subdivision_id = resolve_row(row, city_lookup, subdivision_lookup)

                if city_id is None:
                    result.unresolved += 1
                    result.details.append(
                        _detail(index, row, "failed", f"city not found: {row.city_name}")
                    )
                    op_logger.warning("City not found", row=index, city=row.city_name)
                    continue

                if dry_run:
                    result.success += 1
                    result.details.append(_detail(index, row, "would_add"))
                    continue

                payload = mappers.map_parsed_row_to_insert(
                    address=row.address,
                    street_name=row.street_name,
                    city_id=city_id,
                    subdivision_id=subdivision_id,
                    notes=row.notes,
                    canvasser_id=settings.canvasser_id,
                    date_visited=date_visited,
                )

                try:
                    await store.insert(HOMES, [payload], settings, columns="id", client=http)
                except DuplicateRecordError:
                    result.duplicates += 1
                    result.details.append(
                        _detail(index, row, "failed", "duplicate address in this city")
                    )
                    op_logger.warning("Duplicate home", row=index, address=row.address)
                    continue
                except (StoreError, NetworkError) as e:
                    result.errors += 1
                    result.details.append(_detail(index, row, "failed", e.message))
                    op_logger.error("Error importing home", error=e, row=index)
                    continue

                result.success += 1
                result.details.append(_detail(index, row, "added"))

            if not dry_run:
                await _write_sync_log(result, settings, http)
        finally:
            if should_close_client:
                await http.aclose()

        result.duration_ms = round((time.time() - start) * 1000, 2)
        op_logger.performance(
            "Import finished",
            duration_ms=result.duration_ms,
            success=result.success,
            failed=result.failed,
            duplicates=result.duplicates,
            unresolved=result.unresolved,
        )
        if not dry_run:
            op_logger.audit("import_homes", success=result.success, failed=result.failed)

    return result


async def list_sync_log(
    settings: Settings,
    limit: int = 10,
    client: httpx.AsyncClient | None = None,
) -> list[SyncLogEntry]:
    """Most recent import runs first."""
    rows = await store.select(
        SYNC_LOG,
        settings,
        order=[("sync_date", False)],
        limit=limit,
        client=client,
    )
    return [mappers.map_row_to_sync_log(row) for row in rows]
