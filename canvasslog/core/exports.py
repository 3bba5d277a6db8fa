"""
Export encoders for the filtered home list.

Delimited text (RFC 4180 minimal quoting) and an indented JSON dump of the
normalized export fields. Files are named with a timestamp suffix.
"""

import csv
import io
import json
from datetime import datetime
from enum import Enum
from pathlib import Path

from ..utils.exceptions import ValidationError
from ..utils.logging import get_logger
from .mappers import EXPORT_HEADERS, map_home_to_export_record, map_home_to_export_row
from .models import Home

logger = get_logger(__name__)

EXPORT_PREFIX = "canvasslog-homes"


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"


def encode_csv(homes: list[Home]) -> str:
    """Header row plus one row per home, quoting fields that need it."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    writer.writerows(map_home_to_export_row(home) for home in homes)
    return buffer.getvalue()


def encode_json(homes: list[Home]) -> str:
    return json.dumps(
        [map_home_to_export_record(home) for home in homes],
        indent=2,
        ensure_ascii=False,
    )


ENCODERS = {
    ExportFormat.CSV: encode_csv,
    ExportFormat.JSON: encode_json,
}


def export_filename(fmt: ExportFormat | str, now: datetime | None = None) -> str:
    fmt = ExportFormat(fmt)
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return f"{EXPORT_PREFIX}-{stamp}.{fmt.value}"


def write_export(
    homes: list[Home],
    fmt: ExportFormat | str,
    directory: Path,
    now: datetime | None = None,
) -> Path:
    """Encode the homes and write them to a timestamped file."""
    if not homes:
        raise ValidationError("No data to export", validation_rule="non-empty list")

    fmt = ExportFormat(fmt)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(fmt, now)
    path.write_text(ENCODERS[fmt](homes), encoding="utf-8")

    logger.info("Exported homes", path=str(path), format=fmt.value, count=len(homes))
    return path
