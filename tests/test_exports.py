import csv
import io
import json
from datetime import datetime

import pytest

from canvasslog.core import exports
from canvasslog.core.mappers import EXPORT_HEADERS
from canvasslog.core.models import City, Home, Subdivision, VisitResult
from canvasslog.utils.exceptions import ValidationError

NOW = datetime(2024, 3, 5, 14, 7, 9)


@pytest.fixture
def homes():
    return [
        Home(
            id="h1",
            address="12 Oak St, Unit 4",
            street_name="Oak St",
            date_visited="2024-03-01",
            result=VisitResult.INTERESTED_CALL_BACK,
            contact_name='Sam "Sammy" Lee',
            phone_number="555-0100",
            follow_up_date="2024-03-08",
            notes="first line\nsecond line",
            latitude=29.78,
            longitude=-95.82,
            created_at="2024-03-01T15:04:05+00:00",
            city=City(id="c1", name="Katy"),
            subdivision=Subdivision(id="s1", name="Cinco Ranch"),
        ),
        Home(id="h2", address="9 Elm Ave", date_visited="2024-03-02"),
    ]


def test_csv_header_and_quoting(homes):
    text = exports.encode_csv(homes)
    lines = text.split("\n")

    assert lines[0] == ",".join(EXPORT_HEADERS)
    assert '"12 Oak St, Unit 4"' in text
    assert '"Sam ""Sammy"" Lee"' in text
    assert '"first line\nsecond line"' in text


def test_csv_parses_back_to_original_values(homes):
    rows = list(csv.reader(io.StringIO(exports.encode_csv(homes))))

    assert rows[1] == [
        "2024-03-01",
        "12 Oak St, Unit 4",
        "Oak St",
        "Katy",
        "Cinco Ranch",
        "Interested - Call Back",
        'Sam "Sammy" Lee',
        "555-0100",
        "2024-03-08",
        "first line\nsecond line",
        "29.78",
        "-95.82",
        "2024-03-01 15:04:05",
    ]
    assert rows[2] == ["2024-03-02", "9 Elm Ave", "", "", "", "", "", "", "", "", "", "", ""]


def test_json_export_is_indented_records(homes):
    text = exports.encode_json(homes)
    records = json.loads(text)

    assert text.startswith('[\n  {\n    "date_visited"')
    assert records[0]["city"] == "Katy"
    assert records[0]["latitude"] == 29.78
    assert records[1]["latitude"] is None
    assert records[1]["subdivision"] == ""


def test_export_filename_uses_timestamp():
    assert exports.export_filename("csv", NOW) == "canvasslog-homes-20240305-140709.csv"
    assert exports.export_filename(exports.ExportFormat.JSON, NOW).endswith(".json")


def test_write_export(tmp_path, homes):
    path = exports.write_export(homes, "json", tmp_path / "out", NOW)

    assert path.name == "canvasslog-homes-20240305-140709.json"
    assert len(json.loads(path.read_text(encoding="utf-8"))) == 2


def test_empty_export_is_rejected(tmp_path):
    with pytest.raises(ValidationError, match="No data to export"):
        exports.write_export([], "csv", tmp_path)
    assert list(tmp_path.iterdir()) == []
