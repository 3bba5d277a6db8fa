import asyncio

import pytest

from canvasslog.core import locations, notes
from canvasslog.core.models import ADMIN_NOTES, CITIES, HOMES, SUBDIVISIONS
from canvasslog.utils.exceptions import DuplicateRecordError, ValidationError


def test_cities_are_listed_by_name(settings, store, client):
    store.seed(CITIES, name="Katy")
    store.seed(CITIES, name="Cypress")

    cities = asyncio.run(locations.list_cities(settings, client))

    assert [c.name for c in cities] == ["Cypress", "Katy"]


def test_add_city_trims_name(settings, store, client):
    city = asyncio.run(locations.add_city("  Sugar Land ", settings, client))
    assert city.name == "Sugar Land"
    assert store.tables[CITIES][0]["name"] == "Sugar Land"


def test_blank_names_are_rejected(settings, store, client, katy):
    with pytest.raises(ValidationError):
        asyncio.run(locations.add_city("   ", settings, client))
    with pytest.raises(ValidationError):
        asyncio.run(locations.add_subdivision("", katy["id"], settings, client))
    with pytest.raises(ValidationError):
        asyncio.run(locations.add_subdivision("Cinco Ranch", "", settings, client))
    assert store.requests == []


def test_duplicate_city_name(settings, client, katy):
    with pytest.raises(DuplicateRecordError):
        asyncio.run(locations.add_city("Katy", settings, client))


def test_subdivisions_carry_their_city(settings, store, client, katy, cypress):
    asyncio.run(locations.add_subdivision("Cinco Ranch", katy["id"], settings, client))
    store.seed(SUBDIVISIONS, name="Bridgeland", city_id=cypress["id"])

    all_subs = asyncio.run(locations.list_subdivisions(settings, client=client))
    katy_subs = asyncio.run(locations.list_subdivisions(settings, katy["id"], client))

    assert [(s.name, s.city.name) for s in all_subs] == [
        ("Bridgeland", "Cypress"),
        ("Cinco Ranch", "Katy"),
    ]
    assert [s.name for s in katy_subs] == ["Cinco Ranch"]


def test_delete_city_cascades(settings, store, client, katy, cypress):
    store.seed(SUBDIVISIONS, name="Cinco Ranch", city_id=katy["id"])
    store.seed(SUBDIVISIONS, name="Bridgeland", city_id=cypress["id"])
    store.seed(HOMES, address="1 A St", city_id=katy["id"], date_visited="2024-01-01")

    asyncio.run(locations.delete_city(katy["id"], settings, client))

    assert [c["name"] for c in store.tables[CITIES]] == ["Cypress"]
    assert [s["name"] for s in store.tables[SUBDIVISIONS]] == ["Bridgeland"]
    assert store.tables[HOMES][0]["city_id"] is None


def test_prune_city_mirrors_cascade(settings, store, client, katy, cypress):
    store.seed(SUBDIVISIONS, name="Cinco Ranch", city_id=katy["id"])
    store.seed(SUBDIVISIONS, name="Bridgeland", city_id=cypress["id"])
    cities = asyncio.run(locations.list_cities(settings, client))
    subs = asyncio.run(locations.list_subdivisions(settings, client=client))

    cities, subs = locations.prune_city(cities, subs, katy["id"])

    assert [c.name for c in cities] == ["Cypress"]
    assert [s.name for s in subs] == ["Bridgeland"]


def test_find_city_by_name_or_id(settings, client, katy):
    cities = asyncio.run(locations.list_cities(settings, client))
    assert locations.find_city(cities, "KATY").id == katy["id"]
    assert locations.find_city(cities, katy["id"]).name == "Katy"
    assert locations.find_city(cities, "Dallas") is None


def test_notes_newest_first_with_limit(settings, store, client):
    for n in range(3):
        store.seed(ADMIN_NOTES, note=f"note {n}")

    listed = asyncio.run(notes.list_notes(settings, limit=2, client=client))

    assert [n.note for n in listed] == ["note 2", "note 1"]
    assert store.requests[0].url.params["limit"] == "2"


def test_add_note_records_author(settings, store, client):
    note = asyncio.run(notes.add_note("  Call the HOA  ", settings, client=client))

    assert note.note == "Call the HOA"
    assert store.tables[ADMIN_NOTES][0]["user_id"] == "user-1"


def test_blank_note_is_rejected(settings, store, client):
    with pytest.raises(ValidationError):
        asyncio.run(notes.add_note(" ", settings, client=client))
    assert store.requests == []


def test_delete_note(settings, store, client):
    note = store.seed(ADMIN_NOTES, note="old")
    asyncio.run(notes.delete_note(note["id"], settings, client))
    assert store.tables[ADMIN_NOTES] == []
