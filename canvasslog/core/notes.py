"""Admin journal notes shown on the dashboard."""

import httpx

from ..clients import store
from ..config import Settings
from ..utils.exceptions import ValidationError
from ..utils.logging import get_logger
from . import mappers
from .models import ADMIN_NOTES, AdminNote

logger = get_logger(__name__)

NOTES_LIMIT = 50


async def list_notes(
    settings: Settings,
    limit: int = NOTES_LIMIT,
    client: httpx.AsyncClient | None = None,
) -> list[AdminNote]:
    """Most recent notes first."""
    rows = await store.select(
        ADMIN_NOTES,
        settings,
        order=[("created_at", False)],
        limit=limit,
        client=client,
    )
    return [mappers.map_row_to_note(row) for row in rows]


async def add_note(
    text: str,
    settings: Settings,
    user_id: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> AdminNote:
    text = (text or "").strip()
    if not text:
        raise ValidationError("Note cannot be blank", field_name="note")

    rows = await store.insert(
        ADMIN_NOTES,
        [{"note": text, "user_id": user_id or settings.canvasser_id}],
        settings,
        client=client,
    )
    note = mappers.map_row_to_note(rows[0])
    logger.audit("add_note", note_id=note.id)
    return note


async def delete_note(
    note_id: str, settings: Settings, client: httpx.AsyncClient | None = None
) -> None:
    await store.delete(ADMIN_NOTES, [("id", "eq", note_id)], settings, client=client)
    logger.audit("delete_note", note_id=note_id)
