"""
Core business logic for canvasslog.

Pure filtering, mapping and statistics functions, plus the flows that read
and write the record store.
"""

from . import (
    duplicates,
    exports,
    filters,
    forms,
    homes,
    imports,
    locations,
    mappers,
    mapping,
    models,
    notes,
    stats,
    visits,
)

__all__ = [
    "duplicates",
    "exports",
    "filters",
    "forms",
    "homes",
    "imports",
    "locations",
    "mappers",
    "mapping",
    "models",
    "notes",
    "stats",
    "visits",
]
