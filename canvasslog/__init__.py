"""
canvasslog - Field canvassing visit log

Log home visits, manage cities and subdivisions, import prospects from CSV
and export the visit list, backed by a hosted PostgREST record store.
"""

from . import cli, clients, config, core, utils

__version__ = "0.1.0"
__all__ = ["cli", "clients", "config", "core", "utils"]
