"""
Command-line interface module for canvasslog.

Typer application with Rich formatting; each screen of the visit log is a
command group.
"""

from .main import app

__all__ = ["app"]
