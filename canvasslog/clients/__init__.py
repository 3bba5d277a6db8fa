"""
HTTP client modules for external services.

Functional async clients for the record store and the mapping services.
"""

from . import geocoding, geolocation, store

__all__ = ["geocoding", "geolocation", "store"]
