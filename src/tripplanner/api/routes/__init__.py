"""Route group exports."""

from . import health, places, trips

__all__ = ["health", "places", "trips"]
