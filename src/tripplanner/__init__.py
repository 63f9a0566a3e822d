"""Multi-day trip planning service with automatic driving routes."""

__version__ = "0.1.0"
