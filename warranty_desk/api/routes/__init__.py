"""Route modules exposed by the API package."""

from . import agenda, metrics, ping, tickets

__all__ = ["agenda", "metrics", "ping", "tickets"]
