"""Route group exports."""

from . import customers, health, queue, shops

__all__ = ["customers", "health", "queue", "shops"]
