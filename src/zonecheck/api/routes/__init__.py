"""Route group exports."""

from . import delivery, health

__all__ = ["delivery", "health"]
