"""Public API routers exposed by the FastAPI application."""

from . import files, health

__all__ = ["files", "health"]
