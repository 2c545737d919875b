"""Uploaded and ingested datasets."""

from homemates.datasets.routes import router as datasets_router

__all__ = ["datasets_router"]
