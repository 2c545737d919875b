"""Property listings: browsing, matching and owner management."""

from homemates.properties.routes import router as properties_router

__all__ = ["properties_router"]
