"""Google Gmail and Calendar connections."""

from homemates.tools.routes import router as tools_router

__all__ = ["tools_router"]
