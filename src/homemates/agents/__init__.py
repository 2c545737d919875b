"""ElevenLabs voice agents configured by owners."""

from homemates.agents.routes import public_router as public_agents_router
from homemates.agents.routes import router as agents_router

__all__ = ["agents_router", "public_agents_router"]
