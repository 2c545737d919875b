"""Owner brand voice and assets."""

from homemates.brand_guide.routes import public_router as public_brand_guide_router
from homemates.brand_guide.routes import router as brand_guide_router

__all__ = ["brand_guide_router", "public_brand_guide_router"]
