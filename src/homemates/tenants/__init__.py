"""Tenants and their housing requirements."""

from homemates.tenants.routes import router as tenants_router

__all__ = ["tenants_router"]
