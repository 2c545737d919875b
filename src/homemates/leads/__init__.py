"""Leads: tenant-property matches and the owner pipeline."""

from homemates.leads.routes import router as leads_router

__all__ = ["leads_router"]
