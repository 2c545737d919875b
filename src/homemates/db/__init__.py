"""Database module for the API.

Provides SQLAlchemy models, async database session management, and utilities.
"""

from homemates.db.database import (
    Base,
    get_db,
    init_db,
)
from homemates.db.models import (
    Agent,
    BrandGuide,
    Call,
    Dataset,
    Lead,
    Property,
    Tenant,
    ToolIntegration,
    User,
)

__all__ = [
    "Agent",
    "Base",
    "BrandGuide",
    "Call",
    "Dataset",
    "Lead",
    "Property",
    "Tenant",
    "ToolIntegration",
    "User",
    "get_db",
    "init_db",
]
