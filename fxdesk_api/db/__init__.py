"""
Persistence layer: async engine and sessions, the organization (RLS) context,
and the ORM models of the exchange back-office.
"""

from .base import Base
from .config import Settings, get_settings
from .session import get_async_session, get_engine, session_scope, tenant_context

# Importing models registers every table on Base.metadata
from . import models as models  # noqa: F401

__all__ = [
    "Base",
    "Settings",
    "get_settings",
    "get_engine",
    "get_async_session",
    "session_scope",
    "tenant_context",
    "models",
]
