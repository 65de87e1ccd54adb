"""
FastAPI dependencies: database sessions, service factories and caller identity.
"""

from .auth import get_access_claims, get_admin_user, get_current_user
from .database import get_db

__all__ = ["get_access_claims", "get_admin_user", "get_current_user", "get_db"]
