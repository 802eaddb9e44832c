"""
Database models
"""
from storefront.models.base import Base, SessionLocal, engine, get_db, init_db
from storefront.models.user import User, UserSession, PasswordReset

__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "get_db",
    "init_db",
    "User",
    "UserSession",
    "PasswordReset",
]
