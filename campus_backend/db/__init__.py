"""
Database Package - SQLAlchemy
=============================

Persistence layer for users, lost/found items and facility issues.
"""

from .models import (
    Base,
    User, Item, Issue,
    UserRole, ItemCategory, ItemType, ItemStatus,
    IssueCategory, IssuePriority, IssueStatus,
)
from .session import get_db, get_db_session, init_db, get_engine, reset_engine

__all__ = [
    # Base
    "Base",
    # Records
    "User", "Item", "Issue",
    # Enums
    "UserRole", "ItemCategory", "ItemType", "ItemStatus",
    "IssueCategory", "IssuePriority", "IssueStatus",
    # Session
    "get_db", "get_db_session", "init_db", "get_engine", "reset_engine",
]
