"""
SQLAlchemy Models for Database
==============================

Schema for the campus lost-found and facility issue tracker:
- Users (students and administrators)
- Lost/found item reports
- Facility issue reports with an upvote set

Foreign keys to users are plain id columns; joining them into user summaries
is done explicitly by `campus_backend.expand`, not by ORM relationships.

Supports both PostgreSQL and SQLite via SQLAlchemy.
"""

import enum
from datetime import datetime
from sqlalchemy import (
    Column, String, Text, Integer, Boolean, DateTime, Enum, ForeignKey, Index, JSON
)
from sqlalchemy.orm import declarative_base
import uuid

Base = declarative_base()


def generate_uuid():
    return str(uuid.uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, enum.Enum):
    """System-level roles"""
    STUDENT = "student"
    ADMIN = "admin"


class ItemCategory(str, enum.Enum):
    ELECTRONICS = "electronics"
    CLOTHING = "clothing"
    BOOKS = "books"
    ACCESSORIES = "accessories"
    DOCUMENTS = "documents"
    KEYS = "keys"
    BAGS = "bags"
    OTHER = "other"


class ItemType(str, enum.Enum):
    LOST = "lost"
    FOUND = "found"


class ItemStatus(str, enum.Enum):
    """Item lifecycle status. CLOSED is terminal."""
    ACTIVE = "active"
    CLAIMED = "claimed"
    CLOSED = "closed"


class IssueCategory(str, enum.Enum):
    INFRASTRUCTURE = "infrastructure"
    ELECTRICAL = "electrical"
    PLUMBING = "plumbing"
    CLEANING = "cleaning"
    SECURITY = "security"
    INTERNET = "internet"
    FURNITURE = "furniture"
    OTHER = "other"


class IssuePriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class IssueStatus(str, enum.Enum):
    """Issue lifecycle status"""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


# =============================================================================
# USERS
# =============================================================================

class User(Base):
    """Campus user"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=True)
    role = Column(Enum(UserRole), default=UserRole.STUDENT, nullable=False)
    student_id = Column(String(50), nullable=True)
    phone = Column(String(20), nullable=True)
    avatar = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_user_role", "role"),
    )


# =============================================================================
# LOST / FOUND ITEMS
# =============================================================================

class Item(Base):
    """Lost or found item report"""
    __tablename__ = "items"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(Enum(ItemCategory), nullable=False)
    type = Column(Enum(ItemType), nullable=False)
    location = Column(String(100), nullable=False)
    date = Column(DateTime, nullable=False)
    images = Column(JSON, default=list, nullable=False)  # opaque URLs
    status = Column(Enum(ItemStatus), default=ItemStatus.ACTIVE, nullable=False)

    reported_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    claimed_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    claimed_at = Column(DateTime, nullable=True)

    contact_phone = Column(String(20), nullable=False)
    contact_email = Column(String(255), nullable=False)

    is_verified = Column(Boolean, default=False, nullable=False)
    verified_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    verified_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_item_category_type_status", "category", "type", "status"),
        Index("ix_item_reported_by", "reported_by"),
        Index("ix_item_claimed_by", "claimed_by"),
    )


# =============================================================================
# FACILITY ISSUES
# =============================================================================

class Issue(Base):
    """Facility issue report"""
    __tablename__ = "issues"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(Enum(IssueCategory), nullable=False)
    priority = Column(Enum(IssuePriority), default=IssuePriority.MEDIUM, nullable=False)
    location = Column(String(100), nullable=False)
    images = Column(JSON, default=list, nullable=False)
    status = Column(Enum(IssueStatus), default=IssueStatus.PENDING, nullable=False)

    reported_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    assigned_to = Column(String(36), ForeignKey("users.id"), nullable=True)

    # Upvote set persisted as a sorted list of user ids; count is derived
    upvotes = Column(JSON, default=list, nullable=False)
    upvote_count = Column(Integer, default=0, nullable=False)

    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    resolution_notes = Column(String(500), nullable=True)
    estimated_resolution_time = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_issue_category_status_priority", "category", "status", "priority"),
        Index("ix_issue_reported_by", "reported_by"),
    )
