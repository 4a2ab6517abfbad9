"""
Pydantic Schemas for the Campus Desk Service
============================================

Input models carry the field constraints for items, issues and users; the
managers run them through `validation.validate_model` so that every violation
is reported together. Output models describe the expanded records returned by
the API.
"""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime

from .db.models import (
    UserRole, ItemCategory, ItemType, ItemStatus,
    IssueCategory, IssuePriority, IssueStatus,
)
from .validation import PHONE_PATTERN, to_naive_utc


class _Input(BaseModel):
    class Config:
        str_strip_whitespace = True
        extra = "ignore"


# =============================================================================
# ITEMS
# =============================================================================

ITEM_MESSAGES = {
    "title": "Title must be between 5 and 100 characters",
    "description": "Description must be between 10 and 500 characters",
    "category": "Invalid category",
    "type": "Type must be either lost or found",
    "location": "Location must be between 3 and 100 characters",
    "date": "Please provide a valid date",
    "images": "Please provide at least one image",
    "contact_info": "Please provide contact information",
    "contact_info.phone": "Please provide a valid 10-digit phone number",
    "contact_info.email": "Please provide a valid email",
}


class ContactInfo(_Input):
    phone: str = Field(..., pattern=PHONE_PATTERN)
    email: EmailStr


class ContactInfoPatch(_Input):
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    email: Optional[EmailStr] = None


class ItemCreate(_Input):
    """Create lost/found item request"""
    title: str = Field(..., min_length=5, max_length=100)
    description: str = Field(..., min_length=10, max_length=500)
    category: ItemCategory
    type: ItemType
    location: str = Field(..., min_length=3, max_length=100)
    date: datetime
    images: List[str] = Field(..., min_length=1)
    contact_info: ContactInfo

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v):
        return to_naive_utc(v)

    class Config:
        str_strip_whitespace = True
        json_schema_extra = {
            "example": {
                "title": "Blue Backpack",
                "description": "Blue backpack with a laptop sleeve, left in the library",
                "category": "bags",
                "type": "lost",
                "location": "Main Library, 2nd floor",
                "date": "2024-03-15",
                "images": ["https://images.example.edu/backpack.jpg"],
                "contact_info": {"phone": "5551234567", "email": "owner@campus.edu"},
            }
        }


class ItemUpdate(_Input):
    """Partial item update; lifecycle fields are not accepted here"""
    title: Optional[str] = Field(None, min_length=5, max_length=100)
    description: Optional[str] = Field(None, min_length=10, max_length=500)
    category: Optional[ItemCategory] = None
    type: Optional[ItemType] = None
    location: Optional[str] = Field(None, min_length=3, max_length=100)
    date: Optional[datetime] = None
    images: Optional[List[str]] = Field(None, min_length=1)
    contact_info: Optional[ContactInfoPatch] = None

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v):
        return to_naive_utc(v)


class ItemListQuery(_Input):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    category: Optional[ItemCategory] = None
    type: Optional[ItemType] = None
    status: Optional[ItemStatus] = ItemStatus.ACTIVE
    search: Optional[str] = None
    sort_by: str = "createdAt"
    sort_order: str = Field("desc", pattern=r"^(asc|desc)$")

    @field_validator("category", "type", "status", mode="before")
    @classmethod
    def blank_is_unset(cls, v):
        # An empty query value disables the filter (status defaults to active otherwise)
        return None if v == "" else v


# =============================================================================
# ISSUES
# =============================================================================

ISSUE_MESSAGES = {
    "title": "Title must be between 5 and 100 characters",
    "description": "Description must be between 10 and 1000 characters",
    "category": "Invalid category",
    "priority": "Invalid priority",
    "location": "Location must be between 3 and 100 characters",
    "images": "Images must be a list of URLs",
    "estimated_resolution_time": "Please provide a valid date",
    "status": "Invalid status",
    "resolution_notes": "Resolution notes cannot be more than 500 characters",
    "assigned_to": "Please provide a valid user ID",
}


class IssueCreate(_Input):
    """Create facility issue request"""
    title: str = Field(..., min_length=5, max_length=100)
    description: str = Field(..., min_length=10, max_length=1000)
    category: IssueCategory
    priority: IssuePriority = IssuePriority.MEDIUM
    location: str = Field(..., min_length=3, max_length=100)
    images: List[str] = Field(default_factory=list)
    estimated_resolution_time: Optional[datetime] = None

    @field_validator("estimated_resolution_time")
    @classmethod
    def normalize_eta(cls, v):
        return to_naive_utc(v)

    @field_validator("priority", mode="before")
    @classmethod
    def default_priority(cls, v):
        return IssuePriority.MEDIUM if v is None or v == "" else v


class IssueUpdate(_Input):
    """Partial issue update; status, assignment and resolution are separate operations"""
    title: Optional[str] = Field(None, min_length=5, max_length=100)
    description: Optional[str] = Field(None, min_length=10, max_length=1000)
    category: Optional[IssueCategory] = None
    priority: Optional[IssuePriority] = None
    location: Optional[str] = Field(None, min_length=3, max_length=100)
    images: Optional[List[str]] = None
    estimated_resolution_time: Optional[datetime] = None

    @field_validator("estimated_resolution_time")
    @classmethod
    def normalize_eta(cls, v):
        return to_naive_utc(v)


class IssueAssign(_Input):
    assigned_to: str = Field(..., min_length=1, max_length=36)


class IssueStatusUpdate(_Input):
    status: IssueStatus
    resolution_notes: Optional[str] = Field(None, max_length=500)


class IssueListQuery(_Input):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    category: Optional[IssueCategory] = None
    status: Optional[IssueStatus] = None
    priority: Optional[IssuePriority] = None
    search: Optional[str] = None
    sort_by: str = "createdAt"
    sort_order: str = Field("desc", pattern=r"^(asc|desc)$")

    @field_validator("category", "status", "priority", mode="before")
    @classmethod
    def blank_is_unset(cls, v):
        return None if v == "" else v


# =============================================================================
# USERS
# =============================================================================

USER_MESSAGES = {
    "name": "Name must be between 2 and 50 characters",
    "email": "Please provide a valid email",
    "password": "Password must be at least 6 characters",
    "phone": "Please provide a valid 10-digit phone number",
    "student_id": "Student ID cannot be more than 50 characters",
    "avatar": "Avatar must be a URL of at most 500 characters",
    "role": "Invalid role",
}


class RegisterRequest(_Input):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    student_id: Optional[str] = Field(None, max_length=50)


class LoginRequest(_Input):
    email: EmailStr
    password: str


class ProfileUpdate(_Input):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    student_id: Optional[str] = Field(None, max_length=50)
    avatar: Optional[str] = Field(None, max_length=500)


class RoleUpdate(_Input):
    role: UserRole


class UserListQuery(_Input):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    role: Optional[UserRole] = None
    search: Optional[str] = None
    sort_by: str = "createdAt"
    sort_order: str = Field("desc", pattern=r"^(asc|desc)$")

    @field_validator("role", mode="before")
    @classmethod
    def blank_is_unset(cls, v):
        return None if v == "" else v


# =============================================================================
# OUTPUT SCHEMAS
# =============================================================================

class UserSummary(BaseModel):
    """Expanded user reference"""
    id: str
    name: str
    email: str
    student_id: Optional[str] = None


class ContactInfoOut(BaseModel):
    phone: str
    email: str


class ItemResponse(BaseModel):
    id: str
    title: str
    description: str
    category: ItemCategory
    type: ItemType
    location: str
    date: datetime
    images: List[str]
    status: ItemStatus
    reported_by: Optional[UserSummary] = None
    claimed_by: Optional[UserSummary] = None
    claimed_at: Optional[datetime] = None
    contact_info: ContactInfoOut
    is_verified: bool
    verified_by: Optional[UserSummary] = None
    verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class IssueResponse(BaseModel):
    id: str
    title: str
    description: str
    category: IssueCategory
    priority: IssuePriority
    location: str
    images: List[str]
    status: IssueStatus
    reported_by: Optional[UserSummary] = None
    assigned_to: Optional[UserSummary] = None
    upvotes: List[str]
    upvote_count: int
    upvoters: List[UserSummary] = []
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[UserSummary] = None
    resolution_notes: Optional[str] = None
    estimated_resolution_time: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ItemListResponse(BaseModel):
    items: List[ItemResponse]
    total: int
    total_pages: int
    current_page: int


class IssueListResponse(BaseModel):
    issues: List[IssueResponse]
    total: int
    total_pages: int
    current_page: int


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    role: UserRole
    student_id: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int
    total_pages: int
    current_page: int


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")
    timestamp: datetime = Field(..., description="Current timestamp")


class ErrorDetail(BaseModel):
    """Structured error detail"""
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(None, description="Optional error details")


class ErrorResponse(BaseModel):
    """Structured error response"""
    error: ErrorDetail


class StatsResponse(BaseModel):
    users: Dict[str, int]
    lost_found: Dict[str, int]
    issues: Dict[str, int]
