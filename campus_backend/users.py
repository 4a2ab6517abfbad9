"""
User Account Manager
====================

Registration, login and profile edits for every user, plus the admin-only
account management surface (role changes, activation toggles, counts and
per-user activity).

Admins may not change their own role or deactivate themselves; that check runs
before the generic admin check so the caller gets the specific message.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from .auth import (
    AuthContext, forbid_self_action, get_auth_service, get_password_hash,
    is_password_too_long, require_authenticated, require_role, token_for_user,
)
from .config import get_settings
from .db.models import Issue, IssueStatus, Item, ItemStatus, User, UserRole
from .errors import AccountDisabled, NotFound, Unauthenticated, ValidationError
from .expand import UserDirectory, expand_issues, expand_items
from .schemas import (
    USER_MESSAGES, LoginRequest, ProfileUpdate, RegisterRequest, RoleUpdate, UserListQuery,
)
from .store import DocumentStore, json_list_contains
from .validation import page_window, total_pages, validate_model

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "createdAt": "created_at",
    "created_at": "created_at",
    "name": "name",
    "email": "email",
    "lastLogin": "last_login",
    "last_login": "last_login",
}

ACTIVITY_LIMIT = 10


def user_to_dict(user: User) -> Dict[str, Any]:
    """Public view of a user (never includes the password hash)"""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "student_id": user.student_id,
        "phone": user.phone,
        "avatar": user.avatar,
        "is_active": bool(user.is_active),
        "created_at": user.created_at,
        "last_login": user.last_login,
    }


class UserAccountManager:
    """Accounts, authentication and admin user management."""

    def __init__(self, db: Session):
        self.db = db
        self.store = DocumentStore(db, User, text_fields=("name", "email", "student_id"))
        self.items = DocumentStore(db, Item)
        self.issues = DocumentStore(db, Issue)
        self.directory = UserDirectory(db)

    def _load(self, user_id: str) -> User:
        user = self.store.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def _session(self, user: User) -> Dict[str, Any]:
        return {
            "access_token": token_for_user(user),
            "token_type": "bearer",
            "user": user_to_dict(user),
        }

    # -------------------------------------------------------------------------
    # Self service
    # -------------------------------------------------------------------------

    def register(self, data: Any) -> Dict[str, Any]:
        payload = validate_model(RegisterRequest, data, USER_MESSAGES)
        if is_password_too_long(payload.password):
            raise ValidationError.single("password", "Password cannot be longer than 72 bytes")

        email = str(payload.email).lower()
        if self.store.count({"email": email}):
            raise ValidationError.single("email", "User already exists")

        role = UserRole.ADMIN if email in get_settings().admin_emails else UserRole.STUDENT
        user = self.store.create({
            "name": payload.name,
            "email": email,
            "password_hash": get_password_hash(payload.password),
            "phone": payload.phone,
            "student_id": payload.student_id,
            "role": role,
            "is_active": True,
            "last_login": datetime.utcnow(),
        })
        logger.info(f"Registered user {user.id} as {role.value}")
        return self._session(user)

    def login(self, data: Any) -> Dict[str, Any]:
        payload = validate_model(LoginRequest, data, USER_MESSAGES)

        user = get_auth_service(self.db).authenticate_user(str(payload.email), payload.password)
        if user is None:
            raise Unauthenticated("Invalid email or password")
        if not user.is_active:
            raise AccountDisabled("Account has been deactivated")

        user = self.store.update_by_id(user.id, {"last_login": datetime.utcnow()})
        return self._session(user)

    def me(self, caller: Optional[AuthContext]) -> Dict[str, Any]:
        caller = require_authenticated(caller)
        return user_to_dict(self._load(caller.user_id))

    def update_profile(self, caller: Optional[AuthContext], patch: Any) -> Dict[str, Any]:
        """Name, phone, student id and avatar only; role, email and activation never change here."""
        caller = require_authenticated(caller)
        changes = validate_model(ProfileUpdate, patch, USER_MESSAGES)

        user = self._load(caller.user_id)
        values = changes.model_dump(exclude_none=True)
        if values:
            user = self.store.update_by_id(user.id, values)
        return user_to_dict(user)

    # -------------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------------

    def list_users(self, filters: Optional[Dict[str, Any]], caller: Optional[AuthContext]) -> Dict[str, Any]:
        require_role(caller, UserRole.ADMIN)
        query = validate_model(UserListQuery, filters or {}, USER_MESSAGES)

        column_name = SORT_FIELDS.get(query.sort_by)
        if column_name is None:
            raise ValidationError.single("sort_by", f"Cannot sort users by {query.sort_by}")
        column = getattr(User, column_name)
        order = column.desc() if query.sort_order == "desc" else column.asc()

        records, total = self.store.find(
            filters={"role": query.role} if query.role else {},
            order_by=(order, User.id.asc()),
            search=query.search,
            **page_window(query.page, query.limit),
        )
        return {
            "users": [user_to_dict(u) for u in records],
            "total": total,
            "total_pages": total_pages(total, query.limit),
            "current_page": query.page,
        }

    def get_user(self, user_id: str, caller: Optional[AuthContext]) -> Dict[str, Any]:
        require_role(caller, UserRole.ADMIN)
        return user_to_dict(self._load(user_id))

    def set_role(self, user_id: str, role: Any, caller: Optional[AuthContext]) -> Dict[str, Any]:
        forbid_self_action(caller, user_id, "You cannot change your own role")
        caller = require_role(caller, UserRole.ADMIN)
        payload = validate_model(RoleUpdate, {"role": role}, USER_MESSAGES)

        user = self._load(user_id)
        previous = user.role
        user = self.store.update_by_id(user.id, {"role": payload.role})
        logger.info(f"User {user.id} role {previous.value} -> {payload.role.value} by {caller.user_id}")
        return user_to_dict(user)

    def toggle_active(self, user_id: str, caller: Optional[AuthContext]) -> Dict[str, Any]:
        forbid_self_action(caller, user_id, "You cannot deactivate your own account")
        caller = require_role(caller, UserRole.ADMIN)

        user = self._load(user_id)
        user = self.store.update_by_id(user.id, {"is_active": not user.is_active})
        logger.info(f"User {user.id} is_active={user.is_active} set by {caller.user_id}")
        return user_to_dict(user)

    def stats(self, caller: Optional[AuthContext]) -> Dict[str, Dict[str, int]]:
        """Simple counts; each is an independent read."""
        require_role(caller, UserRole.ADMIN)
        return {
            "users": {
                "total": self.store.count(),
                "students": self.store.count({"role": UserRole.STUDENT}),
                "admins": self.store.count({"role": UserRole.ADMIN}),
                "active": self.store.count({"is_active": True}),
            },
            "lost_found": {
                "total": self.items.count(),
                "active": self.items.count({"status": ItemStatus.ACTIVE}),
                "claimed": self.items.count({"status": ItemStatus.CLAIMED}),
            },
            "issues": {
                "total": self.issues.count(),
                "pending": self.issues.count({"status": IssueStatus.PENDING}),
                "resolved": self.issues.count({"status": IssueStatus.RESOLVED}),
            },
        }

    def activity(self, user_id: str, caller: Optional[AuthContext]) -> Dict[str, Any]:
        require_role(caller, UserRole.ADMIN)
        self._load(user_id)

        reported_items, _ = self.items.find(
            filters={"reported_by": user_id}, order_by=(Item.created_at.desc(),), limit=ACTIVITY_LIMIT
        )
        reported_issues, _ = self.issues.find(
            filters={"reported_by": user_id}, order_by=(Issue.created_at.desc(),), limit=ACTIVITY_LIMIT
        )
        claimed_items, _ = self.items.find(
            filters={"claimed_by": user_id}, order_by=(Item.claimed_at.desc(),), limit=ACTIVITY_LIMIT
        )
        upvoted_issues, _ = self.issues.find(
            criteria=[json_list_contains(Issue.upvotes, user_id)],
            order_by=(Issue.created_at.desc(),),
            limit=ACTIVITY_LIMIT,
        )
        return {
            "lost_found_items": expand_items(reported_items, self.directory),
            "reported_issues": expand_issues(reported_issues, self.directory),
            "claimed_items": expand_items(claimed_items, self.directory),
            "upvoted_issues": expand_issues(upvoted_issues, self.directory),
        }
