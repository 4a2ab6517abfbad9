"""
Authorization Gate with JWT Support
===================================

Role and ownership checks shared by the item, issue and user managers.

System Roles:
- student: Reports items/issues, edits and closes their own records, claims items, upvotes issues
- admin: Everything a student can do, plus verify items, assign/resolve issues, manage users

Authorization Flow:
1. Load user from the `Authorization: Bearer <jwt>` header
2. Build an AuthContext (missing user -> no context)
3. Managers call the gate functions below, which raise the error taxonomy
   from `errors.py` (Unauthenticated / AccountDisabled / Forbidden)
"""

import logging
from typing import Optional
from dataclasses import dataclass
from datetime import datetime, timedelta

import jwt
from fastapi import Depends, Header
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .config import get_settings
from .db.models import User, UserRole
from .db.session import get_db
from .errors import AccountDisabled, Forbidden, Unauthenticated

logger = logging.getLogger(__name__)


# =============================================================================
# PASSWORD HASHING
# =============================================================================

# bcrypt truncates passwords at 72 bytes; enforce to avoid 500s.
MAX_PASSWORD_BYTES = 72

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def is_password_too_long(password: str) -> bool:
    """Return True if password exceeds bcrypt 72-byte limit."""
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash"""
    if is_password_too_long(plain_password):
        logger.warning("Auth failed: password exceeds bcrypt 72-byte limit")
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.warning(f"Auth failed: invalid password format ({e})")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password"""
    if is_password_too_long(password):
        raise ValueError("Password exceeds bcrypt 72-byte limit")
    return pwd_context.hash(password)


# =============================================================================
# JWT TOKEN HANDLING
# =============================================================================

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token"""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes))
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token"""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as e:
        logger.warning(f"Invalid JWT token: {e}")
        return None


def token_for_user(user: User) -> str:
    return create_access_token({"sub": user.id, "email": user.email, "role": user.role.value})


# =============================================================================
# AUTH CONTEXT
# =============================================================================

@dataclass
class AuthContext:
    """Authorization context for a request"""
    user_id: str
    name: str
    email: str
    role: UserRole
    is_active: bool = True
    student_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def owns(self, owner_id: Optional[str]) -> bool:
        return owner_id is not None and owner_id == self.user_id


def auth_context_for(user: User) -> AuthContext:
    return AuthContext(
        user_id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        is_active=bool(user.is_active),
        student_id=user.student_id,
    )


# =============================================================================
# GATE
# =============================================================================

def require_authenticated(auth: Optional[AuthContext]) -> AuthContext:
    """Caller must be present and active."""
    if auth is None:
        raise Unauthenticated()
    if not auth.is_active:
        logger.warning(f"Auth denied: account {auth.user_id} is deactivated")
        raise AccountDisabled()
    return auth


def require_role(auth: Optional[AuthContext], role: UserRole) -> AuthContext:
    auth = require_authenticated(auth)
    if auth.role != role:
        logger.warning(f"Permission denied: {auth.user_id} is {auth.role.value}, needs {role.value}")
        raise Forbidden(f"User role {auth.role.value} is not authorized to access this route")
    return auth


def require_owner_or_admin(
    auth: Optional[AuthContext], owner_id: Optional[str], message: Optional[str] = None
) -> AuthContext:
    auth = require_authenticated(auth)
    if not (auth.owns(owner_id) or auth.is_admin):
        logger.warning(f"Resource access denied: {auth.user_id} is neither owner nor admin")
        raise Forbidden(message)
    return auth


def forbid_self_action(auth: Optional[AuthContext], target_user_id: str, message: str) -> AuthContext:
    """Self-protection rule for account management (checked before the admin check)."""
    auth = require_authenticated(auth)
    if auth.user_id == target_user_id:
        logger.warning(f"Self action rejected for {auth.user_id}: {message}")
        raise Forbidden(message)
    return auth


# =============================================================================
# AUTH SERVICE (SQLAlchemy-based)
# =============================================================================

class AuthService:
    """Builds auth contexts from the users table"""

    def __init__(self, db: Session):
        self.db = db

    def get_auth_context(self, user_id: str) -> Optional[AuthContext]:
        """
        Build auth context for a user.

        Args:
            user_id: User ID from the JWT `sub` claim

        Returns:
            AuthContext if the user exists (inactive users included, so the
            gate can report AccountDisabled), None otherwise
        """
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            logger.warning(f"Auth failed: user {user_id} not found")
            return None
        return auth_context_for(user)

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate a user by email and password.

        Returns the User (active or not) when the credentials match, None otherwise.
        """
        user = self.db.query(User).filter(User.email == email.lower()).first()
        if not user:
            logger.warning(f"Auth failed: email {email} not found")
            return None

        if not user.password_hash:
            logger.warning(f"Auth failed: user {user.id} has no password set")
            return None

        if not verify_password(password, user.password_hash):
            logger.warning(f"Auth failed: invalid password for user {user.id}")
            return None

        return user


def get_auth_service(db: Session) -> AuthService:
    """Get AuthService instance for a database session"""
    return AuthService(db)


# =============================================================================
# FASTAPI DEPENDENCY HELPERS
# =============================================================================

async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: Session = Depends(get_db),
) -> Optional[AuthContext]:
    """
    Optional caller from `Authorization: Bearer <jwt>`.

    No header means anonymous (public reads); a header that does not resolve to
    a user is rejected.
    """
    if not authorization:
        return None
    if not authorization.lower().startswith("bearer "):
        raise Unauthenticated("Not authorized, invalid authorization header")

    payload = decode_token(authorization.split(" ", 1)[1].strip())
    if not payload or payload.get("type") != "access" or not payload.get("sub"):
        raise Unauthenticated("Not authorized, token failed")

    auth = get_auth_service(db).get_auth_context(payload["sub"])
    if not auth:
        raise Unauthenticated("Not authorized, user not found")
    return auth


async def require_auth(
    auth: Optional[AuthContext] = Depends(get_current_user)
) -> AuthContext:
    """Require an authenticated, active user"""
    return require_authenticated(auth)
