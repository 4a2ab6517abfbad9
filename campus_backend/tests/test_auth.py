"""
Authorization Tests
===================

Tests for the role and ownership gate, password hashing, access tokens and
AuthService lookups.
"""

import os
from datetime import timedelta
from pathlib import Path

import pytest

# Add parent to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from campus_backend.auth import (
    AuthContext, AuthService,
    create_access_token, decode_token, forbid_self_action, get_password_hash,
    is_password_too_long, require_authenticated, require_owner_or_admin,
    require_role, token_for_user, verify_password,
)
from campus_backend.db.models import User, UserRole
from campus_backend.errors import AccountDisabled, Forbidden, Unauthenticated


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def sqlalchemy_db(tmp_path):
    """Configure a fresh SQLAlchemy SQLite DB for tests."""
    from campus_backend.db.session import reset_engine, init_db

    old_db_url = os.environ.get("DATABASE_URL")
    db_path = tmp_path / "auth.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
    reset_engine()
    init_db()

    yield

    if old_db_url is not None:
        os.environ["DATABASE_URL"] = old_db_url
    else:
        os.environ.pop("DATABASE_URL", None)
    reset_engine()


@pytest.fixture
def db(sqlalchemy_db):
    from campus_backend.db.session import get_db_session

    with get_db_session() as session:
        yield session


def _context(role=UserRole.STUDENT, user_id="u-1", is_active=True):
    return AuthContext(
        user_id=user_id,
        name="Test User",
        email=f"{user_id}@campus.edu",
        role=role,
        is_active=is_active,
    )


# =============================================================================
# Gate Tests
# =============================================================================

class TestRequireAuthenticated:
    """Caller must exist and be active"""

    def test_missing_caller(self):
        with pytest.raises(Unauthenticated):
            require_authenticated(None)

    def test_inactive_caller(self):
        with pytest.raises(AccountDisabled):
            require_authenticated(_context(is_active=False))

    def test_active_caller_passes_through(self):
        auth = _context()
        assert require_authenticated(auth) is auth


class TestRequireRole:
    """Role checks report the caller's role"""

    def test_admin_passes(self):
        auth = _context(role=UserRole.ADMIN)
        assert require_role(auth, UserRole.ADMIN) is auth

    def test_student_forbidden_with_role_in_message(self):
        with pytest.raises(Forbidden) as exc_info:
            require_role(_context(), UserRole.ADMIN)
        assert exc_info.value.message == "User role student is not authorized to access this route"

    def test_anonymous_is_unauthenticated_not_forbidden(self):
        with pytest.raises(Unauthenticated):
            require_role(None, UserRole.ADMIN)

    def test_inactive_admin_is_disabled(self):
        with pytest.raises(AccountDisabled):
            require_role(_context(role=UserRole.ADMIN, is_active=False), UserRole.ADMIN)


class TestRequireOwnerOrAdmin:

    def test_owner_allowed(self):
        auth = _context(user_id="owner")
        assert require_owner_or_admin(auth, "owner") is auth

    def test_admin_allowed_for_any_owner(self):
        auth = _context(role=UserRole.ADMIN, user_id="admin")
        assert require_owner_or_admin(auth, "someone-else") is auth

    def test_other_student_forbidden(self):
        with pytest.raises(Forbidden) as exc_info:
            require_owner_or_admin(_context(user_id="bob"), "alice", "Not authorized to update this item")
        assert exc_info.value.message == "Not authorized to update this item"

    def test_missing_owner_never_matches(self):
        with pytest.raises(Forbidden):
            require_owner_or_admin(_context(user_id="bob"), None)


class TestForbidSelfAction:

    def test_self_rejected(self):
        with pytest.raises(Forbidden) as exc_info:
            forbid_self_action(_context(role=UserRole.ADMIN, user_id="a"), "a", "You cannot change your own role")
        assert exc_info.value.message == "You cannot change your own role"

    def test_other_target_allowed(self):
        auth = _context(role=UserRole.ADMIN, user_id="a")
        assert forbid_self_action(auth, "b", "nope") is auth


# =============================================================================
# Password / Token Tests
# =============================================================================

class TestPasswords:

    def test_hash_and_verify(self):
        hashed = get_password_hash("secret123")
        assert hashed != "secret123"
        assert verify_password("secret123", hashed) is True
        assert verify_password("wrong-password", hashed) is False

    def test_long_password_detected(self):
        assert is_password_too_long("x" * 73) is True
        assert is_password_too_long("x" * 72) is False

    def test_long_password_never_verifies(self):
        hashed = get_password_hash("secret123")
        assert verify_password("x" * 100, hashed) is False

    def test_long_password_cannot_be_hashed(self):
        with pytest.raises(ValueError):
            get_password_hash("x" * 100)


class TestTokens:

    def test_round_trip(self):
        token = create_access_token({"sub": "user-1"})
        payload = decode_token(token)

        assert payload["sub"] == "user-1"
        assert payload["type"] == "access"

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-10))
        assert decode_token(token) is None

    def test_garbage_token_rejected(self):
        assert decode_token("not-a-jwt") is None


# =============================================================================
# AuthService Tests
# =============================================================================

class TestAuthService:
    """Database-backed lookups"""

    @pytest.fixture
    def users(self, db):
        active = User(
            name="Alice", email="alice@campus.edu", role=UserRole.STUDENT,
            password_hash=get_password_hash("secret123"),
        )
        disabled = User(
            name="Carl", email="carl@campus.edu", role=UserRole.ADMIN,
            password_hash=get_password_hash("secret123"), is_active=False,
        )
        db.add_all([active, disabled])
        db.commit()
        return {"active": active, "disabled": disabled}

    def test_context_for_existing_user(self, db, users):
        auth = AuthService(db).get_auth_context(users["active"].id)

        assert auth is not None
        assert auth.name == "Alice"
        assert auth.role == UserRole.STUDENT
        assert auth.is_admin is False

    def test_context_kept_for_inactive_user(self, db, users):
        auth = AuthService(db).get_auth_context(users["disabled"].id)

        assert auth is not None
        assert auth.is_active is False
        with pytest.raises(AccountDisabled):
            require_authenticated(auth)

    def test_unknown_user_has_no_context(self, db, users):
        assert AuthService(db).get_auth_context("missing") is None

    def test_authenticate_is_case_insensitive_on_email(self, db, users):
        user = AuthService(db).authenticate_user("ALICE@campus.edu", "secret123")
        assert user is not None
        assert user.id == users["active"].id

    def test_authenticate_wrong_password(self, db, users):
        assert AuthService(db).authenticate_user("alice@campus.edu", "nope-nope") is None

    def test_token_for_user_carries_role(self, db, users):
        payload = decode_token(token_for_user(users["disabled"]))
        assert payload["sub"] == users["disabled"].id
        assert payload["role"] == "admin"
