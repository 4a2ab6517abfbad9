"""
Item Lifecycle Tests
====================

Lost/found reports: creation, ownership rules, claim / verify / close
transitions and filtered listing.
"""

import os
from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError

# Add parent to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from campus_backend.auth import auth_context_for
from campus_backend.db.models import Item, ItemStatus, User, UserRole
from campus_backend.errors import (
    AccountDisabled, Forbidden, InvalidTransition, NotFound, StoreError,
    SelfActionError, Unauthenticated, ValidationError,
)
from campus_backend.items import ItemLifecycleManager


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def sqlalchemy_db(tmp_path):
    """Configure a fresh SQLAlchemy SQLite DB for tests."""
    from campus_backend.db.session import reset_engine, init_db

    old_db_url = os.environ.get("DATABASE_URL")
    db_path = tmp_path / "items.db"
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


def _make_user(db, name, email, role=UserRole.STUDENT, is_active=True):
    user = User(name=name, email=email, role=role, is_active=is_active, student_id=f"S-{name}")
    db.add(user)
    db.commit()
    db.refresh(user)
    return auth_context_for(user)


@pytest.fixture
def people(db):
    """Alice and Bob are students, Dana is an admin"""
    return {
        "alice": _make_user(db, "Alice", "alice@campus.edu"),
        "bob": _make_user(db, "Bob", "bob@campus.edu"),
        "dana": _make_user(db, "Dana", "dana@campus.edu", role=UserRole.ADMIN),
    }


@pytest.fixture
def manager(db):
    return ItemLifecycleManager(db)


def _item_payload(**overrides):
    data = {
        "title": "Blue Backpack",
        "description": "Blue backpack with a laptop sleeve",
        "category": "bags",
        "type": "lost",
        "location": "Main Library",
        "date": "2024-03-15",
        "images": ["https://images.campus.edu/backpack.jpg"],
        "contact_info": {"phone": "5551234567", "email": "alice@campus.edu"},
    }
    data.update(overrides)
    return data


# =============================================================================
# Create
# =============================================================================

class TestCreateItem:
    """Reporting a lost or found item"""

    def test_create_starts_active_and_unclaimed(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])

        assert item["status"] == "active"
        assert item["claimed_by"] is None
        assert item["claimed_at"] is None
        assert item["is_verified"] is False
        assert item["reported_by"]["name"] == "Alice"
        assert item["reported_by"]["email"] == "alice@campus.edu"
        assert item["contact_info"] == {"phone": "5551234567", "email": "alice@campus.edu"}

    def test_create_requires_caller(self, manager, people):
        with pytest.raises(Unauthenticated):
            manager.create(_item_payload(), None)

    def test_deactivated_caller_rejected(self, db, manager):
        ghost = _make_user(db, "Ghost", "ghost@campus.edu", is_active=False)
        with pytest.raises(AccountDisabled):
            manager.create(_item_payload(), ghost)

    def test_empty_body_lists_every_missing_field(self, manager, people):
        with pytest.raises(ValidationError) as exc_info:
            manager.create({}, people["alice"])

        fields = set(exc_info.value.fields)
        assert {"title", "description", "category", "type", "location", "date", "images", "contact_info"} <= fields

    def test_impossible_calendar_date_rejected(self, manager, people):
        with pytest.raises(ValidationError) as exc_info:
            manager.create(_item_payload(date="2024-02-30"), people["alice"])
        assert exc_info.value.fields == ["date"]

    def test_bad_phone_reported_by_nested_field(self, manager, people):
        payload = _item_payload(contact_info={"phone": "12345", "email": "alice@campus.edu"})
        with pytest.raises(ValidationError) as exc_info:
            manager.create(payload, people["alice"])
        assert "contact_info.phone" in exc_info.value.fields

    def test_short_title_and_empty_images(self, manager, people):
        with pytest.raises(ValidationError) as exc_info:
            manager.create(_item_payload(title="Bag", images=[]), people["alice"])
        assert set(exc_info.value.fields) == {"title", "images"}


# =============================================================================
# Claim / Close / Verify
# =============================================================================

class TestClaimItem:
    """Claim moves active -> claimed exactly once"""

    def test_claim_by_other_student(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])

        claimed = manager.claim(item["id"], people["bob"])

        assert claimed["status"] == "claimed"
        assert claimed["claimed_by"]["name"] == "Bob"
        assert claimed["claimed_at"] is not None

    def test_owner_cannot_claim_own_item(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])

        with pytest.raises(SelfActionError):
            manager.claim(item["id"], people["alice"])
        assert manager.get(item["id"])["status"] == "active"

    def test_second_claim_is_invalid(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])
        manager.claim(item["id"], people["bob"])

        with pytest.raises(InvalidTransition):
            manager.claim(item["id"], people["dana"])
        assert manager.get(item["id"])["claimed_by"]["name"] == "Bob"

    def test_claim_closed_item_is_invalid(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])
        manager.close(item["id"], people["alice"])

        with pytest.raises(InvalidTransition):
            manager.claim(item["id"], people["bob"])

    def test_claim_unknown_item(self, manager, people):
        with pytest.raises(NotFound):
            manager.claim("no-such-item", people["bob"])

    def test_lost_claim_race_reports_invalid_transition(self, db, manager, people):
        item = manager.create(_item_payload(), people["alice"])
        # Another writer flips the item to claimed after we loaded it
        real_load = manager._load

        def stale_load(item_id):
            record = real_load(item_id)
            db.expunge(record)
            db.query(Item).filter(Item.id == item_id).update(
                {"status": ItemStatus.CLAIMED, "claimed_by": people["dana"].user_id},
                synchronize_session=False,
            )
            db.commit()
            manager._load = real_load
            return record

        manager._load = stale_load
        with pytest.raises(InvalidTransition):
            manager.claim(item["id"], people["bob"])
        assert manager.get(item["id"])["claimed_by"]["name"] == "Dana"


class TestCloseItem:
    """Close is unconditional for the reporter or an admin"""

    def test_close_is_idempotent(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])

        first = manager.close(item["id"], people["alice"])
        second = manager.close(item["id"], people["alice"])

        assert first["status"] == "closed"
        assert second["status"] == "closed"

    def test_close_claimed_item(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])
        manager.claim(item["id"], people["bob"])

        closed = manager.close(item["id"], people["dana"])
        assert closed["status"] == "closed"
        # claim record survives the close
        assert closed["claimed_by"]["name"] == "Bob"
        assert closed["claimed_at"] is not None

    def test_stranger_cannot_close(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])
        with pytest.raises(Forbidden):
            manager.close(item["id"], people["bob"])


class TestVerifyItem:
    """Verification is admin-only and independent of status"""

    def test_admin_verifies(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])

        verified = manager.verify(item["id"], people["dana"])

        assert verified["is_verified"] is True
        assert verified["verified_by"]["name"] == "Dana"
        assert verified["verified_at"] is not None
        assert verified["status"] == "active"

    def test_student_cannot_verify(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])
        with pytest.raises(Forbidden) as exc_info:
            manager.verify(item["id"], people["alice"])
        assert "student" in exc_info.value.message

    def test_verify_closed_item(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])
        manager.close(item["id"], people["alice"])
        assert manager.verify(item["id"], people["dana"])["is_verified"] is True


# =============================================================================
# Update / Delete
# =============================================================================

class TestUpdateItem:
    """Field edits by reporter or admin"""

    def test_owner_updates_fields(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])

        updated = manager.update(
            item["id"],
            {"location": "Student Union", "contact_info": {"phone": "5559876543"}},
            people["alice"],
        )

        assert updated["location"] == "Student Union"
        assert updated["contact_info"] == {"phone": "5559876543", "email": "alice@campus.edu"}
        assert updated["title"] == "Blue Backpack"

    def test_lifecycle_fields_are_ignored(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])

        updated = manager.update(
            item["id"],
            {"status": "claimed", "claimed_by": people["bob"].user_id, "is_verified": True},
            people["alice"],
        )

        assert updated["status"] == "active"
        assert updated["claimed_by"] is None
        assert updated["is_verified"] is False

    def test_non_owner_forbidden(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])
        with pytest.raises(Forbidden):
            manager.update(item["id"], {"location": "Gym"}, people["bob"])

    def test_admin_may_update(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])
        updated = manager.update(item["id"], {"category": "electronics"}, people["dana"])
        assert updated["category"] == "electronics"

    def test_invalid_patch_rejected_before_lookup(self, manager, people):
        with pytest.raises(ValidationError):
            manager.update("missing", {"title": "abc"}, people["alice"])


class TestDeleteItem:

    def test_owner_deletes(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])

        result = manager.delete(item["id"], people["alice"])

        assert result == {"message": "Item deleted successfully"}
        with pytest.raises(NotFound):
            manager.get(item["id"])

    def test_other_student_cannot_delete(self, manager, people):
        item = manager.create(_item_payload(), people["alice"])
        with pytest.raises(Forbidden):
            manager.delete(item["id"], people["bob"])


# =============================================================================
# List
# =============================================================================

class TestListItems:
    """Filtering, search, sorting and pagination"""

    @pytest.fixture
    def seeded(self, manager, people):
        backpack = manager.create(_item_payload(), people["alice"])
        phone = manager.create(
            _item_payload(title="Black Phone", description="Black phone in a red case", category="electronics", type="found"),
            people["bob"],
        )
        keys = manager.create(
            _item_payload(title="Dorm Keys", description="Two keys on a green lanyard", category="keys"),
            people["bob"],
        )
        manager.close(keys["id"], people["bob"])
        return {"backpack": backpack, "phone": phone, "keys": keys}

    def test_default_lists_only_active(self, manager, seeded):
        result = manager.list()

        titles = {i["title"] for i in result["items"]}
        assert titles == {"Blue Backpack", "Black Phone"}
        assert result["total"] == 2
        assert result["current_page"] == 1

    def test_empty_status_lists_everything(self, manager, seeded):
        assert manager.list({"status": ""})["total"] == 3

    def test_status_filter(self, manager, seeded):
        result = manager.list({"status": "closed"})
        assert [i["title"] for i in result["items"]] == ["Dorm Keys"]

    def test_type_and_category_filters(self, manager, seeded):
        assert manager.list({"type": "found"})["items"][0]["title"] == "Black Phone"
        assert manager.list({"category": "bags"})["total"] == 1

    def test_search_matches_description(self, manager, seeded):
        result = manager.list({"search": "laptop"})
        assert [i["title"] for i in result["items"]] == ["Blue Backpack"]

    def test_sort_by_title_ascending(self, manager, seeded):
        result = manager.list({"status": "", "sort_by": "title", "sort_order": "asc"})
        assert [i["title"] for i in result["items"]] == ["Black Phone", "Blue Backpack", "Dorm Keys"]

    def test_pagination(self, manager, seeded):
        result = manager.list({"status": "", "limit": "2", "page": "2", "sort_by": "title", "sort_order": "asc"})

        assert result["total"] == 3
        assert result["total_pages"] == 2
        assert result["current_page"] == 2
        assert [i["title"] for i in result["items"]] == ["Dorm Keys"]

    def test_expanded_reporter(self, manager, seeded):
        result = manager.list({"type": "found"})
        assert result["items"][0]["reported_by"]["name"] == "Bob"

    def test_limit_over_maximum_rejected(self, manager, seeded):
        with pytest.raises(ValidationError) as exc_info:
            manager.list({"limit": "101"})
        assert exc_info.value.fields == ["limit"]

    def test_unknown_sort_field_rejected(self, manager, seeded):
        with pytest.raises(ValidationError):
            manager.list({"sort_by": "password"})


# =============================================================================
# Store failures
# =============================================================================

class TestStoreFailures:
    """Driver errors surface as an opaque StoreError after a rollback"""

    def test_failed_commit_rolls_back(self, manager, people, db, monkeypatch):
        rollbacks = []
        real_rollback = db.rollback

        def failing_commit():
            raise OperationalError("INSERT INTO items", {}, Exception("disk I/O error"))

        def recording_rollback():
            rollbacks.append(True)
            real_rollback()

        monkeypatch.setattr(db, "commit", failing_commit)
        monkeypatch.setattr(db, "rollback", recording_rollback)

        with pytest.raises(StoreError) as exc_info:
            manager.create(_item_payload(), people["alice"])

        assert rollbacks == [True]
        assert exc_info.value.message == "Server error"
        assert "disk I/O error" not in str(exc_info.value.to_payload())

        monkeypatch.undo()
        assert manager.list({"status": ""})["total"] == 0

    def test_failed_query_is_store_error(self, manager, people, db, monkeypatch):
        def failing_query(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(db, "query", failing_query)

        with pytest.raises(StoreError):
            manager.list({})
