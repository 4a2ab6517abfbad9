"""
Item Lifecycle Manager
======================

Lost/found item reports:

    active --claim--> claimed
    active | claimed --close--> closed   (close is unconditional and idempotent)

Verification is an independent, admin-only flag and does not touch status.
Every public method returns the expanded record (user references resolved to
summaries).
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from .auth import AuthContext, require_authenticated, require_owner_or_admin, require_role
from .db.models import Item, ItemStatus, UserRole
from .errors import InvalidTransition, NotFound, SelfActionError, ValidationError
from .expand import UserDirectory, expand_item, expand_items
from .schemas import ITEM_MESSAGES, ItemCreate, ItemListQuery, ItemUpdate
from .store import DocumentStore
from .validation import page_window, total_pages, validate_model

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "createdAt": "created_at",
    "created_at": "created_at",
    "updatedAt": "updated_at",
    "updated_at": "updated_at",
    "date": "date",
    "title": "title",
}


class ItemLifecycleManager:
    """Validation, ownership rules and state transitions for lost/found items."""

    def __init__(self, db: Session):
        self.db = db
        self.store = DocumentStore(db, Item)
        self.users = UserDirectory(db)

    def _load(self, item_id: str) -> Item:
        item = self.store.find_by_id(item_id)
        if item is None:
            raise NotFound("Item not found")
        return item

    def _expanded(self, item: Item) -> Dict[str, Any]:
        return expand_item(item, self.users)

    # -------------------------------------------------------------------------
    # Reads (public)
    # -------------------------------------------------------------------------

    def get(self, item_id: str) -> Dict[str, Any]:
        return self._expanded(self._load(item_id))

    def list(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Filtered, sorted, paginated listing. `status` defaults to active; an
        empty string disables the status filter.
        """
        query = validate_model(ItemListQuery, filters or {}, ITEM_MESSAGES)

        column_name = SORT_FIELDS.get(query.sort_by)
        if column_name is None:
            raise ValidationError.single("sort_by", f"Cannot sort items by {query.sort_by}")
        column = getattr(Item, column_name)
        order = column.desc() if query.sort_order == "desc" else column.asc()

        store_filters = {}
        if query.category:
            store_filters["category"] = query.category
        if query.type:
            store_filters["type"] = query.type
        if query.status:
            store_filters["status"] = query.status

        records, total = self.store.find(
            filters=store_filters,
            order_by=(order, Item.id.asc()),
            search=query.search,
            **page_window(query.page, query.limit),
        )
        return {
            "items": expand_items(records, self.users),
            "total": total,
            "total_pages": total_pages(total, query.limit),
            "current_page": query.page,
        }

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create(self, data: Any, owner: Optional[AuthContext]) -> Dict[str, Any]:
        owner = require_authenticated(owner)
        payload = validate_model(ItemCreate, data, ITEM_MESSAGES)

        item = self.store.create({
            "title": payload.title,
            "description": payload.description,
            "category": payload.category,
            "type": payload.type,
            "location": payload.location,
            "date": payload.date,
            "images": list(payload.images),
            "contact_phone": payload.contact_info.phone,
            "contact_email": str(payload.contact_info.email),
            "status": ItemStatus.ACTIVE,
            "reported_by": owner.user_id,
            "claimed_by": None,
            "claimed_at": None,
            "is_verified": False,
        })
        logger.info(f"Item {item.id} ({payload.type.value}) reported by {owner.user_id}")
        return self._expanded(item)

    def update(self, item_id: str, patch: Any, caller: Optional[AuthContext]) -> Dict[str, Any]:
        """Field edits by reporter or admin. Lifecycle fields in the patch are ignored."""
        caller = require_authenticated(caller)
        changes = validate_model(ItemUpdate, patch, ITEM_MESSAGES)

        item = self._load(item_id)
        require_owner_or_admin(caller, item.reported_by, "Not authorized to update this item")

        values = changes.model_dump(exclude_none=True, exclude={"contact_info"})
        if changes.contact_info is not None:
            if changes.contact_info.phone is not None:
                values["contact_phone"] = changes.contact_info.phone
            if changes.contact_info.email is not None:
                values["contact_email"] = str(changes.contact_info.email)

        if values:
            item = self.store.update_by_id(item.id, values)
            logger.info(f"Item {item.id} updated by {caller.user_id}: {sorted(values)}")
        return self._expanded(item)

    def claim(self, item_id: str, caller: Optional[AuthContext]) -> Dict[str, Any]:
        caller = require_authenticated(caller)
        item = self._load(item_id)

        if item.status != ItemStatus.ACTIVE:
            raise InvalidTransition("Item is not available for claiming")
        if caller.owns(item.reported_by):
            raise SelfActionError("You cannot claim your own item")

        # Conditional write: only one concurrent claimant can flip active -> claimed
        claimed = self.store.update_where(
            item.id,
            {"status": ItemStatus.ACTIVE},
            {
                "status": ItemStatus.CLAIMED,
                "claimed_by": caller.user_id,
                "claimed_at": datetime.utcnow(),
            },
        )
        if not claimed:
            self._load(item_id)
            raise InvalidTransition("Item is not available for claiming")

        logger.info(f"Item {item_id} claimed by {caller.user_id}")
        return self._expanded(self._load(item_id))

    def verify(self, item_id: str, caller: Optional[AuthContext]) -> Dict[str, Any]:
        """Admin-only; allowed in any status."""
        caller = require_role(caller, UserRole.ADMIN)
        item = self._load(item_id)

        item = self.store.update_by_id(item.id, {
            "is_verified": True,
            "verified_by": caller.user_id,
            "verified_at": datetime.utcnow(),
        })
        logger.info(f"Item {item.id} verified by {caller.user_id}")
        return self._expanded(item)

    def close(self, item_id: str, caller: Optional[AuthContext]) -> Dict[str, Any]:
        """
        Reporter or admin. No precondition: closing a closed item succeeds.

        Only the status changes. A claimed item keeps its claimant and
        claim time after it is closed.
        """
        caller = require_authenticated(caller)
        item = self._load(item_id)
        require_owner_or_admin(caller, item.reported_by, "Not authorized to close this item")

        previous = item.status
        item = self.store.update_by_id(item.id, {"status": ItemStatus.CLOSED})
        logger.info(f"Item {item.id} closed by {caller.user_id} (was {previous.value})")
        return self._expanded(item)

    def delete(self, item_id: str, caller: Optional[AuthContext]) -> Dict[str, str]:
        caller = require_authenticated(caller)
        item = self._load(item_id)
        require_owner_or_admin(caller, item.reported_by, "Not authorized to delete this item")

        self.store.delete_by_id(item.id)
        logger.info(f"Item {item_id} deleted by {caller.user_id}")
        return {"message": "Item deleted successfully"}
