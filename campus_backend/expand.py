"""
Record expansion ("populate").

Ownership and assignment are stored as plain user-id columns. Responses carry
the expanded view: every user reference is replaced by a summary object. The
ids stay the source of truth; the summary is a read-time view only.
"""

import enum
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from .db.models import Issue, Item, User

ITEM_USER_FIELDS = ("reported_by", "claimed_by", "verified_by")
ISSUE_USER_FIELDS = ("reported_by", "assigned_to", "resolved_by")


def _enum_value(v):
    return v.value if isinstance(v, enum.Enum) else v


def user_summary(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "student_id": user.student_id,
    }


class UserDirectory:
    """User-lookup collaborator used to expand foreign keys in one query."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: Optional[str]) -> Optional[User]:
        if not user_id:
            return None
        return self.db.query(User).filter(User.id == user_id).first()

    def exists(self, user_id: Optional[str]) -> bool:
        return self.get(user_id) is not None

    def summaries(self, user_ids: Iterable[Optional[str]]) -> Dict[str, Dict[str, Any]]:
        ids = {uid for uid in user_ids if uid}
        if not ids:
            return {}
        users = self.db.query(User).filter(User.id.in_(ids)).all()
        return {u.id: user_summary(u) for u in users}


def item_to_dict(item: Item) -> Dict[str, Any]:
    return {
        "id": item.id,
        "title": item.title,
        "description": item.description,
        "category": _enum_value(item.category),
        "type": _enum_value(item.type),
        "location": item.location,
        "date": item.date,
        "images": list(item.images or []),
        "status": _enum_value(item.status),
        "reported_by": item.reported_by,
        "claimed_by": item.claimed_by,
        "claimed_at": item.claimed_at,
        "contact_info": {
            "phone": item.contact_phone,
            "email": item.contact_email,
        },
        "is_verified": bool(item.is_verified),
        "verified_by": item.verified_by,
        "verified_at": item.verified_at,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
    }


def issue_to_dict(issue: Issue) -> Dict[str, Any]:
    return {
        "id": issue.id,
        "title": issue.title,
        "description": issue.description,
        "category": _enum_value(issue.category),
        "priority": _enum_value(issue.priority),
        "location": issue.location,
        "images": list(issue.images or []),
        "status": _enum_value(issue.status),
        "reported_by": issue.reported_by,
        "assigned_to": issue.assigned_to,
        "upvotes": list(issue.upvotes or []),
        "upvote_count": issue.upvote_count,
        "resolved_at": issue.resolved_at,
        "resolved_by": issue.resolved_by,
        "resolution_notes": issue.resolution_notes,
        "estimated_resolution_time": issue.estimated_resolution_time,
        "created_at": issue.created_at,
        "updated_at": issue.updated_at,
    }


def _expand_many(records: List[Dict[str, Any]], fields, directory: UserDirectory) -> List[Dict[str, Any]]:
    lookup = directory.summaries(r.get(f) for r in records for f in fields)
    for record in records:
        for field in fields:
            record[field] = lookup.get(record[field]) if record[field] else None
    return records


def expand_items(items: List[Item], directory: UserDirectory) -> List[Dict[str, Any]]:
    return _expand_many([item_to_dict(i) for i in items], ITEM_USER_FIELDS, directory)


def expand_item(item: Item, directory: UserDirectory) -> Dict[str, Any]:
    return expand_items([item], directory)[0]


def expand_issues(issues: List[Issue], directory: UserDirectory) -> List[Dict[str, Any]]:
    records = _expand_many([issue_to_dict(i) for i in issues], ISSUE_USER_FIELDS, directory)
    # same order as the upvotes ids; unknown ids are skipped
    lookup = directory.summaries(uid for r in records for uid in r["upvotes"])
    for record in records:
        record["upvoters"] = [lookup[uid] for uid in record["upvotes"] if uid in lookup]
    return records


def expand_issue(issue: Issue, directory: UserDirectory) -> Dict[str, Any]:
    return expand_issues([issue], directory)[0]
