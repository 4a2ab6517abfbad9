"""
Issue Lifecycle Manager
=======================

Facility issue reports. Status normally moves

    pending -> in-progress -> resolved -> closed

but admin status updates are not checked against a transition table unless
STRICT_ISSUE_TRANSITIONS is enabled. Assignment always forces in-progress.

The upvote set is kept as a set of user ids; `upvote_count` is recomputed from
it right before every persist of an issue.
"""

import logging
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from sqlalchemy import case
from sqlalchemy.orm import Session

from .auth import AuthContext, require_authenticated, require_owner_or_admin, require_role
from .config import get_settings
from .db.models import Issue, IssuePriority, IssueStatus, UserRole
from .errors import InvalidTransition, NotFound, ValidationError
from .expand import UserDirectory, expand_issue, expand_issues
from .schemas import (
    ISSUE_MESSAGES, IssueAssign, IssueCreate, IssueListQuery, IssueStatusUpdate, IssueUpdate,
)
from .store import DocumentStore
from .validation import page_window, total_pages, validate_model

logger = logging.getLogger(__name__)

# Only consulted when strict transitions are enabled
ISSUE_TRANSITIONS = {
    IssueStatus.PENDING: {IssueStatus.IN_PROGRESS, IssueStatus.RESOLVED, IssueStatus.CLOSED},
    IssueStatus.IN_PROGRESS: {IssueStatus.PENDING, IssueStatus.RESOLVED, IssueStatus.CLOSED},
    IssueStatus.RESOLVED: {IssueStatus.IN_PROGRESS, IssueStatus.CLOSED},
    IssueStatus.CLOSED: set(),
}

PRIORITY_RANK = {
    IssuePriority.LOW: 0,
    IssuePriority.MEDIUM: 1,
    IssuePriority.HIGH: 2,
    IssuePriority.URGENT: 3,
}

SORT_FIELDS = {
    "createdAt": Issue.created_at,
    "created_at": Issue.created_at,
    "updatedAt": Issue.updated_at,
    "updated_at": Issue.updated_at,
    "upvoteCount": Issue.upvote_count,
    "upvote_count": Issue.upvote_count,
    "title": Issue.title,
    "priority": case(
        *[(Issue.priority == priority, rank) for priority, rank in PRIORITY_RANK.items()]
    ),
}


def is_transition_allowed(current: IssueStatus, new: IssueStatus) -> bool:
    return current == new or new in ISSUE_TRANSITIONS.get(current, set())


def toggle_member(voters: Iterable[str], user_id: str) -> FrozenSet[str]:
    """Symmetric difference with {user_id}: add if absent, remove if present."""
    return frozenset(voters) ^ {user_id}


class IssueLifecycleManager:
    """Validation, ownership rules and state transitions for facility issues."""

    def __init__(self, db: Session, strict_transitions: Optional[bool] = None):
        self.db = db
        self.store = DocumentStore(db, Issue)
        self.users = UserDirectory(db)
        if strict_transitions is None:
            strict_transitions = get_settings().strict_issue_transitions
        self.strict_transitions = strict_transitions

    def _load(self, issue_id: str) -> Issue:
        issue = self.store.find_by_id(issue_id)
        if issue is None:
            raise NotFound("Issue not found")
        return issue

    def _expanded(self, issue: Issue) -> Dict[str, Any]:
        return expand_issue(issue, self.users)

    @staticmethod
    def _with_upvotes(values: Dict[str, Any], voters: Iterable[str]) -> Dict[str, Any]:
        """Restore upvote_count == len(upvotes) on the values about to be written."""
        ordered: List[str] = sorted(set(voters))
        values["upvotes"] = ordered
        values["upvote_count"] = len(ordered)
        return values

    def _persist(self, issue: Issue, values: Dict[str, Any]) -> Issue:
        values = self._with_upvotes(values, values.get("upvotes", issue.upvotes or []))
        return self.store.update_by_id(issue.id, values)

    # -------------------------------------------------------------------------
    # Reads (public)
    # -------------------------------------------------------------------------

    def get(self, issue_id: str) -> Dict[str, Any]:
        return self._expanded(self._load(issue_id))

    def list(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        query = validate_model(IssueListQuery, filters or {}, ISSUE_MESSAGES)

        column = SORT_FIELDS.get(query.sort_by)
        if column is None:
            raise ValidationError.single("sort_by", f"Cannot sort issues by {query.sort_by}")
        order = column.desc() if query.sort_order == "desc" else column.asc()

        store_filters = {}
        if query.category:
            store_filters["category"] = query.category
        if query.status:
            store_filters["status"] = query.status
        if query.priority:
            store_filters["priority"] = query.priority

        records, total = self.store.find(
            filters=store_filters,
            order_by=(order, Issue.id.asc()),
            search=query.search,
            **page_window(query.page, query.limit),
        )
        return {
            "issues": expand_issues(records, self.users),
            "total": total,
            "total_pages": total_pages(total, query.limit),
            "current_page": query.page,
        }

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create(self, data: Any, owner: Optional[AuthContext]) -> Dict[str, Any]:
        owner = require_authenticated(owner)
        payload = validate_model(IssueCreate, data, ISSUE_MESSAGES)

        values = self._with_upvotes({
            "title": payload.title,
            "description": payload.description,
            "category": payload.category,
            "priority": payload.priority,
            "location": payload.location,
            "images": list(payload.images),
            "estimated_resolution_time": payload.estimated_resolution_time,
            "status": IssueStatus.PENDING,
            "reported_by": owner.user_id,
            "assigned_to": None,
        }, [])
        issue = self.store.create(values)
        logger.info(f"Issue {issue.id} ({payload.category.value}/{payload.priority.value}) reported by {owner.user_id}")
        return self._expanded(issue)

    def update(self, issue_id: str, patch: Any, caller: Optional[AuthContext]) -> Dict[str, Any]:
        """Field edits by reporter or admin. Status, assignment, resolution and upvotes are ignored."""
        caller = require_authenticated(caller)
        changes = validate_model(IssueUpdate, patch, ISSUE_MESSAGES)

        issue = self._load(issue_id)
        require_owner_or_admin(caller, issue.reported_by, "Not authorized to update this issue")

        values = changes.model_dump(exclude_none=True)
        if values:
            changed = sorted(values)
            issue = self._persist(issue, values)
            logger.info(f"Issue {issue.id} updated by {caller.user_id}: {changed}")
        return self._expanded(issue)

    def toggle_upvote(self, issue_id: str, caller: Optional[AuthContext]) -> Dict[str, Any]:
        """Any authenticated user; calling twice restores the previous set."""
        caller = require_authenticated(caller)
        issue = self._load(issue_id)

        before = frozenset(issue.upvotes or [])
        voters = toggle_member(before, caller.user_id)
        issue = self._persist(issue, {"upvotes": voters})

        action = "added" if len(voters) > len(before) else "removed"
        logger.info(f"Issue {issue.id} upvote {action} by {caller.user_id} (count={issue.upvote_count})")
        return self._expanded(issue)

    def assign(self, issue_id: str, assignee_id: Any, caller: Optional[AuthContext]) -> Dict[str, Any]:
        """Admin-only. Forces status to in-progress whatever the current status."""
        caller = require_role(caller, UserRole.ADMIN)
        payload = validate_model(IssueAssign, {"assigned_to": assignee_id}, ISSUE_MESSAGES)

        issue = self._load(issue_id)
        if not self.users.exists(payload.assigned_to):
            raise ValidationError.single("assigned_to", "Assigned user does not exist")

        previous = issue.status
        issue = self._persist(issue, {
            "assigned_to": payload.assigned_to,
            "status": IssueStatus.IN_PROGRESS,
        })
        logger.info(
            f"Issue {issue.id} assigned to {payload.assigned_to} by {caller.user_id} "
            f"({previous.value} -> {IssueStatus.IN_PROGRESS.value})"
        )
        return self._expanded(issue)

    def update_status(
        self,
        issue_id: str,
        status: Any,
        notes: Optional[str],
        caller: Optional[AuthContext],
    ) -> Dict[str, Any]:
        """
        Admin-only status change. Resolving stamps resolved_at/resolved_by;
        notes are stored whenever given, independent of the new status.
        """
        caller = require_role(caller, UserRole.ADMIN)
        payload = validate_model(
            IssueStatusUpdate, {"status": status, "resolution_notes": notes}, ISSUE_MESSAGES
        )

        issue = self._load(issue_id)
        if self.strict_transitions and not is_transition_allowed(issue.status, payload.status):
            raise InvalidTransition(
                f"Cannot move issue from {issue.status.value} to {payload.status.value}"
            )

        values: Dict[str, Any] = {"status": payload.status}
        if payload.status == IssueStatus.RESOLVED:
            values["resolved_at"] = datetime.utcnow()
            values["resolved_by"] = caller.user_id
        if payload.resolution_notes:
            values["resolution_notes"] = payload.resolution_notes

        previous = issue.status
        issue = self._persist(issue, values)
        logger.info(f"Issue {issue.id} status {previous.value} -> {payload.status.value} by {caller.user_id}")
        return self._expanded(issue)

    def delete(self, issue_id: str, caller: Optional[AuthContext]) -> Dict[str, str]:
        caller = require_authenticated(caller)
        issue = self._load(issue_id)
        require_owner_or_admin(caller, issue.reported_by, "Not authorized to delete this issue")

        self.store.delete_by_id(issue.id)
        logger.info(f"Issue {issue_id} deleted by {caller.user_id}")
        return {"message": "Issue deleted successfully"}
