"""
Facility Issue API Endpoints
============================

FastAPI router for facility issue reports. Assignment and status changes are
admin-only; the manager enforces that, the router only authenticates.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from .auth import AuthContext, require_auth
from .db.session import get_db
from .issues import IssueLifecycleManager
from .schemas import IssueListResponse, IssueResponse, MessageResponse

router = APIRouter(prefix="/issues", tags=["Issues"])


@router.get("", response_model=IssueListResponse)
async def list_issues(request: Request, db: Session = Depends(get_db)):
    """
    List issues. Query: page, limit, category, status, priority, search,
    sort_by (createdAt, updatedAt, priority, upvoteCount, title), sort_order.
    """
    return IssueLifecycleManager(db).list(dict(request.query_params))


@router.get("/{issue_id}", response_model=IssueResponse)
async def get_issue(issue_id: str, db: Session = Depends(get_db)):
    return IssueLifecycleManager(db).get(issue_id)


@router.post("", response_model=IssueResponse, status_code=201)
async def create_issue(
    payload: Dict[str, Any] = Body(...),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return IssueLifecycleManager(db).create(payload, auth)


@router.put("/{issue_id}", response_model=IssueResponse)
async def update_issue(
    issue_id: str,
    payload: Optional[Dict[str, Any]] = Body(None),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return IssueLifecycleManager(db).update(issue_id, payload or {}, auth)


@router.delete("/{issue_id}", response_model=MessageResponse)
async def delete_issue(
    issue_id: str,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return IssueLifecycleManager(db).delete(issue_id, auth)


@router.put("/{issue_id}/upvote", response_model=IssueResponse)
async def toggle_upvote(
    issue_id: str,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    """Adds the caller's upvote, or removes it if already present"""
    return IssueLifecycleManager(db).toggle_upvote(issue_id, auth)


@router.put("/{issue_id}/assign", response_model=IssueResponse)
async def assign_issue(
    issue_id: str,
    payload: Optional[Dict[str, Any]] = Body(None),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    """Admin only. Body: {"assigned_to": "<user id>"}"""
    payload = payload or {}
    return IssueLifecycleManager(db).assign(issue_id, payload.get("assigned_to"), auth)


@router.put("/{issue_id}/status", response_model=IssueResponse)
async def update_issue_status(
    issue_id: str,
    payload: Optional[Dict[str, Any]] = Body(None),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    """Admin only. Body: {"status": "...", "resolution_notes": "..."}"""
    payload = payload or {}
    return IssueLifecycleManager(db).update_status(
        issue_id, payload.get("status"), payload.get("resolution_notes"), auth
    )
