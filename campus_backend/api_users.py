"""
Auth & User API Endpoints
=========================

Two routers: `auth_router` (register, login, profile) and `router` (admin user
management). Both delegate to the User Account Manager.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from .auth import AuthContext, require_auth
from .db.session import get_db
from .schemas import (
    StatsResponse, TokenResponse, UserListResponse, UserResponse,
)
from .users import UserAccountManager

auth_router = APIRouter(prefix="/auth", tags=["Auth"])
router = APIRouter(prefix="/users", tags=["Users"])


# =============================================================================
# AUTH
# =============================================================================

@auth_router.post("/register", response_model=TokenResponse, status_code=201)
async def register(payload: Dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    """Register a student account and return an access token"""
    return UserAccountManager(db).register(payload)


@auth_router.post("/login", response_model=TokenResponse)
async def login(payload: Dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    return UserAccountManager(db).login(payload)


@auth_router.get("/me", response_model=UserResponse)
async def auth_me(auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    """Get current authenticated user"""
    return UserAccountManager(db).me(auth)


@auth_router.put("/profile", response_model=UserResponse)
async def update_profile(
    payload: Optional[Dict[str, Any]] = Body(None),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return UserAccountManager(db).update_profile(auth, payload or {})


# =============================================================================
# USER MANAGEMENT (admin)
# =============================================================================

@router.get("", response_model=UserListResponse)
async def list_users(
    request: Request,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    """Query: page, limit, role, search (name, email, student id), sort_by, sort_order"""
    return UserAccountManager(db).list_users(dict(request.query_params), auth)


# Registered before /{user_id} so "stats" is not taken as an id
@router.get("/stats/overview", response_model=StatsResponse)
async def user_stats(auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    return UserAccountManager(db).stats(auth)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return UserAccountManager(db).get_user(user_id, auth)


@router.get("/{user_id}/activity")
async def user_activity(
    user_id: str,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    """Ten most recent reported items, reported issues, claimed items and upvoted issues"""
    return UserAccountManager(db).activity(user_id, auth)


@router.put("/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: str,
    payload: Optional[Dict[str, Any]] = Body(None),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    payload = payload or {}
    return UserAccountManager(db).set_role(user_id, payload.get("role"), auth)


@router.put("/{user_id}/toggle-active", response_model=UserResponse)
async def toggle_user_active(
    user_id: str,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return UserAccountManager(db).toggle_active(user_id, auth)
