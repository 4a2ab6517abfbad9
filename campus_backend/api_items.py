"""
Lost & Found API Endpoints
==========================

FastAPI router for lost/found item reports. Reads are public; everything else
requires a bearer token. Request bodies are passed through as plain dicts so
the Item Lifecycle Manager reports every invalid field at once.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from .auth import AuthContext, require_auth
from .db.session import get_db
from .items import ItemLifecycleManager
from .schemas import ItemListResponse, ItemResponse, MessageResponse

router = APIRouter(prefix="/lost-found", tags=["Lost & Found"])


@router.get("", response_model=ItemListResponse)
async def list_items(request: Request, db: Session = Depends(get_db)):
    """
    List items. Query: page, limit, category, type, status (default active,
    empty to include all), search, sort_by, sort_order.
    """
    return ItemLifecycleManager(db).list(dict(request.query_params))


@router.get("/{item_id}", response_model=ItemResponse)
async def get_item(item_id: str, db: Session = Depends(get_db)):
    return ItemLifecycleManager(db).get(item_id)


@router.post("", response_model=ItemResponse, status_code=201)
async def create_item(
    payload: Dict[str, Any] = Body(...),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return ItemLifecycleManager(db).create(payload, auth)


@router.put("/{item_id}", response_model=ItemResponse)
async def update_item(
    item_id: str,
    payload: Optional[Dict[str, Any]] = Body(None),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return ItemLifecycleManager(db).update(item_id, payload or {}, auth)


@router.delete("/{item_id}", response_model=MessageResponse)
async def delete_item(
    item_id: str,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return ItemLifecycleManager(db).delete(item_id, auth)


@router.put("/{item_id}/claim", response_model=ItemResponse)
async def claim_item(
    item_id: str,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return ItemLifecycleManager(db).claim(item_id, auth)


@router.put("/{item_id}/verify", response_model=ItemResponse)
async def verify_item(
    item_id: str,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    """Admin only"""
    return ItemLifecycleManager(db).verify(item_id, auth)


@router.put("/{item_id}/close", response_model=ItemResponse)
async def close_item(
    item_id: str,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return ItemLifecycleManager(db).close(item_id, auth)
