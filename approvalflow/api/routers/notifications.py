"""Notification inbox endpoints."""

from typing import List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from approvalflow.api.deps import get_db, get_current_user
from approvalflow.core.rbac import require_permission
from approvalflow.db.models import DirectoryUser
from approvalflow.services.notifications import NotificationInbox

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationResponse(BaseModel):
    id: int
    workflow_id: str
    title: str
    message: str
    type: str
    priority: str
    language: str
    is_read: bool
    related_action: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    items: List[NotificationResponse]
    total: int
    unread_count: int
    page: int
    limit: int


class MarkReadRequest(BaseModel):
    notification_ids: List[int]


class CountResponse(BaseModel):
    count: int


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    db: Session = Depends(get_db),
    current_user: DirectoryUser = Depends(get_current_user),
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """List the current user's notifications, newest first."""
    require_permission(current_user, "notifications:list")
    result = NotificationInbox(db).list(current_user.uid, unread_only=unread_only, page=page, limit=limit)
    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in result["items"]],
        total=result["total"],
        unread_count=result["unread_count"],
        page=result["page"],
        limit=result["limit"],
    )


@router.get("/unread-count", response_model=CountResponse)
async def unread_count(
    db: Session = Depends(get_db),
    current_user: DirectoryUser = Depends(get_current_user),
):
    require_permission(current_user, "notifications:read")
    return CountResponse(count=NotificationInbox(db).unread_count(current_user.uid))


@router.post("/read", response_model=CountResponse)
async def mark_notifications_read(
    request: MarkReadRequest,
    db: Session = Depends(get_db),
    current_user: DirectoryUser = Depends(get_current_user),
):
    """Mark notifications read. Ids owned by other users are ignored."""
    require_permission(current_user, "notifications:update")
    return CountResponse(count=NotificationInbox(db).mark_read(current_user.uid, request.notification_ids))
