"""Approval settings endpoints."""

from typing import Any, Dict, List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from approvalflow.api.deps import get_db, get_current_user
from approvalflow.core.rbac import require_permission
from approvalflow.db.models import DirectoryUser
from approvalflow.services.settings_store import SettingsStore

router = APIRouter(prefix="/settings", tags=["settings"])


class SettingsResponse(BaseModel):
    user_id: str
    auto_assign_enabled: bool
    default_assignees: List[str]
    notification_frequency: str
    email_notifications_enabled: bool
    language: str
    department_rules: List[Any]
    module_type_rules: List[Any]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class SettingsUpdate(BaseModel):
    auto_assign_enabled: Optional[bool] = None
    default_assignees: Optional[List[str]] = None
    notification_frequency: Optional[str] = None
    email_notifications_enabled: Optional[bool] = None
    language: Optional[str] = None
    department_rules: Optional[List[Any]] = None
    module_type_rules: Optional[List[Any]] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


@router.get("", response_model=SettingsResponse)
async def get_my_settings(
    db: Session = Depends(get_db),
    current_user: DirectoryUser = Depends(get_current_user),
):
    """Current user's approval settings, created with defaults on first read."""
    require_permission(current_user, "settings:read")
    row = SettingsStore(db).get(current_user.uid)
    db.commit()
    return SettingsResponse.model_validate(row)


@router.put("", response_model=SettingsResponse)
async def update_my_settings(
    request: SettingsUpdate,
    db: Session = Depends(get_db),
    current_user: DirectoryUser = Depends(get_current_user),
):
    require_permission(current_user, "settings:update")
    row = SettingsStore(db).update(current_user.uid, request.changes())
    db.commit()
    return SettingsResponse.model_validate(row)


@router.get("/installation", response_model=SettingsResponse)
async def get_installation_settings(
    db: Session = Depends(get_db),
    current_user: DirectoryUser = Depends(get_current_user),
):
    """Installation-wide approval settings (admin only)."""
    require_permission(current_user, "installation_settings:read")
    row = SettingsStore(db).get_installation()
    db.commit()
    return SettingsResponse.model_validate(row)


@router.put("/installation", response_model=SettingsResponse)
async def update_installation_settings(
    request: SettingsUpdate,
    db: Session = Depends(get_db),
    current_user: DirectoryUser = Depends(get_current_user),
):
    require_permission(current_user, "installation_settings:update")
    row = SettingsStore(db).update_installation(request.changes())
    db.commit()
    return SettingsResponse.model_validate(row)
