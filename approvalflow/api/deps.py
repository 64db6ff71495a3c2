from functools import lru_cache
from typing import Generator, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from approvalflow.core.approval.module_sync import ModuleStatusRegistry, build_registry
from approvalflow.core.approval.service import ApprovalService
from approvalflow.core.config import get_settings
from approvalflow.db.models import DirectoryUser
from approvalflow.db.session import SessionLocal
from approvalflow.services.directory import SqlDirectory


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    db: Session = Depends(get_db),
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> DirectoryUser:
    """Resolve the trusted identity header through the directory."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )

    if not user_id:
        raise credentials_exception

    user = SqlDirectory(db).get_user(user_id)
    if user is None or not user.is_active:
        raise credentials_exception
    return user


@lru_cache
def get_module_registry() -> ModuleStatusRegistry:
    """Module status handlers, built once from configuration."""
    return build_registry(get_settings())


def get_approval_service(
    db: Session = Depends(get_db),
    registry: ModuleStatusRegistry = Depends(get_module_registry),
) -> ApprovalService:
    return ApprovalService(db, registry=registry)
