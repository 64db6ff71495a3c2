"""Approval workflow API endpoints."""

from typing import Any, Dict, List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from approvalflow.api.deps import get_current_user, get_approval_service
from approvalflow.core.approval.service import ApprovalService
from approvalflow.core.rbac import require_permission
from approvalflow.db.models import DirectoryUser

router = APIRouter(prefix="/approvals", tags=["approvals"])


# Schemas
class ApprovalItemResponse(BaseModel):
    workflow_id: str
    module_type: str
    module_id: str
    name: str
    description: Optional[str]
    submitted_by: Optional[str]
    submitter_name: Optional[str]
    department: Optional[str]
    priority: str
    status: str
    due_date: Optional[datetime]
    details: Dict[str, Any]
    language: str
    submitted_date: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AutoAssignedItemResponse(ApprovalItemResponse):
    is_auto_assigned: bool


class AssignmentResponse(BaseModel):
    id: int
    workflow_id: str
    assigned_to: str
    assigned_by: Optional[str]
    assigned_date: Optional[datetime]
    due_date: Optional[datetime]
    priority: str
    status: str
    completed_date: Optional[datetime]
    comments: Optional[str]
    is_auto_assigned: bool

    class Config:
        from_attributes = True


class HistoryResponse(BaseModel):
    history_id: str
    action_type: str
    action_by: Optional[str]
    action_by_name: Optional[str]
    previous_status: Optional[str]
    new_status: Optional[str]
    details: Dict[str, Any]
    comments: Optional[str]
    action_date: datetime

    class Config:
        from_attributes = True


class ApprovalDetailResponse(BaseModel):
    item: ApprovalItemResponse
    assignments: List[AssignmentResponse]
    history: List[HistoryResponse]


class ApprovalListResponse(BaseModel):
    items: List[ApprovalItemResponse]
    total: int
    page: int
    limit: int
    pages: int


class StatisticsResponse(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_module_type: Dict[str, int]
    by_priority: Dict[str, int]
    recent_submissions: int
    due_soon: int
    average_approval_hours: float


class SubmitRequest(BaseModel):
    name: str
    module_type: str
    module_id: str
    description: Optional[str] = None
    department: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[datetime] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    language: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: str
    comment: Optional[str] = None


class AssignRequest(BaseModel):
    assignee_id: str
    due_date: Optional[datetime] = None
    priority: Optional[str] = None
    comment: Optional[str] = None


class AutoAssignRequest(BaseModel):
    force: bool = False


# Endpoints
@router.post("", response_model=AutoAssignedItemResponse, status_code=status.HTTP_201_CREATED)
async def submit_approval(
    request: SubmitRequest,
    current_user: DirectoryUser = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Submit an item for approval."""
    require_permission(current_user, "approvals:create")
    item, auto_assigned = service.submit(request.model_dump(), submitter_id=current_user.uid)
    response = ApprovalItemResponse.model_validate(item).model_dump()
    return AutoAssignedItemResponse(**response, is_auto_assigned=auto_assigned)


@router.get("", response_model=ApprovalListResponse)
async def list_approvals(
    current_user: DirectoryUser = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
    status_filter: Optional[str] = Query(None, alias="status"),
    module_type: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
):
    """List approval items with filters, sorting and pagination."""
    require_permission(current_user, "approvals:list")
    result = service.list_items(
        status=status_filter,
        module_type=module_type,
        priority=priority,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return ApprovalListResponse(
        items=[ApprovalItemResponse.model_validate(i) for i in result["items"]],
        total=result["total"],
        page=result["page"],
        limit=result["limit"],
        pages=result["pages"],
    )


@router.get("/statistics", response_model=StatisticsResponse)
async def approval_statistics(
    current_user: DirectoryUser = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Dashboard counts across all approval items."""
    require_permission(current_user, "statistics:read")
    return StatisticsResponse(**service.statistics())


@router.get("/{workflow_id}", response_model=ApprovalDetailResponse)
async def get_approval(
    workflow_id: str,
    current_user: DirectoryUser = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Get an approval item with its assignments and history."""
    require_permission(current_user, "approvals:read")
    detail = service.get_detail(workflow_id)
    return ApprovalDetailResponse(
        item=ApprovalItemResponse.model_validate(detail["item"]),
        assignments=[AssignmentResponse.model_validate(a) for a in detail["assignments"]],
        history=[HistoryResponse.model_validate(h) for h in detail["history"]],
    )


@router.post("/{workflow_id}/status", response_model=ApprovalItemResponse)
def update_approval_status(
    workflow_id: str,
    request: StatusUpdateRequest,
    current_user: DirectoryUser = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Approve or reject an item. Runs in the threadpool; module sync blocks on HTTP."""
    item = service.set_status(workflow_id, current_user.uid, request.status, request.comment)
    return ApprovalItemResponse.model_validate(item)


@router.post("/{workflow_id}/assign", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
async def assign_approval(
    workflow_id: str,
    request: AssignRequest,
    current_user: DirectoryUser = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Assign a reviewer to an item."""
    assignment = service.assign(
        workflow_id,
        current_user.uid,
        request.assignee_id,
        due_date=request.due_date,
        priority=request.priority,
        comment=request.comment,
    )
    return AssignmentResponse.model_validate(assignment)


@router.post("/{workflow_id}/auto-assign", response_model=AutoAssignedItemResponse)
async def auto_assign_approval(
    workflow_id: str,
    request: Optional[AutoAssignRequest] = None,
    current_user: DirectoryUser = Depends(get_current_user),
    service: ApprovalService = Depends(get_approval_service),
):
    """Run automatic reviewer assignment for an existing item."""
    item, auto_assigned = service.auto_assign(workflow_id, current_user.uid, force=bool(request and request.force))
    response = ApprovalItemResponse.model_validate(item).model_dump()
    return AutoAssignedItemResponse(**response, is_auto_assigned=auto_assigned)
