"""API routes for maintenance requests. Thin adapter over RequestLifecycle."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from maintenance_engine.api.schemas import (
    ErrorResponse,
    MaintenanceRequestCreate,
    MaintenanceRequestDetail,
    MaintenanceRequestList,
    MaintenanceRequestResponse,
    MaintenanceRequestUpdate,
    MaintenanceStats,
    StatusHistoryResponse,
    StatusTransition,
    WorkLogCreate,
    WorkLogResponse,
)
from maintenance_engine.database import get_db
from maintenance_engine.services.lifecycle import RequestLifecycle

router = APIRouter()

NOT_FOUND = {404: {"model": ErrorResponse, "description": "Maintenance request not found"}}


def get_lifecycle(db: Session = Depends(get_db)) -> RequestLifecycle:
    return RequestLifecycle(db)


def get_actor_id(x_user_id: Optional[int] = Header(None)) -> int:
    """Authenticated actor id. The auth middleware in front of us sets X-User-Id."""
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return x_user_id


@router.get("/maintenance", response_model=MaintenanceRequestList)
def list_maintenance_requests(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = None,
    category: Optional[str] = None,
    assigned_to: Optional[str] = Query(None, alias="assignedTo"),
    created_by: Optional[str] = Query(None, alias="createdBy"),
    search: Optional[str] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    lifecycle: RequestLifecycle = Depends(get_lifecycle),
):
    """
    List requests. Unknown sortBy/sortOrder fall back to createdAt/desc;
    bad page/limit fall back to defaults.
    """
    return lifecycle.list_requests({
        "page": page,
        "limit": limit,
        "status": status_filter,
        "priority": priority,
        "category": category,
        "assignedTo": assigned_to,
        "createdBy": created_by,
        "search": search,
        "sortBy": sort_by,
        "sortOrder": sort_order,
    })


@router.get("/maintenance/stats", response_model=MaintenanceStats)
def get_maintenance_stats(lifecycle: RequestLifecycle = Depends(get_lifecycle)):
    return lifecycle.get_stats()


@router.get("/maintenance/{request_id}", response_model=MaintenanceRequestDetail, responses=NOT_FOUND)
def get_maintenance_request(request_id: int, lifecycle: RequestLifecycle = Depends(get_lifecycle)):
    """Get a request with its work logs and status history."""
    return lifecycle.get_request(request_id)


@router.get("/maintenance/{request_id}/work-logs", response_model=List[WorkLogResponse], responses=NOT_FOUND)
def list_work_logs(request_id: int, lifecycle: RequestLifecycle = Depends(get_lifecycle)):
    return lifecycle.list_work_logs(request_id)


@router.get(
    "/maintenance/{request_id}/status-history",
    response_model=List[StatusHistoryResponse],
    responses=NOT_FOUND,
)
def list_status_history(request_id: int, lifecycle: RequestLifecycle = Depends(get_lifecycle)):
    return lifecycle.list_status_history(request_id)


@router.post("/maintenance", response_model=MaintenanceRequestResponse, status_code=status.HTTP_201_CREATED)
def create_maintenance_request(
    data: MaintenanceRequestCreate,
    actor_id: int = Depends(get_actor_id),
    lifecycle: RequestLifecycle = Depends(get_lifecycle),
):
    """Create a new request in Pending state with a generated request number."""
    return lifecycle.create_request(data, actor_id)


@router.put("/maintenance/{request_id}", response_model=MaintenanceRequestResponse, responses=NOT_FOUND)
def update_maintenance_request(
    request_id: int,
    data: MaintenanceRequestUpdate,
    actor_id: int = Depends(get_actor_id),
    lifecycle: RequestLifecycle = Depends(get_lifecycle),
):
    """Update non-status fields. Status changes go through /status."""
    return lifecycle.update_request_fields(request_id, data, actor_id)


@router.put(
    "/maintenance/{request_id}/status",
    response_model=MaintenanceRequestResponse,
    responses={**NOT_FOUND, 400: {"model": ErrorResponse, "description": "Invalid status value"}},
)
def update_maintenance_status(
    request_id: int,
    data: StatusTransition,
    actor_id: int = Depends(get_actor_id),
    lifecycle: RequestLifecycle = Depends(get_lifecycle),
):
    """
    Change status. Any status may move to any other; each change writes one
    status history row.
    """
    return lifecycle.transition_status(
        request_id,
        data.status,
        actor_id,
        reason=data.reason,
        completed_date=data.completed_date,
    )


@router.post(
    "/maintenance/{request_id}/work-logs",
    response_model=WorkLogResponse,
    status_code=status.HTTP_201_CREATED,
    responses=NOT_FOUND,
)
def add_work_log(
    request_id: int,
    data: WorkLogCreate,
    actor_id: int = Depends(get_actor_id),
    lifecycle: RequestLifecycle = Depends(get_lifecycle),
):
    return lifecycle.add_work_log(
        request_id,
        data.description,
        engineer_id=actor_id,
        hours_spent=data.hours_spent,
        work_date=data.work_date,
    )


@router.delete("/maintenance/{request_id}", status_code=status.HTTP_204_NO_CONTENT, responses=NOT_FOUND)
def delete_maintenance_request(
    request_id: int,
    actor_id: int = Depends(get_actor_id),
    lifecycle: RequestLifecycle = Depends(get_lifecycle),
):
    """Delete a request together with its status history and work logs."""
    lifecycle.delete_request(request_id, actor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
