"""Pydantic schemas for request/response validation and the DTOs the engine returns."""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from maintenance_engine.models.enums import RequestStatus, Priority, Category


class UserSummary(BaseModel):
    """Display data joined onto requests, history rows and work logs."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    email: str
    full_name: str


# MaintenanceRequest schemas
class MaintenanceRequestCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    priority: Priority = Priority.MEDIUM
    category: Optional[Category] = None
    client_name: Optional[str] = Field(None, max_length=100)
    client_email: Optional[str] = Field(None, max_length=100)
    client_phone: Optional[str] = Field(None, max_length=50)
    client_company: Optional[str] = Field(None, max_length=100)
    assigned_engineer_id: Optional[int] = None
    scheduled_date: Optional[datetime] = None
    notes: Optional[str] = None


class MaintenanceRequestUpdate(BaseModel):
    """Non-status fields only. Status goes through the status endpoint."""
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    priority: Optional[Priority] = None
    category: Optional[Category] = None
    assigned_engineer_id: Optional[int] = None
    scheduled_date: Optional[datetime] = None
    notes: Optional[str] = None


class MaintenanceRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    request_number: str
    client_name: str
    client_email: str
    client_phone: Optional[str]
    client_company: Optional[str]
    title: str
    description: str
    category: Optional[Category]
    priority: Priority
    notes: Optional[str]
    status: RequestStatus
    requested_date: datetime
    scheduled_date: Optional[datetime]
    completed_date: Optional[datetime]
    assigned_engineer_id: Optional[int]
    assigned_engineer: Optional[UserSummary]
    created_by_id: int
    created_by: Optional[UserSummary]
    created_at: datetime
    updated_at: datetime
    is_overdue: bool = False


# Status history schemas
class StatusTransition(BaseModel):
    # Plain string: unknown statuses are rejected by the engine with InvalidStatusError
    status: str
    reason: Optional[str] = Field(None, max_length=1000)
    completed_date: Optional[datetime] = None


class StatusHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    request_id: int
    old_status: Optional[RequestStatus]
    new_status: RequestStatus
    changed_by_id: Optional[int]
    changed_by: Optional[UserSummary]
    change_reason: Optional[str]
    changed_at: datetime


# Work log schemas
class WorkLogCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=2000)
    hours_spent: Optional[Decimal] = Field(None, ge=0)
    work_date: Optional[datetime] = None


class WorkLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    request_id: int
    description: str
    hours_spent: Optional[Decimal]
    engineer_id: Optional[int]
    engineer: Optional[UserSummary]
    work_date: datetime
    logged_at: datetime


class MaintenanceRequestDetail(MaintenanceRequestResponse):
    """A request hydrated with its journal and audit trail, newest first."""
    work_logs: List[WorkLogResponse] = []
    status_history: List[StatusHistoryResponse] = []


# Listing
class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class Sorting(BaseModel):
    sort_by: str
    sort_order: str


class MaintenanceRequestList(BaseModel):
    items: List[MaintenanceRequestResponse]
    total: int
    pagination: Pagination
    sorting: Sorting


# Statistics
class StatusCounts(BaseModel):
    pending: int = 0
    in_progress: int = 0
    on_hold: int = 0
    completed: int = 0
    cancelled: int = 0


class PriorityCounts(BaseModel):
    critical: int = 0
    high: int = 0


class MaintenanceStats(BaseModel):
    total_requests: int
    status_counts: StatusCounts
    priority_counts: PriorityCounts
    overdue_count: int
    recent_count: int


# Error response
class ErrorResponse(BaseModel):
    """Body returned for every engine error."""
    error: str
    message: str
    details: Dict[str, str] = {}
