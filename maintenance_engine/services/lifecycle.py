"""
Request lifecycle facade - the single entry point the HTTP layer calls.

Composes the request number generator, the list query builder, the status
transition recorder and the work log journal. Nothing is cached between
calls: every method reads from and writes to the store, and returns pydantic
DTOs built while the session is still open.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional, Union

from sqlalchemy import case, func, select

from maintenance_engine.api.schemas import (
    MaintenanceRequestResponse,
    MaintenanceRequestDetail,
    MaintenanceRequestList,
    MaintenanceStats,
    Pagination,
    PriorityCounts,
    Sorting,
    StatusCounts,
    StatusHistoryResponse,
    WorkLogResponse,
)
from maintenance_engine.clock import Clock, utcnow
from maintenance_engine.config import INTERNAL_CLIENT_DEFAULTS
from maintenance_engine.core.exceptions import ImmutableFieldError, NotFoundError, ValidationError
from maintenance_engine.database import atomic, store_errors
from maintenance_engine.models.domain import MaintenanceRequest
from maintenance_engine.models.enums import RequestStatus, Priority, Category
from maintenance_engine.services.query_builder import FilterParams, build_query
from maintenance_engine.services.request_numbers import RequestNumberGenerator
from maintenance_engine.services.state_machine import StatusTransitionRecorder
from maintenance_engine.services.work_log import WorkLogJournal

logger = logging.getLogger(__name__)

# Fields updatable through update_request_fields
MUTABLE_FIELDS = {
    "title",
    "description",
    "priority",
    "category",
    "assigned_engineer_id",
    "scheduled_date",
    "notes",
}
# Fields fixed at creation or owned by the transition recorder
IMMUTABLE_FIELDS = {
    "id",
    "request_number",
    "status",
    "completed_date",
    "requested_date",
    "created_by_id",
    "created_at",
    "updated_at",
}
RECENT_WINDOW = timedelta(days=30)


def _coerce_enum(enum_cls, value, field: str):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(
            f"{field} must be one of: {allowed}", details={field: "invalid choice"}
        ) from None


def _as_dict(data: Union[Mapping[str, Any], Any], exclude_unset: bool = False) -> Dict[str, Any]:
    if hasattr(data, "model_dump"):
        return data.model_dump(exclude_unset=exclude_unset)
    return dict(data)


class RequestLifecycle:
    """Facade over the maintenance request engine."""

    def __init__(self, db, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.numbers = RequestNumberGenerator(db, clock)
        self.recorder = StatusTransitionRecorder(db, clock)
        self.journal = WorkLogJournal(db, clock)

    # Create
    def create_request(self, data, actor_id: int) -> MaintenanceRequestResponse:
        """
        Create a Pending request with a generated request number.

        The insert and the creation history row (NULL -> Pending) commit
        together.
        """
        fields = _as_dict(data)
        if actor_id is None:
            raise ValidationError("createdBy is required", details={"createdBy": "required"})
        missing = [name for name in ("title", "description") if not str(fields.get(name) or "").strip()]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details={name: "required" for name in missing},
            )

        priority = _coerce_enum(Priority, fields.get("priority") or Priority.MEDIUM, "priority")
        category = _coerce_enum(Category, fields.get("category"), "category")
        client = {
            key: fields.get(key) or default for key, default in INTERNAL_CLIENT_DEFAULTS.items()
        }

        with atomic(self.db, "create_request", actor_id=actor_id):
            # Same transaction as the insert, so the sequence read and the write commit together
            request_number = self.numbers.generate(client["client_name"])
            now = self.clock()
            request = MaintenanceRequest(
                request_number=request_number,
                title=fields["title"].strip(),
                description=fields["description"].strip(),
                priority=priority,
                category=category,
                notes=fields.get("notes"),
                status=RequestStatus.PENDING,
                assigned_engineer_id=fields.get("assigned_engineer_id"),
                created_by_id=actor_id,
                scheduled_date=fields.get("scheduled_date"),
                requested_date=now,
                created_at=now,
                updated_at=now,
                **client,
            )
            self.db.add(request)
            self.recorder.record_creation(request, actor_id)
            self.db.flush()
            request_id = request.id

        logger.info(
            "Maintenance request created: id=%s number=%s by user=%s",
            request_id, request_number, actor_id,
        )
        return self._response(request_id)

    # Read
    def list_requests(self, filters: Union[FilterParams, Mapping[str, Any], None] = None) -> MaintenanceRequestList:
        """Filtered, sorted, paged listing plus the total for the filter set."""
        if filters is None:
            params = FilterParams()
        elif isinstance(filters, FilterParams):
            params = filters
        else:
            params = FilterParams.from_query(filters)

        list_query, count_statement = build_query(params)
        with store_errors(self.db, "list_requests"):
            rows = self.db.execute(list_query.statement).scalars().all()
            total = self.db.execute(count_statement).scalar_one()
            now = self.clock()
            items = [self._present(MaintenanceRequestResponse, row, now) for row in rows]

        total_pages = math.ceil(total / list_query.limit) if total else 0
        return MaintenanceRequestList(
            items=items,
            total=total,
            pagination=Pagination(
                page=list_query.page,
                limit=list_query.limit,
                total=total,
                total_pages=total_pages,
                has_next=list_query.page * list_query.limit < total,
                has_prev=list_query.page > 1,
            ),
            sorting=Sorting(sort_by=list_query.sort_by, sort_order=list_query.sort_order),
        )

    def get_request(self, request_id: int) -> MaintenanceRequestDetail:
        """The request with its work logs and status history, newest first."""
        with store_errors(self.db, "get_request", request_id=request_id):
            request = self.recorder.load(request_id)
            return self._present(MaintenanceRequestDetail, request)

    def list_work_logs(self, request_id: int):
        with store_errors(self.db, "list_work_logs", request_id=request_id):
            return [WorkLogResponse.model_validate(e) for e in self.journal.entries(request_id)]

    def list_status_history(self, request_id: int):
        with store_errors(self.db, "list_status_history", request_id=request_id):
            return [StatusHistoryResponse.model_validate(e) for e in self.recorder.history(request_id)]

    def get_stats(self) -> MaintenanceStats:
        """Dashboard counters: per status, critical/high, overdue, and last 30 days."""
        now = self.clock()
        columns = [func.count(MaintenanceRequest.id).label("total")]
        for status in RequestStatus:
            columns.append(func.count(case((MaintenanceRequest.status == status, 1))).label(status.name))
        columns += [
            func.count(case((MaintenanceRequest.priority == Priority.CRITICAL, 1))).label("critical"),
            func.count(case((MaintenanceRequest.priority == Priority.HIGH, 1))).label("high"),
            func.count(case((
                (MaintenanceRequest.scheduled_date < now)
                & (MaintenanceRequest.status != RequestStatus.COMPLETED),
                1,
            ))).label("overdue"),
            func.count(case((MaintenanceRequest.created_at >= now - RECENT_WINDOW, 1))).label("recent"),
        ]

        with store_errors(self.db, "get_stats"):
            row = self.db.execute(select(*columns)).one()

        return MaintenanceStats(
            total_requests=row.total,
            status_counts=StatusCounts(
                pending=row.PENDING,
                in_progress=row.IN_PROGRESS,
                on_hold=row.ON_HOLD,
                completed=row.COMPLETED,
                cancelled=row.CANCELLED,
            ),
            priority_counts=PriorityCounts(critical=row.critical, high=row.high),
            overdue_count=row.overdue,
            recent_count=row.recent,
        )

    # Update
    def update_request_fields(self, request_id: int, patch, actor_id: int) -> MaintenanceRequestResponse:
        """
        Patch non-status fields.

        Raises ImmutableFieldError for request_number/status/timestamps and
        ValidationError for unknown fields or blank required values.
        """
        changes = _as_dict(patch, exclude_unset=True)

        blocked = set(changes) & IMMUTABLE_FIELDS
        if blocked:
            raise ImmutableFieldError(list(blocked))
        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown fields: {', '.join(sorted(unknown))}",
                details={name: "unknown field" for name in unknown},
            )
        for name in ("title", "description"):
            if name in changes and not str(changes[name] or "").strip():
                raise ValidationError(f"{name} cannot be blank", details={name: "required"})
        if "priority" in changes:
            if changes["priority"] is None:
                raise ValidationError("priority cannot be null", details={"priority": "required"})
            changes["priority"] = _coerce_enum(Priority, changes["priority"], "priority")
        if "category" in changes:
            changes["category"] = _coerce_enum(Category, changes["category"], "category")

        with atomic(self.db, "update_request_fields", request_id=request_id, actor_id=actor_id):
            request = self.db.get(MaintenanceRequest, request_id)
            if request is None:
                raise NotFoundError("MaintenanceRequest", request_id)
            for name, value in changes.items():
                setattr(request, name, value.strip() if name in ("title", "description") else value)
            request.updated_at = self.clock()

        logger.info(
            "Maintenance request updated: id=%s fields=%s by user=%s",
            request_id, sorted(changes), actor_id,
        )
        return self._response(request_id)

    def transition_status(
        self,
        request_id: int,
        new_status: Union[str, RequestStatus],
        actor_id: int,
        reason: Optional[str] = None,
        completed_date: Optional[datetime] = None,
    ) -> MaintenanceRequestResponse:
        request = self.recorder.transition(
            request_id, new_status, actor_id, reason=reason, completed_date=completed_date
        )
        with store_errors(self.db, "transition_status", request_id=request_id):
            return self._present(MaintenanceRequestResponse, request)

    def add_work_log(
        self,
        request_id: int,
        description: str,
        engineer_id: int,
        hours_spent=None,
        work_date: Optional[datetime] = None,
    ) -> WorkLogResponse:
        entry = self.journal.append(
            request_id, description, engineer_id, hours_spent=hours_spent, work_date=work_date
        )
        with store_errors(self.db, "add_work_log", request_id=request_id):
            return WorkLogResponse.model_validate(entry)

    # Delete
    def delete_request(self, request_id: int, actor_id: Optional[int] = None) -> None:
        """Delete a request; its status history and work logs go with it."""
        with atomic(self.db, "delete_request", request_id=request_id, actor_id=actor_id):
            request = self.db.get(MaintenanceRequest, request_id)
            if request is None:
                raise NotFoundError("MaintenanceRequest", request_id)
            self.db.delete(request)

        logger.info("Maintenance request deleted: id=%s by user=%s", request_id, actor_id)

    def _response(self, request_id: int) -> MaintenanceRequestResponse:
        with store_errors(self.db, "load_request", request_id=request_id):
            return self._present(MaintenanceRequestResponse, self.recorder.load(request_id))

    def _present(self, schema, request: MaintenanceRequest, now: Optional[datetime] = None):
        """DTO for a request, with the overdue flag evaluated against this facade's clock."""
        dto = schema.model_validate(request)
        dto.is_overdue = request.is_overdue_at(now or self.clock())
        return dto
