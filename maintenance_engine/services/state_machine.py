"""
Status transition recorder for maintenance requests.

This is the only place a request's status changes. Every change goes through
transition(), which writes the new status and its StatusHistoryEntry in one
unit of work.
"""
import logging
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from maintenance_engine.clock import Clock, utcnow
from maintenance_engine.core.exceptions import InvalidStatusError, NotFoundError
from maintenance_engine.database import atomic, store_errors
from maintenance_engine.models.audit import StatusHistoryEntry
from maintenance_engine.models.domain import MaintenanceRequest
from maintenance_engine.models.enums import RequestStatus

logger = logging.getLogger(__name__)

CREATION_REASON = "Initial creation"
DEFAULT_REASON = "Status updated"


def parse_status(value: Union[str, RequestStatus, None]) -> RequestStatus:
    """Coerce a raw value onto the status enum or raise InvalidStatusError."""
    if isinstance(value, RequestStatus):
        return value
    try:
        return RequestStatus(value)
    except ValueError:
        raise InvalidStatusError(value, allowed=RequestStatus.values()) from None


class StatusTransitionRecorder:
    """
    Enforces the status/history pairing.

    Transition policy is permissive: any status may move to any other
    (Completed -> Pending included). Completed and Cancelled are terminal by
    convention, not by rule.
    """

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    def record_creation(self, request: MaintenanceRequest, actor_id: int) -> StatusHistoryEntry:
        """
        Stage the creation event (old_status NULL -> Pending) for a new request.

        Does not commit: the caller stages the request insert and this row in
        the same unit of work.
        """
        entry = StatusHistoryEntry(
            request=request,
            old_status=None,
            new_status=request.status or RequestStatus.PENDING,
            changed_by_id=actor_id,
            change_reason=CREATION_REASON,
            changed_at=request.created_at or self.clock(),
        )
        self.db.add(entry)
        return entry

    def transition(
        self,
        request_id: int,
        new_status: Union[str, RequestStatus],
        actor_id: int,
        reason: Optional[str] = None,
        completed_date: Optional[datetime] = None,
    ) -> MaintenanceRequest:
        """
        Move a request to new_status and append the matching history row.

        Steps, all inside one transaction:
        1. Read the current status (becomes old_status), locking the row where
           the backend supports it
        2. Write the new status, bump updated_at, and set completed_date when
           moving to Completed with a completion date supplied
        3. Append StatusHistoryEntry{old, new, actor, reason, now}

        Raises:
            InvalidStatusError: new_status is not one of the five statuses
            NotFoundError: no request with this id
            StoreError: the write failed; nothing was persisted
        """
        status = parse_status(new_status)

        with atomic(self.db, "transition_status", request_id=request_id, actor_id=actor_id):
            request = self.db.execute(
                select(MaintenanceRequest)
                .where(MaintenanceRequest.id == request_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if request is None:
                raise NotFoundError("MaintenanceRequest", request_id)

            old_status = request.status
            now = self.clock()

            request.status = status
            request.updated_at = now
            if status == RequestStatus.COMPLETED and completed_date is not None:
                request.completed_date = completed_date

            self.db.add(StatusHistoryEntry(
                request_id=request.id,
                old_status=old_status,
                new_status=status,
                changed_by_id=actor_id,
                change_reason=reason or DEFAULT_REASON,
                changed_at=now,
            ))

        logger.info(
            "Maintenance status updated: request=%s %s -> %s by user=%s",
            request_id, _label(old_status), status.value, actor_id,
        )
        with store_errors(self.db, "transition_status", request_id=request_id):
            return self.load(request_id)

    def history(self, request_id: int) -> list:
        """Status history for a request, newest first."""
        self._require_request(request_id)
        return list(self.db.execute(
            select(StatusHistoryEntry)
            .options(joinedload(StatusHistoryEntry.changed_by))
            .where(StatusHistoryEntry.request_id == request_id)
            .order_by(StatusHistoryEntry.changed_at.desc(), StatusHistoryEntry.id.desc())
        ).scalars())

    def load(self, request_id: int) -> MaintenanceRequest:
        """The request joined with assignee and creator display data."""
        request = self.db.execute(
            select(MaintenanceRequest)
            .options(
                joinedload(MaintenanceRequest.assigned_engineer),
                joinedload(MaintenanceRequest.created_by),
            )
            .where(MaintenanceRequest.id == request_id)
        ).scalar_one_or_none()
        if request is None:
            raise NotFoundError("MaintenanceRequest", request_id)
        return request

    def _require_request(self, request_id: int) -> None:
        exists = self.db.execute(
            select(MaintenanceRequest.id).where(MaintenanceRequest.id == request_id)
        ).scalar_one_or_none()
        if exists is None:
            raise NotFoundError("MaintenanceRequest", request_id)


def _label(status: Optional[RequestStatus]) -> str:
    return status.value if isinstance(status, RequestStatus) else str(status)
