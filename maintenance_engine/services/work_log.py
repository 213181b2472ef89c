"""Append-only journal of effort recorded against maintenance requests."""
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from maintenance_engine.clock import Clock, utcnow
from maintenance_engine.core.exceptions import NotFoundError, ValidationError
from maintenance_engine.database import atomic, store_errors
from maintenance_engine.models.audit import WorkLogEntry
from maintenance_engine.models.domain import MaintenanceRequest

logger = logging.getLogger(__name__)

MAX_HOURS = Decimal("999.99")  # NUMERIC(5, 2)


def parse_hours(value: Union[str, int, float, Decimal, None]) -> Optional[Decimal]:
    """Non-negative decimal hours rounded to two places, or None."""
    if value is None or value == "":
        return None
    try:
        hours = Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        raise ValidationError("hoursSpent must be a number", details={"hoursSpent": "not a number"}) from None
    if not hours.is_finite():
        raise ValidationError("hoursSpent must be a finite number", details={"hoursSpent": "not a number"})
    if hours < 0 or hours > MAX_HOURS:
        raise ValidationError(
            f"hoursSpent must be between 0 and {MAX_HOURS}",
            details={"hoursSpent": "out of range"},
        )
    return hours


class WorkLogJournal:
    """Write-once, read-many. There is deliberately no edit or delete."""

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    def append(
        self,
        request_id: int,
        description: str,
        engineer_id: int,
        hours_spent=None,
        work_date: Optional[datetime] = None,
    ) -> WorkLogEntry:
        """
        Record a unit of work against a request.

        Raises:
            ValidationError: description missing or hours negative/non-numeric
            NotFoundError: no request with this id
            StoreError: the insert failed
        """
        if not description or not str(description).strip():
            raise ValidationError("description is required", details={"description": "required"})
        hours = parse_hours(hours_spent)

        with atomic(self.db, "add_work_log", request_id=request_id, actor_id=engineer_id):
            self._require_request(request_id)
            now = self.clock()
            entry = WorkLogEntry(
                request_id=request_id,
                description=str(description).strip(),
                hours_spent=hours,
                engineer_id=engineer_id,
                work_date=work_date or now,
                logged_at=now,
            )
            self.db.add(entry)

        with store_errors(self.db, "add_work_log", request_id=request_id):
            self.db.refresh(entry)
        logger.info(
            "Work log added: request=%s work_log=%s by user=%s", request_id, entry.id, engineer_id
        )
        return entry

    def entries(self, request_id: int) -> List[WorkLogEntry]:
        """Work logs for a request, newest first."""
        self._require_request(request_id)
        return list(self.db.execute(
            select(WorkLogEntry)
            .options(joinedload(WorkLogEntry.engineer))
            .where(WorkLogEntry.request_id == request_id)
            .order_by(WorkLogEntry.logged_at.desc(), WorkLogEntry.id.desc())
        ).scalars())

    def _require_request(self, request_id: int) -> None:
        exists = self.db.execute(
            select(MaintenanceRequest.id).where(MaintenanceRequest.id == request_id)
        ).scalar_one_or_none()
        if exists is None:
            raise NotFoundError("MaintenanceRequest", request_id)
