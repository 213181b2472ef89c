"""
Append-only records attached to a maintenance request.

StatusHistoryEntry is the audit trail of status transitions; WorkLogEntry is
the journal of effort spent. Neither is edited once written: rows only leave
the table when their parent request is deleted.
"""
from sqlalchemy import Column, String, Integer, DateTime, Text, Numeric, ForeignKey, event
from sqlalchemy.orm import relationship

from maintenance_engine.clock import utcnow
from maintenance_engine.database import Base
from maintenance_engine.models.domain import enum_column_type
from maintenance_engine.models.enums import RequestStatus


class StatusHistoryEntry(Base):
    """
    Immutable fact: a request moved from old_status to new_status.

    Invariants:
    - old_status is NULL only for the creation event
    - new_status equals the request's status at the moment the row was written
    - Once written, never edited
    """
    __tablename__ = "maintenance_status_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    request_id = Column(
        Integer, ForeignKey("maintenance_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    old_status = Column(enum_column_type(RequestStatus), nullable=True)
    new_status = Column(enum_column_type(RequestStatus), nullable=False)
    changed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    change_reason = Column(Text, nullable=True)
    changed_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    request = relationship("MaintenanceRequest", back_populates="status_history")
    changed_by = relationship("User")


class WorkLogEntry(Base):
    """
    One unit of recorded effort against a request.

    Invariants:
    - description is required
    - hours_spent, when present, is non-negative
    - Append-only; no edit or delete is exposed
    """
    __tablename__ = "maintenance_work_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    request_id = Column(
        Integer, ForeignKey("maintenance_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    engineer_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    description = Column(Text, nullable=False)
    hours_spent = Column(Numeric(5, 2), nullable=True)
    work_date = Column(DateTime, nullable=False, default=utcnow)
    logged_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    request = relationship("MaintenanceRequest", back_populates="work_logs")
    engineer = relationship("User")


class AppendOnlyViolation(RuntimeError):
    """Raised when something tries to UPDATE an append-only row."""


def _refuse_update(mapper, connection, target):
    raise AppendOnlyViolation(
        f"IMMUTABILITY VIOLATION: {type(target).__name__} id={target.id} is append-only"
    )


event.listen(StatusHistoryEntry, "before_update", _refuse_update)
event.listen(WorkLogEntry, "before_update", _refuse_update)
