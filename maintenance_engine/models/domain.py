"""Domain models - users and the maintenance requests they raise and work on."""
from datetime import datetime

from sqlalchemy import Column, String, Integer, DateTime, Text, Boolean, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from maintenance_engine.clock import utcnow
from maintenance_engine.database import Base
from maintenance_engine.models.enums import RequestStatus, Priority, Category


def enum_column_type(enum_cls):
    """Store enum *values* ("In Progress"), not member names, as plain strings."""
    return SQLEnum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=20,
    )


class User(Base):
    """
    Minimal user record. Owned by the auth layer; the engine only reads it
    for assignee/creator display data.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False)
    email = Column(String(100), unique=True, nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    role = Column(String(20), nullable=False, default="engineer")
    is_active = Column(Boolean, nullable=False, default=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class MaintenanceRequest(Base):
    """
    One serviceable issue, tracked from Pending through to Completed/Cancelled.

    Invariants enforced here and in the service layer:
    - request_number is set once at creation and never patched
    - status only changes through the transition recorder, which writes the
      paired StatusHistoryEntry in the same transaction
    - created_at/updated_at are system-assigned
    """
    __tablename__ = "maintenance_requests"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    # Advisory uniqueness: concurrent same-day creations may collide, so no UNIQUE constraint
    request_number = Column(String(50), nullable=False, index=True)

    # Client facet
    client_name = Column(String(100), nullable=False)
    client_email = Column(String(100), nullable=False)
    client_phone = Column(String(50), nullable=True)
    client_company = Column(String(100), nullable=True)

    # Work facet
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(enum_column_type(Category), nullable=True, index=True)
    priority = Column(enum_column_type(Priority), nullable=False, default=Priority.MEDIUM, index=True)
    notes = Column(Text, nullable=True)

    # Lifecycle facet
    status = Column(enum_column_type(RequestStatus), nullable=False, default=RequestStatus.PENDING, index=True)
    requested_date = Column(DateTime, nullable=False, default=utcnow)
    scheduled_date = Column(DateTime, nullable=True, index=True)
    completed_date = Column(DateTime, nullable=True)

    # Assignment
    assigned_engineer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    assigned_engineer = relationship("User", foreign_keys=[assigned_engineer_id])
    created_by = relationship("User", foreign_keys=[created_by_id])
    status_history = relationship(
        "StatusHistoryEntry",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="[StatusHistoryEntry.changed_at.desc(), StatusHistoryEntry.id.desc()]",
    )
    work_logs = relationship(
        "WorkLogEntry",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="[WorkLogEntry.logged_at.desc(), WorkLogEntry.id.desc()]",
    )

    def is_overdue_at(self, now: datetime) -> bool:
        """Scheduled before now and not yet completed."""
        return bool(
            self.scheduled_date
            and self.scheduled_date < now
            and self.status != RequestStatus.COMPLETED
        )


# Register the append-only models so the relationship strings above resolve
from maintenance_engine.models import audit  # noqa: E402,F401
