"""
Tests for the work log journal, append-only records, and request immutability.

These tests prove:
- Work logs are appended, never edited, and returned newest first
- History and work log rows refuse UPDATEs
- request_number and status cannot be patched through the field update path
- Deleting a request takes its history and logs with it
"""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from maintenance_engine.core.exceptions import ImmutableFieldError, NotFoundError, ValidationError
from maintenance_engine.models.audit import AppendOnlyViolation, StatusHistoryEntry, WorkLogEntry
from maintenance_engine.models.domain import MaintenanceRequest
from maintenance_engine.models.enums import Priority, RequestStatus


class TestWorkLogJournal:

    def test_append_work_log(self, lifecycle, sample_request, engineer_user):
        entry = lifecycle.add_work_log(
            sample_request.id, "Swapped the line card", engineer_user.id, hours_spent="1.5"
        )

        assert entry.request_id == sample_request.id
        assert entry.description == "Swapped the line card"
        assert entry.hours_spent == Decimal("1.50")
        assert entry.engineer_id == engineer_user.id
        assert entry.engineer.full_name == "Ed Engineer"

    def test_hours_are_optional(self, lifecycle, sample_request, engineer_user):
        entry = lifecycle.add_work_log(sample_request.id, "Checked cabling", engineer_user.id)

        assert entry.hours_spent is None

    def test_work_logs_do_not_touch_status(self, db_session, lifecycle, sample_request, engineer_user):
        lifecycle.add_work_log(sample_request.id, "Diagnosis", engineer_user.id, hours_spent=2)

        request = db_session.get(MaintenanceRequest, sample_request.id)
        assert request.status == RequestStatus.PENDING
        assert db_session.query(StatusHistoryEntry).count() == 1

    def test_logs_are_listed_newest_first(self, lifecycle, sample_request, engineer_user):
        for description in ["First visit", "Second visit", "Third visit"]:
            lifecycle.add_work_log(sample_request.id, description, engineer_user.id)

        logs = lifecycle.list_work_logs(sample_request.id)

        assert [log.description for log in logs] == ["Third visit", "Second visit", "First visit"]

    def test_scenario_work_log_on_missing_request(self, lifecycle, engineer_user):
        with pytest.raises(NotFoundError):
            lifecycle.add_work_log(4242, "Ghost work", engineer_user.id)

    def test_work_log_on_deleted_request(self, db_session, lifecycle, sample_request, admin_user, engineer_user):
        lifecycle.delete_request(sample_request.id, admin_user.id)

        with pytest.raises(NotFoundError):
            lifecycle.add_work_log(sample_request.id, "Too late", engineer_user.id)
        assert db_session.query(WorkLogEntry).count() == 0

    @pytest.mark.parametrize("hours", [-1, "-0.5", "lots", "NaN", "Infinity", "-inf", "1000"])
    def test_bad_hours_are_rejected(self, lifecycle, sample_request, engineer_user, hours):
        with pytest.raises(ValidationError):
            lifecycle.add_work_log(sample_request.id, "Work", engineer_user.id, hours_spent=hours)

    def test_description_is_required(self, lifecycle, sample_request, engineer_user):
        with pytest.raises(ValidationError):
            lifecycle.add_work_log(sample_request.id, "   ", engineer_user.id)


class TestAppendOnlyRecords:

    def test_history_rows_refuse_updates(self, db_session, sample_request):
        row = db_session.query(StatusHistoryEntry).filter_by(request_id=sample_request.id).one()
        row.change_reason = "rewritten"

        with pytest.raises(AppendOnlyViolation) as exc_info:
            db_session.commit()

        db_session.rollback()
        assert "IMMUTABILITY VIOLATION" in str(exc_info.value)
        assert db_session.query(StatusHistoryEntry).one().change_reason == "Initial creation"

    def test_work_log_rows_refuse_updates(self, db_session, lifecycle, sample_request, engineer_user):
        entry = lifecycle.add_work_log(sample_request.id, "Original", engineer_user.id)
        row = db_session.get(WorkLogEntry, entry.id)
        row.description = "Edited"

        with pytest.raises(AppendOnlyViolation):
            db_session.commit()
        db_session.rollback()

    def test_journal_exposes_no_edit_or_delete(self, lifecycle):
        for name in ("update", "edit", "delete", "remove"):
            assert not hasattr(lifecycle.journal, name)

    def test_history_accumulates(self, db_session, lifecycle, sample_request, admin_user):
        for target in ["In Progress", "On Hold", "In Progress"]:
            lifecycle.transition_status(sample_request.id, target, admin_user.id)

        assert db_session.query(StatusHistoryEntry).count() == 4


class TestRequestImmutability:

    @pytest.mark.parametrize("field, value", [
        ("request_number", "MR-XXX-20240101-001"),
        ("status", "Completed"),
        ("created_by_id", 99),
        ("created_at", datetime(2020, 1, 1)),
    ])
    def test_fixed_fields_cannot_be_patched(self, db_session, lifecycle, sample_request, admin_user, field, value):
        with pytest.raises(ImmutableFieldError) as exc_info:
            lifecycle.update_request_fields(sample_request.id, {field: value}, admin_user.id)

        assert "IMMUTABILITY VIOLATION" in str(exc_info.value)
        assert field in str(exc_info.value)
        request = db_session.get(MaintenanceRequest, sample_request.id)
        assert request.request_number == sample_request.request_number
        assert request.status == RequestStatus.PENDING

    def test_update_mutable_fields(self, lifecycle, sample_request, admin_user, engineer_user):
        scheduled = datetime(2024, 2, 1, 10, 0, 0)

        updated = lifecycle.update_request_fields(
            sample_request.id,
            {
                "title": "Replace core switch (urgent)",
                "priority": "Critical",
                "assigned_engineer_id": engineer_user.id,
                "scheduled_date": scheduled,
            },
            admin_user.id,
        )

        assert updated.title == "Replace core switch (urgent)"
        assert updated.priority == Priority.CRITICAL
        assert updated.assigned_engineer.id == engineer_user.id
        assert updated.scheduled_date == scheduled
        assert updated.request_number == sample_request.request_number
        assert updated.updated_at > sample_request.updated_at

    def test_field_update_writes_no_history(self, db_session, lifecycle, sample_request, admin_user):
        lifecycle.update_request_fields(sample_request.id, {"notes": "Spare on order"}, admin_user.id)

        assert db_session.query(StatusHistoryEntry).count() == 1

    def test_unknown_fields_and_bad_values(self, lifecycle, sample_request, admin_user):
        with pytest.raises(ValidationError):
            lifecycle.update_request_fields(sample_request.id, {"colour": "blue"}, admin_user.id)
        with pytest.raises(ValidationError):
            lifecycle.update_request_fields(sample_request.id, {"priority": "Urgent"}, admin_user.id)
        with pytest.raises(ValidationError):
            lifecycle.update_request_fields(sample_request.id, {"title": "  "}, admin_user.id)

    def test_update_missing_request(self, lifecycle, admin_user):
        with pytest.raises(NotFoundError):
            lifecycle.update_request_fields(777, {"title": "Nope"}, admin_user.id)


class TestCreateAndDelete:

    def test_create_requires_title_and_description(self, lifecycle, admin_user):
        with pytest.raises(ValidationError) as exc_info:
            lifecycle.create_request({"client_name": "Acme Corp", "title": ""}, actor_id=admin_user.id)

        assert set(exc_info.value.details) == {"title", "description"}

    def test_create_requires_actor(self, lifecycle):
        with pytest.raises(ValidationError):
            lifecycle.create_request({"title": "T", "description": "D"}, actor_id=None)

    def test_create_defaults(self, sample_request, lifecycle, admin_user):
        created = lifecycle.create_request({"title": "T", "description": "D"}, actor_id=admin_user.id)

        assert created.priority == Priority.MEDIUM
        assert created.client_email == "internal@company.com"
        assert created.client_phone == "N/A"
        assert created.client_company == "Internal"
        assert created.created_by.full_name == "Ada Admin"
        assert created.assigned_engineer is None

    def test_get_request_hydrates_logs_and_history(self, lifecycle, sample_request, admin_user, engineer_user):
        lifecycle.add_work_log(sample_request.id, "Visit", engineer_user.id, hours_spent="0.75")
        lifecycle.transition_status(sample_request.id, "In Progress", admin_user.id)

        detail = lifecycle.get_request(sample_request.id)

        assert [log.description for log in detail.work_logs] == ["Visit"]
        assert [h.new_status for h in detail.status_history] == [RequestStatus.IN_PROGRESS, RequestStatus.PENDING]

    def test_get_missing_request(self, lifecycle):
        with pytest.raises(NotFoundError):
            lifecycle.get_request(31337)

    def test_delete_cascades_history_and_logs(self, db_session, lifecycle, sample_request, admin_user, engineer_user):
        lifecycle.add_work_log(sample_request.id, "Visit", engineer_user.id)
        lifecycle.transition_status(sample_request.id, "Cancelled", admin_user.id)

        lifecycle.delete_request(sample_request.id, admin_user.id)

        assert db_session.get(MaintenanceRequest, sample_request.id) is None
        assert db_session.query(StatusHistoryEntry).count() == 0
        assert db_session.query(WorkLogEntry).count() == 0

    def test_delete_missing_request(self, lifecycle, admin_user):
        with pytest.raises(NotFoundError):
            lifecycle.delete_request(555, admin_user.id)

    def test_history_lookup_for_missing_request(self, lifecycle):
        with pytest.raises(NotFoundError):
            lifecycle.list_status_history(404)
        with pytest.raises(NotFoundError):
            lifecycle.list_work_logs(404)


class TestStats:

    def test_counts(self, lifecycle, clock, admin_user):
        base = {"description": "d", "client_name": "Acme Corp"}
        pending = lifecycle.create_request({**base, "title": "a", "priority": "Critical"}, admin_user.id)
        active = lifecycle.create_request({**base, "title": "b", "priority": "High"}, admin_user.id)
        done = lifecycle.create_request(
            {**base, "title": "c", "scheduled_date": datetime(2024, 1, 10)}, admin_user.id
        )
        overdue = lifecycle.create_request(
            {**base, "title": "d", "scheduled_date": datetime(2024, 1, 12)}, admin_user.id
        )
        lifecycle.transition_status(active.id, "In Progress", admin_user.id)
        lifecycle.transition_status(done.id, "Completed", admin_user.id)

        stats = lifecycle.get_stats()

        assert stats.total_requests == 4
        assert stats.status_counts.pending == 2
        assert stats.status_counts.in_progress == 1
        assert stats.status_counts.completed == 1
        assert stats.status_counts.cancelled == 0
        assert stats.priority_counts.critical == 1
        assert stats.priority_counts.high == 1
        assert stats.overdue_count == 1
        assert stats.recent_count == 4
        assert pending.id != overdue.id

    def test_recent_window_is_thirty_days(self, lifecycle, clock, admin_user):
        lifecycle.create_request({"title": "old", "description": "d"}, admin_user.id)
        clock.jump_to(datetime(2024, 1, 15) + timedelta(days=45))
        lifecycle.create_request({"title": "new", "description": "d"}, admin_user.id)

        stats = lifecycle.get_stats()

        assert stats.total_requests == 2
        assert stats.recent_count == 1

    def test_overdue_flag_follows_the_engine_clock(self, lifecycle, clock, admin_user):
        created = lifecycle.create_request(
            {"title": "Service chiller", "description": "d", "scheduled_date": datetime(2024, 1, 20)},
            admin_user.id,
        )

        assert created.is_overdue is False
        assert lifecycle.get_request(created.id).is_overdue is False
        assert lifecycle.get_stats().overdue_count == 0

        clock.jump_to(datetime(2024, 2, 1))

        assert lifecycle.get_request(created.id).is_overdue is True
        assert [item.is_overdue for item in lifecycle.list_requests({}).items] == [True]
        assert lifecycle.get_stats().overdue_count == 1

        completed = lifecycle.transition_status(created.id, "Completed", admin_user.id)
        assert completed.is_overdue is False
