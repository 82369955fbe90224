"""Timer arithmetic and lifecycle rules, without a database."""

from datetime import timedelta

import pytest

from ticketflow.config import SLAStatus
from ticketflow.core import SLANotActiveError, ValidationException
from ticketflow.sla.domain import SLAClock, SLAConfig, SLADefinition, TicketSLA

from tests.conftest import START

FOUR_HOURS = SLADefinition(name="incident/high", target=timedelta(hours=4))


def new_timer() -> TicketSLA:
    return TicketSLA.start("T-1", "tenant-1", FOUR_HOURS, START)


class TestSLAClock:
    def test_percent_elapsed_is_clamped(self):
        due = START + timedelta(hours=4)
        assert SLAClock.percent_elapsed(START, due, START + timedelta(hours=1)) == 25.0
        assert SLAClock.percent_elapsed(START, due, START + timedelta(hours=9)) == 100.0
        assert SLAClock.percent_elapsed(START, due, START - timedelta(hours=1)) == 0.0

    def test_zero_length_window_counts_as_used(self):
        assert SLAClock.percent_elapsed(START, START, START) == 100.0

    def test_remaining_and_overdue_never_negative(self):
        due = START + timedelta(hours=1)
        assert SLAClock.remaining(due, START + timedelta(hours=2)) == timedelta(0)
        assert SLAClock.overdue(due, START) == timedelta(0)
        assert SLAClock.overdue(due, START + timedelta(hours=2)) == timedelta(hours=1)


class TestTicketSLA:
    def test_start_sets_deadline_from_target(self):
        sla = new_timer()
        assert sla.status == SLAStatus.IN_PROGRESS
        assert sla.due_time == START + timedelta(hours=4)

    def test_pause_resume_shifts_deadline_by_paused_interval(self):
        sla = new_timer()
        sla.pause(START + timedelta(hours=1), "agent-1", "Waiting on customer")
        due = sla.resume(START + timedelta(hours=3), "agent-1")

        assert due == START + timedelta(hours=6)
        assert sla.total_pause_duration == timedelta(hours=2)
        assert sla.budget == timedelta(hours=4)

        standing = sla.check_breach(START + timedelta(hours=5))
        assert not standing.is_breached
        assert standing.time_remaining == timedelta(hours=1)

    def test_paused_timer_reports_zero_percent_and_cannot_breach(self):
        sla = new_timer()
        sla.pause(START + timedelta(hours=1), None, "Vendor")
        standing = sla.check_breach(START + timedelta(hours=10))
        assert standing.percent_elapsed == 0.0
        assert not standing.is_breached

    def test_breach_is_sticky_and_keeps_first_detection_time(self):
        sla = new_timer()
        first = sla.check_breach(START + timedelta(hours=5))
        assert first.is_breached and first.newly_breached
        assert first.breach_duration == timedelta(hours=1)

        later = sla.check_breach(START + timedelta(hours=6))
        assert later.is_breached and not later.newly_breached
        assert sla.breach_time == START + timedelta(hours=5)
        assert later.breach_duration == timedelta(hours=2)

    def test_breach_survives_pause_and_resume(self):
        sla = new_timer()
        sla.check_breach(START + timedelta(hours=5))
        sla.pause(START + timedelta(hours=5), None, "Escalated")
        sla.resume(START + timedelta(hours=8), None)
        assert sla.is_breached

    def test_pause_requires_reason(self):
        with pytest.raises(ValidationException):
            new_timer().pause(START, None, "   ")

    def test_double_pause_is_rejected(self):
        sla = new_timer()
        sla.pause(START, None, "First")
        with pytest.raises(SLANotActiveError):
            sla.pause(START, None, "Second")

    def test_resume_of_running_timer_is_rejected(self):
        with pytest.raises(SLANotActiveError):
            new_timer().resume(START, None)

    def test_complete_records_wall_clock_duration(self):
        sla = new_timer()
        sla.pause(START + timedelta(hours=1), None, "Waiting")
        sla.resume(START + timedelta(hours=2), None)
        sla.complete(START + timedelta(hours=3))

        assert sla.status == SLAStatus.COMPLETED
        assert sla.actual_duration == timedelta(hours=3)
        assert not sla.is_breached

    def test_complete_after_deadline_records_breach(self):
        sla = new_timer()
        sla.complete(START + timedelta(hours=4, minutes=30))
        assert sla.is_breached
        assert sla.breach_duration == timedelta(minutes=30)

    def test_completed_timer_rejects_further_operations(self):
        sla = new_timer()
        sla.complete(START + timedelta(hours=1))
        with pytest.raises(SLANotActiveError):
            sla.pause(START + timedelta(hours=2), None, "Late")
        with pytest.raises(SLANotActiveError):
            sla.complete(START + timedelta(hours=2))

    def test_paused_timer_cannot_complete(self):
        sla = new_timer()
        sla.pause(START, None, "Waiting")
        with pytest.raises(SLANotActiveError):
            sla.complete(START + timedelta(hours=1))

    def test_supersede_keeps_start_and_pause_total(self):
        sla = new_timer()
        sla.pause(START + timedelta(hours=1), None, "Waiting")
        sla.resume(START + timedelta(hours=2), None)

        one_hour = SLADefinition(name="incident/critical", target=timedelta(hours=1))
        replacement = TicketSLA.supersede(sla, one_hour, START + timedelta(hours=3))

        assert replacement.start_time == START
        assert replacement.total_pause_duration == timedelta(hours=1)
        assert replacement.due_time == START + timedelta(hours=2)
        assert replacement.id != sla.id


class TestSLAConfig:
    def test_lookup_prefers_tenant_then_type_then_priority(self):
        config = SLAConfig(
            sla_targets={"high": 480},
            ticket_type_targets={"incident": {"high": 240}},
            tenant_overrides={"tenant-1": {"incident": {"high": 60}}},
        )
        assert config.get_target_minutes("incident", "high", "tenant-1") == 60
        assert config.get_target_minutes("incident", "high", "tenant-2") == 240
        assert config.get_target_minutes("task", "high") == 480

    def test_missing_priorities_get_defaults(self):
        config = SLAConfig(sla_targets={"high": 30})
        assert config.get_target_minutes("task", "low") == 4320

    def test_non_positive_target_is_rejected(self):
        with pytest.raises(ValueError):
            SLAConfig(sla_targets={"high": 0})

    def test_unknown_ticket_type_override_is_rejected(self):
        with pytest.raises(ValueError):
            SLAConfig(ticket_type_targets={"hotfix": {"high": 60}})
