from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from app.core.errors import InvalidPolicy, InvalidTransition
from app.models.meeting import (
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    PENDING,
    RESCHEDULE_REQUESTED,
    VALID_STATUSES,
)
from app.services.policy import (
    SchedulingPolicy,
    can_transition,
    ensure_modifiable,
    ensure_transition,
    valid_meeting_duration,
    validate_policy,
)
from app.services.timezones import UTC

NOW = datetime(2026, 1, 10, 12, tzinfo=UTC)


class TestSchedulingPolicy:
    def test_defaults(self):
        policy = SchedulingPolicy()

        assert policy.buffer == timedelta(minutes=15)
        assert policy.earliest_start(NOW) == NOW + timedelta(hours=3)
        assert policy.latest_end(NOW) == NOW + timedelta(days=90)

    @pytest.mark.parametrize(
        "buffer_minutes, advance_days, min_hours",
        [(-1, 90, 3), (121, 90, 3), (15, 0, 3), (15, 366, 3), (15, 90, -1), (15, 90, 169)],
    )
    def test_out_of_range_values_rejected(self, buffer_minutes, advance_days, min_hours):
        with pytest.raises(InvalidPolicy):
            SchedulingPolicy(buffer_minutes, advance_days, min_hours)

    def test_bounds_are_inclusive(self):
        validate_policy(0, 1, 0)
        validate_policy(120, 365, 168)

    def test_non_integer_rejected(self):
        with pytest.raises(InvalidPolicy, match="must be an integer"):
            validate_policy("15", 90, 3)

    def test_invalid_policy_is_value_error(self):
        with pytest.raises(ValueError):
            validate_policy(True, 90, 3)

    @pytest.mark.parametrize("minutes, ok", [(15, True), (480, True), (14, False), (481, False), (30.0, False)])
    def test_meeting_duration_bounds(self, minutes, ok):
        assert valid_meeting_duration(minutes) is ok


class TestStatusMachine:
    @pytest.mark.parametrize(
        "current, new",
        [
            (PENDING, CONFIRMED),
            (PENDING, CANCELLED),
            (CONFIRMED, CANCELLED),
            (CONFIRMED, COMPLETED),
            (CONFIRMED, RESCHEDULE_REQUESTED),
            (RESCHEDULE_REQUESTED, CONFIRMED),
            (RESCHEDULE_REQUESTED, CANCELLED),
        ],
    )
    def test_allowed(self, current, new):
        assert can_transition(current, new)
        ensure_transition(current, new)

    @pytest.mark.parametrize("terminal", [CANCELLED, COMPLETED])
    def test_terminal_statuses_have_no_exits(self, terminal):
        for status in VALID_STATUSES:
            assert not can_transition(terminal, status)
        with pytest.raises(InvalidTransition, match="already"):
            ensure_transition(terminal, CONFIRMED)

    @pytest.mark.parametrize(
        "current, new",
        [(PENDING, COMPLETED), (PENDING, RESCHEDULE_REQUESTED), (RESCHEDULE_REQUESTED, COMPLETED)],
    )
    def test_disallowed(self, current, new):
        with pytest.raises(InvalidTransition):
            ensure_transition(current, new)


class TestEnsureModifiable:
    def test_future_confirmed_meeting_is_modifiable(self):
        ensure_modifiable(CONFIRMED, NOW + timedelta(hours=1), NOW, "cancel")

    def test_started_meeting_is_frozen(self):
        with pytest.raises(InvalidTransition, match="already started"):
            ensure_modifiable(CONFIRMED, NOW - timedelta(minutes=5), NOW, "cancel")

    @pytest.mark.parametrize("status", [CANCELLED, COMPLETED])
    def test_terminal_meeting_is_frozen(self, status):
        with pytest.raises(InvalidTransition, match=status):
            ensure_modifiable(status, NOW + timedelta(days=1), NOW, "reschedule")
