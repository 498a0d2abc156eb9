from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from utils import (
    ReservationError,
    ReservationPolicy,
    is_reserved,
    validate_reservation_period,
)

POLICY = ReservationPolicy(max_duration_days=30, min_advance_hours=24)
NOW = datetime(2024, 1, 1, 0, 0)


def test_example_periods_from_new_year():
    assert validate_reservation_period(
        datetime(2024, 1, 1, 12), datetime(2024, 1, 5), NOW, POLICY
    ) is ReservationError.INSUFFICIENT_NOTICE
    assert validate_reservation_period(
        datetime(2024, 1, 3), datetime(2024, 2, 10), NOW, POLICY
    ) is ReservationError.DURATION_EXCEEDED
    assert validate_reservation_period(
        datetime(2024, 1, 3), datetime(2024, 1, 20), NOW, POLICY
    ) is None


@pytest.mark.parametrize("offset", [timedelta(0), timedelta(hours=-1), timedelta(days=-40)])
def test_end_not_after_start_is_invalid_range(offset):
    start = datetime(2024, 3, 1)
    assert validate_reservation_period(start, start + offset, NOW, POLICY) is ReservationError.INVALID_RANGE


def test_invalid_range_wins_over_notice():
    # Both in the past and reversed: the range rule is checked first.
    assert validate_reservation_period(
        datetime(2023, 12, 30), datetime(2023, 12, 1), NOW, POLICY
    ) is ReservationError.INVALID_RANGE


def test_short_notice_reported_regardless_of_duration():
    start = NOW + timedelta(hours=23)
    assert validate_reservation_period(
        start, start + timedelta(days=90), NOW, POLICY
    ) is ReservationError.INSUFFICIENT_NOTICE


def test_notice_exactly_at_minimum_is_accepted():
    start = NOW + timedelta(hours=24)
    assert validate_reservation_period(start, start + timedelta(days=2), NOW, POLICY) is None


def test_duration_exactly_at_maximum_is_accepted():
    start = datetime(2024, 1, 5)
    assert validate_reservation_period(start, start + timedelta(days=30), NOW, POLICY) is None
    assert validate_reservation_period(
        start, start + timedelta(days=30, minutes=1), NOW, POLICY
    ) is ReservationError.DURATION_EXCEEDED


def test_zero_advance_policy_accepts_immediate_start():
    policy = ReservationPolicy(max_duration_days=7, min_advance_hours=0)
    assert validate_reservation_period(NOW, NOW + timedelta(days=1), NOW, policy) is None


def test_unparseable_dates_are_invalid_range():
    assert validate_reservation_period("not a date", "2024-01-20", NOW, POLICY) is ReservationError.INVALID_RANGE
    assert validate_reservation_period(None, datetime(2024, 1, 20), NOW, POLICY) is ReservationError.INVALID_RANGE


def test_missing_reference_time_is_insufficient_notice():
    start, end = datetime(2024, 1, 3), datetime(2024, 1, 5)
    assert validate_reservation_period(start, end, None, POLICY) is ReservationError.INSUFFICIENT_NOTICE
    assert validate_reservation_period(start, end, "n/a", POLICY) is ReservationError.INSUFFICIENT_NOTICE


def test_iso_strings_are_accepted():
    assert validate_reservation_period(
        "2024-01-03T00:00:00Z", "2024-01-20T00:00:00Z", "2024-01-01T00:00:00Z", POLICY
    ) is None


def test_error_messages_are_french():
    assert ReservationError.INVALID_RANGE.message == "La date de fin doit être postérieure à la date de début"
    assert ReservationError.DURATION_EXCEEDED.value == "DurationExceeded"


def test_policy_from_organization():
    org = SimpleNamespace(max_reservation_days=14, min_advance_hours=48)
    assert ReservationPolicy.from_organization(org) == ReservationPolicy(14, 48)


def _res(start, end):
    return SimpleNamespace(start_at=start, end_at=end)


def test_is_reserved_follows_latest_reservation():
    history = [
        _res(datetime(2023, 12, 1), datetime(2024, 2, 1)),
        _res(datetime(2023, 12, 10), datetime(2023, 12, 20)),
    ]
    # Latest by start ended before now even though an older one runs longer.
    assert is_reserved(history, NOW) is False
    history.append(_res(datetime(2024, 1, 3), datetime(2024, 1, 10)))
    assert is_reserved(history, NOW) is True


def test_is_reserved_without_history():
    assert is_reserved([], NOW) is False
