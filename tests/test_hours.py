from datetime import datetime, timedelta, timezone
from decimal import Decimal

from volunteer_app.utils.hours import calc_granted_hours, round_hours

CHECK_IN = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_round_hours_rounds_half_away_from_zero() -> None:
    assert round_hours(Decimal("1.005")) == Decimal("1.01")
    assert round_hours(Decimal("-1.005")) == Decimal("-1.01")
    assert round_hours(Decimal("1.004")) == Decimal("1.00")
    assert round_hours(2.675) == Decimal("2.68")


def test_elapsed_hours_are_rounded_once() -> None:
    assert calc_granted_hours(Decimal("4.00"), CHECK_IN, CHECK_IN + timedelta(minutes=90)) == Decimal("1.50")
    assert calc_granted_hours(Decimal("4.00"), CHECK_IN, CHECK_IN + timedelta(minutes=20)) == Decimal("0.33")


def test_elapsed_hours_are_capped_at_activity_duration() -> None:
    assert calc_granted_hours(Decimal("2.00"), CHECK_IN, CHECK_IN + timedelta(hours=5)) == Decimal("2.00")


def test_zero_duration_means_no_cap() -> None:
    assert calc_granted_hours(Decimal("0"), CHECK_IN, CHECK_IN + timedelta(hours=5)) == Decimal("5.00")


def test_check_out_before_check_in_grants_nothing() -> None:
    assert calc_granted_hours(Decimal("2.00"), CHECK_IN, CHECK_IN - timedelta(minutes=5)) == Decimal("0.00")
