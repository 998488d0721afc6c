"""Work-hour arithmetic."""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

HOURS_QUANT: Decimal = Decimal("0.01")
ZERO_HOURS: Decimal = Decimal("0.00")
SECONDS_PER_HOUR: Decimal = Decimal(3600)


def round_hours(value: Decimal | int | float | str) -> Decimal:
    """Round an hour quantity to 2 decimals, half away from zero."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(HOURS_QUANT, rounding=ROUND_HALF_UP)


def calc_granted_hours(duration: Decimal | None, check_in: datetime, check_out: datetime) -> Decimal:
    """Elapsed hours between check-in and check-out, capped at ``duration``.

    A check-out before check-in yields zero. ``duration`` of zero or ``None``
    means the activity has no cap.
    """
    if check_out < check_in:
        return ZERO_HOURS

    elapsed_seconds = Decimal(str((check_out - check_in).total_seconds()))
    hours = elapsed_seconds / SECONDS_PER_HOUR
    if duration is not None and duration > 0 and hours > duration:
        hours = Decimal(duration)
    return round_hours(hours)
