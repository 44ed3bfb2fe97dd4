from datetime import date, datetime, timedelta
from typing import Optional

from app.core.config import settings
from app.core.exceptions import ValidationError


def validate_shift_window(start_time: datetime, end_time: datetime, max_hours: Optional[int] = None) -> None:
    """Raise ValidationError unless end is after start and the shift lasts at most max_hours"""
    if max_hours is None:
        max_hours = settings.MAX_SHIFT_DURATION_HOURS

    if start_time >= end_time:
        raise ValidationError("Shift end time must be after start time")

    if end_time - start_time > timedelta(hours=max_hours):
        raise ValidationError(f"Shift cannot exceed {max_hours} hours")


def validate_date_range(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise ValidationError("End date must be on or after start date")


def time_windows_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open [start, end) overlap; touching windows do not overlap"""
    return start_a < end_b and end_a > start_b
