from datetime import datetime, timedelta
from typing import Optional

from ..core.exceptions import ValidationError
from ..models.appointment import MAX_DURATION_MINUTES
from ..repositories.appointment_repository import AppointmentRepository


def intervals_overlap(
    start: datetime, end: datetime, other_start: datetime, other_end: datetime
) -> bool:
    """Half-open interval test; touching boundaries do not overlap."""
    return not (end <= other_start or start >= other_end)


def is_slot_available(
    repository: AppointmentRepository,
    doctor_id: int,
    start: datetime,
    duration_minutes: int,
    exclude_appointment_id: Optional[int] = None
) -> bool:
    """Return True when ``[start, start + duration)`` is free for the doctor.

    Only active appointments (not cancelled, not no-show) hold a slot. The
    store query is bounded by the longest allowed appointment, so anything
    starting earlier than ``start - MAX_DURATION_MINUTES`` has already ended.
    """
    if duration_minutes is None or duration_minutes <= 0:
        raise ValidationError("Duration must be a positive number of minutes")

    end = start + timedelta(minutes=duration_minutes)
    candidates = repository.find_active_starting_between(
        doctor_id,
        earliest=start - timedelta(minutes=MAX_DURATION_MINUTES),
        before=end,
        exclude_id=exclude_appointment_id
    )

    for existing in candidates:
        if intervals_overlap(start, end, existing.appointment_datetime, existing.end_datetime):
            return False

    return True
