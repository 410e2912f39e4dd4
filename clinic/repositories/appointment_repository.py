from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.appointment import (
    Appointment, AppointmentStatus, INACTIVE_STATUSES
)


def _day_bounds(day: date):
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


class AppointmentRepository:
    """Storage and retrieval of appointments.

    Lookups return ``None`` for unknown ids; turning that into an error is
    left to the caller. Methods that promise an order sort by
    ``appointment_datetime`` ascending unless noted otherwise.
    """

    def __init__(self, db: Session):
        self.db = db

    def add(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        self.db.flush()
        return appointment

    def get_by_id(self, appointment_id: int) -> Optional[Appointment]:
        return self.db.get(Appointment, appointment_id)

    def list_all(self) -> List[Appointment]:
        return self.db.query(Appointment).all()

    def list_by_doctor(self, doctor_id: int) -> List[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id
        ).all()

    def list_by_patient(self, patient_id: int) -> List[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.patient_id == patient_id
        ).all()

    def list_by_status(self, status: AppointmentStatus) -> List[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.status == status
        ).all()

    def list_by_doctor_and_date(self, doctor_id: int, day: date) -> List[Appointment]:
        start, end = _day_bounds(day)
        return self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_datetime >= start,
            Appointment.appointment_datetime < end
        ).order_by(Appointment.appointment_datetime).all()

    def list_by_date_range(self, start: datetime, end: datetime) -> List[Appointment]:
        """Appointments starting within ``[start, end]``."""
        return self.db.query(Appointment).filter(
            Appointment.appointment_datetime >= start,
            Appointment.appointment_datetime <= end
        ).order_by(Appointment.appointment_datetime).all()

    def list_upcoming_for_doctor(
        self, doctor_id: int, now: datetime, until: datetime
    ) -> List[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_datetime >= now,
            Appointment.appointment_datetime <= until,
            Appointment.status.notin_(INACTIVE_STATUSES)
        ).order_by(Appointment.appointment_datetime).all()

    def list_upcoming_for_patient(
        self, patient_id: int, now: datetime, until: datetime
    ) -> List[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.patient_id == patient_id,
            Appointment.appointment_datetime >= now,
            Appointment.appointment_datetime <= until,
            Appointment.status.notin_(INACTIVE_STATUSES)
        ).order_by(Appointment.appointment_datetime).all()

    def list_requiring_follow_up(self, since: datetime, now: datetime) -> List[Appointment]:
        """Completed appointments in ``[since, now]``, newest first."""
        return self.db.query(Appointment).filter(
            Appointment.status == AppointmentStatus.COMPLETED,
            Appointment.appointment_datetime >= since,
            Appointment.appointment_datetime <= now
        ).order_by(Appointment.appointment_datetime.desc()).all()

    def find_active_starting_between(
        self,
        doctor_id: int,
        earliest: datetime,
        before: datetime,
        exclude_id: Optional[int] = None
    ) -> List[Appointment]:
        """Active appointments of a doctor starting in ``[earliest, before)``."""
        query = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.status.notin_(INACTIVE_STATUSES),
            Appointment.appointment_datetime >= earliest,
            Appointment.appointment_datetime < before
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)
        return query.order_by(Appointment.appointment_datetime).all()

    def count_by_status(self, status: AppointmentStatus) -> int:
        return self.db.query(Appointment).filter(
            Appointment.status == status
        ).count()

    def count_for_day(self, day: date) -> int:
        start, end = _day_bounds(day)
        return self.db.query(Appointment).filter(
            Appointment.appointment_datetime >= start,
            Appointment.appointment_datetime < end
        ).count()

    def count_completed(self) -> int:
        return self.count_by_status(AppointmentStatus.COMPLETED)
