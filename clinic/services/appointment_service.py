from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional
import logging

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ConflictError, NotFoundError, StoreError, ValidationError
from ..models.appointment import (
    Appointment, AppointmentStatus, AppointmentType,
    MIN_DURATION_MINUTES, MAX_DURATION_MINUTES
)
from ..models.doctor import Doctor
from ..models.patient import Patient
from ..repositories.appointment_repository import AppointmentRepository
from .availability import is_slot_available

logger = logging.getLogger(__name__)

CANCELLATION_PREFIX = "Cancellation reason: "


def _coerce(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Unknown {label}: {value}")


class AppointmentService:
    """Appointment creation, lifecycle transitions and queries.

    Each mutating call is one unit of work: it commits on success and rolls
    back on a storage failure. Create and reschedule take a row lock on the
    doctor before checking availability so concurrent bookings for the same
    doctor are serialized until commit.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.clock = clock
        self.appointments = AppointmentRepository(db)

    # Creation

    def create_appointment(
        self,
        doctor_id: int,
        patient_id: int,
        appointment_datetime: datetime,
        duration_minutes: int,
        appointment_type: AppointmentType = AppointmentType.CONSULTATION,
        reason_for_visit: Optional[str] = None
    ) -> Appointment:
        """Book a new appointment in SCHEDULED status."""
        appointment_type = _coerce(AppointmentType, appointment_type, "appointment type")
        self._validate_slot_request(appointment_datetime, duration_minutes)

        doctor = self._lock_doctor(doctor_id)
        patient = self.db.get(Patient, patient_id)
        if not patient:
            raise NotFoundError(f"Patient not found with id: {patient_id}")

        if not is_slot_available(self.appointments, doctor.id, appointment_datetime, duration_minutes):
            logger.warning(
                f"Slot conflict for doctor {doctor.id} at {appointment_datetime} "
                f"({duration_minutes} min)"
            )
            self.db.rollback()
            raise ConflictError()

        now = self.clock()
        appointment = Appointment(
            doctor_id=doctor.id,
            patient_id=patient.id,
            appointment_datetime=appointment_datetime,
            duration_minutes=duration_minutes,
            appointment_type=appointment_type,
            reason_for_visit=reason_for_visit,
            status=AppointmentStatus.SCHEDULED,
            is_paid=False,
            created_at=now,
            updated_at=now
        )
        self.appointments.add(appointment)
        self._commit(appointment)

        logger.info(
            f"Created appointment {appointment.id} for doctor {doctor.id}, "
            f"patient {patient.id} at {appointment_datetime}"
        )
        return appointment

    def is_slot_available(
        self,
        doctor_id: int,
        start: datetime,
        duration_minutes: int,
        exclude_appointment_id: Optional[int] = None
    ) -> bool:
        self._get_doctor(doctor_id)
        return is_slot_available(
            self.appointments, doctor_id, start, duration_minutes, exclude_appointment_id
        )

    # Lifecycle

    def update_status(self, appointment_id: int, status: AppointmentStatus) -> Appointment:
        # No transition table: any status may follow any other
        status = _coerce(AppointmentStatus, status, "appointment status")
        appointment = self.get_appointment(appointment_id)
        previous = appointment.status
        appointment.status = status
        self._touch_and_commit(appointment)
        logger.info(f"Appointment {appointment.id} status {previous} -> {appointment.status}")
        return appointment

    def cancel(self, appointment_id: int, reason: Optional[str] = None) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        appointment.status = AppointmentStatus.CANCELLED
        if reason is not None and reason.strip():
            line = f"{CANCELLATION_PREFIX}{reason}"
            appointment.notes = f"{appointment.notes}\n{line}" if appointment.notes else line
        self._touch_and_commit(appointment)
        logger.info(f"Cancelled appointment {appointment.id}")
        return appointment

    def reschedule(
        self,
        appointment_id: int,
        new_datetime: datetime,
        new_duration_minutes: Optional[int] = None
    ) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        duration = new_duration_minutes if new_duration_minutes is not None else appointment.duration_minutes
        self._validate_slot_request(new_datetime, duration)

        self._lock_doctor(appointment.doctor_id)
        if not is_slot_available(
            self.appointments, appointment.doctor_id, new_datetime, duration,
            exclude_appointment_id=appointment.id
        ):
            logger.warning(
                f"Reschedule conflict for appointment {appointment.id} at {new_datetime}"
            )
            self.db.rollback()
            raise ConflictError()

        appointment.appointment_datetime = new_datetime
        if new_duration_minutes is not None:
            appointment.duration_minutes = new_duration_minutes
        appointment.status = AppointmentStatus.RESCHEDULED
        self._touch_and_commit(appointment)
        logger.info(f"Rescheduled appointment {appointment.id} to {new_datetime}")
        return appointment

    def complete(self, appointment_id: int, doctor_notes: Optional[str] = None) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        appointment.status = AppointmentStatus.COMPLETED
        if doctor_notes is not None and doctor_notes.strip():
            appointment.doctor_notes = doctor_notes
        self._touch_and_commit(appointment)
        logger.info(f"Completed appointment {appointment.id}")
        return appointment

    def update_notes(
        self,
        appointment_id: int,
        notes: Optional[str] = None,
        doctor_notes: Optional[str] = None
    ) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        if notes is not None:
            appointment.notes = notes
        if doctor_notes is not None:
            appointment.doctor_notes = doctor_notes
        return self._touch_and_commit(appointment)

    def update_payment(
        self,
        appointment_id: int,
        fee: Optional[Decimal] = None,
        is_paid: Optional[bool] = None
    ) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        if fee is not None:
            if fee < 0:
                raise ValidationError("Fee cannot be negative")
            appointment.fee = fee
        if is_paid is not None:
            appointment.is_paid = is_paid
        return self._touch_and_commit(appointment)

    # Queries

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.appointments.get_by_id(appointment_id)
        if appointment is None:
            raise NotFoundError(f"Appointment not found with id: {appointment_id}")
        return appointment

    def list_appointments(self) -> List[Appointment]:
        return self.appointments.list_all()

    def list_for_doctor(self, doctor_id: int) -> List[Appointment]:
        self._get_doctor(doctor_id)
        return self.appointments.list_by_doctor(doctor_id)

    def list_for_patient(self, patient_id: int) -> List[Appointment]:
        self._get_patient(patient_id)
        return self.appointments.list_by_patient(patient_id)

    def list_by_status(self, status: AppointmentStatus) -> List[Appointment]:
        return self.appointments.list_by_status(
            _coerce(AppointmentStatus, status, "appointment status")
        )

    def list_by_date_range(self, start: datetime, end: datetime) -> List[Appointment]:
        if end < start:
            raise ValidationError("End of range must not precede its start")
        return self.appointments.list_by_date_range(start, end)

    def list_for_doctor_on(self, doctor_id: int, day: date) -> List[Appointment]:
        self._get_doctor(doctor_id)
        return self.appointments.list_by_doctor_and_date(doctor_id, day)

    def upcoming_for_doctor(self, doctor_id: int) -> List[Appointment]:
        self._get_doctor(doctor_id)
        now = self.clock()
        return self.appointments.list_upcoming_for_doctor(
            doctor_id, now, now + timedelta(days=settings.DOCTOR_UPCOMING_DAYS)
        )

    def upcoming_for_patient(self, patient_id: int) -> List[Appointment]:
        self._get_patient(patient_id)
        now = self.clock()
        return self.appointments.list_upcoming_for_patient(
            patient_id, now, now + timedelta(days=settings.PATIENT_UPCOMING_DAYS)
        )

    def requiring_follow_up(self) -> List[Appointment]:
        now = self.clock()
        return self.appointments.list_requiring_follow_up(
            now - timedelta(days=settings.FOLLOW_UP_WINDOW_DAYS), now
        )

    # Helpers

    def _validate_slot_request(self, start: datetime, duration_minutes: int):
        if duration_minutes is None or not (
            MIN_DURATION_MINUTES <= duration_minutes <= MAX_DURATION_MINUTES
        ):
            raise ValidationError(
                f"Appointment duration must be between {MIN_DURATION_MINUTES} "
                f"and {MAX_DURATION_MINUTES} minutes"
            )
        if start <= self.clock():
            raise ValidationError("Appointment must be scheduled for a future date and time")

    def _get_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.db.get(Doctor, doctor_id)
        if not doctor:
            raise NotFoundError(f"Doctor not found with id: {doctor_id}")
        return doctor

    def _get_patient(self, patient_id: int) -> Patient:
        patient = self.db.get(Patient, patient_id)
        if not patient:
            raise NotFoundError(f"Patient not found with id: {patient_id}")
        return patient

    def _doctor_lock_query(self, doctor_id: int) -> Select:
        return select(Doctor).where(Doctor.id == doctor_id).with_for_update()

    def _lock_doctor(self, doctor_id: int) -> Doctor:
        """Row-lock the doctor until commit or rollback."""
        doctor = self.db.scalars(self._doctor_lock_query(doctor_id)).first()
        if not doctor:
            raise NotFoundError(f"Doctor not found with id: {doctor_id}")
        return doctor

    def _touch_and_commit(self, appointment: Appointment) -> Appointment:
        appointment.updated_at = self.clock()
        return self._commit(appointment)

    def _commit(self, appointment: Appointment) -> Appointment:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to persist appointment: {str(e)}")
            raise StoreError() from e
        self.db.refresh(appointment)
        return appointment
