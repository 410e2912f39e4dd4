from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from typing_extensions import Annotated

from ..models.appointment import (
    AppointmentStatus, AppointmentType, MIN_DURATION_MINUTES, MAX_DURATION_MINUTES
)


def to_naive_utc(value: datetime) -> datetime:
    # Stored datetimes are naive UTC
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


NaiveUTCDatetime = Annotated[datetime, AfterValidator(to_naive_utc)]


class AppointmentCreate(BaseModel):
    doctor_id: int
    patient_id: int
    appointment_datetime: NaiveUTCDatetime
    duration_minutes: int = Field(30, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)
    appointment_type: AppointmentType = AppointmentType.CONSULTATION
    reason_for_visit: Optional[str] = Field(None, max_length=500)


class AvailabilityRequest(BaseModel):
    doctor_id: int
    appointment_datetime: NaiveUTCDatetime
    duration_minutes: int = Field(..., ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)


class AvailabilityResponse(BaseModel):
    available: bool
    doctor_id: int
    appointment_datetime: datetime
    duration_minutes: int


class StatusUpdate(BaseModel):
    status: AppointmentStatus


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class RescheduleRequest(BaseModel):
    new_datetime: NaiveUTCDatetime
    new_duration_minutes: Optional[int] = Field(None, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)


class CompleteRequest(BaseModel):
    doctor_notes: Optional[str] = Field(None, max_length=1000)


class NotesUpdate(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)
    doctor_notes: Optional[str] = Field(None, max_length=1000)


class PaymentUpdate(BaseModel):
    fee: Optional[Decimal] = Field(None, ge=0, max_digits=8, decimal_places=2)
    is_paid: Optional[bool] = None


class PatientAppointmentResponse(BaseModel):
    """Appointment as shown to the patient; doctor-only notes are withheld."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: int
    patient_id: int
    appointment_datetime: datetime
    duration_minutes: int
    status: AppointmentStatus
    appointment_type: AppointmentType
    reason_for_visit: Optional[str] = None
    notes: Optional[str] = None
    fee: Optional[Decimal] = None
    is_paid: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AppointmentResponse(PatientAppointmentResponse):
    doctor_notes: Optional[str] = None


class AppointmentStats(BaseModel):
    scheduled_appointments: int
    completed_appointments: int
    cancelled_appointments: int
    confirmed_appointments: int
    today_appointments: int


class UserStats(BaseModel):
    total_users: int
    total_patients: int
    total_doctors: int
    total_admins: int
    active_users: int


class DashboardStats(BaseModel):
    appointments: AppointmentStats
    users: Optional[UserStats] = None
