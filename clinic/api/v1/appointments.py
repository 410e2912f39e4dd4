from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ...api.deps import (
    get_current_user, get_admin_user, get_doctor_user, get_appointment_service,
    ensure_doctor_access, ensure_patient_access
)
from ...core.security import AuthorizationError, UserRole
from ...models.appointment import Appointment, AppointmentStatus
from ...models.user import User
from ...schemas.appointment import (
    AppointmentCreate, AppointmentResponse, PatientAppointmentResponse,
    AvailabilityRequest, AvailabilityResponse, StatusUpdate, CancelRequest,
    RescheduleRequest, CompleteRequest, NotesUpdate, PaymentUpdate, to_naive_utc
)
from ...services.appointment_service import AppointmentService

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def _present(user: User, appointment: Appointment):
    if user.role == UserRole.PATIENT:
        return PatientAppointmentResponse.model_validate(appointment)
    return AppointmentResponse.model_validate(appointment)


def _present_all(user: User, appointments: List[Appointment]):
    return [_present(user, appointment) for appointment in appointments]


def _ensure_appointment_access(user: User, appointment: Appointment) -> None:
    if user.role == UserRole.PATIENT:
        ensure_patient_access(user, appointment.patient_id)
    elif user.role == UserRole.DOCTOR:
        ensure_doctor_access(user, appointment.doctor_id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_appointment(
    data: AppointmentCreate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Book an appointment. Patients book for themselves, doctors on their own schedule."""
    if current_user.role == UserRole.PATIENT:
        ensure_patient_access(current_user, data.patient_id)
    elif current_user.role == UserRole.DOCTOR:
        ensure_doctor_access(current_user, data.doctor_id)

    appointment = service.create_appointment(
        doctor_id=data.doctor_id,
        patient_id=data.patient_id,
        appointment_datetime=data.appointment_datetime,
        duration_minutes=data.duration_minutes,
        appointment_type=data.appointment_type,
        reason_for_visit=data.reason_for_visit
    )
    return _present(current_user, appointment)


@router.get("", response_model=List[AppointmentResponse])
async def list_appointments(
    _: User = Depends(get_admin_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """List every appointment (admin only)."""
    return service.list_appointments()


@router.post("/check-availability", response_model=AvailabilityResponse)
async def check_availability(
    data: AvailabilityRequest,
    _: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Check whether a doctor's slot is free."""
    available = service.is_slot_available(
        data.doctor_id, data.appointment_datetime, data.duration_minutes
    )
    return AvailabilityResponse(
        available=available,
        doctor_id=data.doctor_id,
        appointment_datetime=data.appointment_datetime,
        duration_minutes=data.duration_minutes
    )


@router.get("/follow-up", response_model=List[AppointmentResponse])
async def appointments_requiring_follow_up(
    current_user: User = Depends(get_doctor_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Completed appointments from the last week."""
    appointments = service.requiring_follow_up()
    if current_user.role == UserRole.DOCTOR:
        appointments = [a for a in appointments if a.doctor_id == current_user.doctor.id]
    return appointments


@router.get("/status/{appointment_status}", response_model=List[AppointmentResponse])
async def list_by_status(
    appointment_status: AppointmentStatus,
    _: User = Depends(get_admin_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    return service.list_by_status(appointment_status)


@router.get("/range", response_model=List[AppointmentResponse])
async def list_by_date_range(
    start: datetime = Query(...),
    end: datetime = Query(...),
    _: User = Depends(get_admin_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Appointments starting within ``[start, end]``; offsets are converted to UTC."""
    return service.list_by_date_range(to_naive_utc(start), to_naive_utc(end))


@router.get("/doctor/{doctor_id}", response_model=List[AppointmentResponse])
async def list_for_doctor(
    doctor_id: int,
    current_user: User = Depends(get_doctor_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    ensure_doctor_access(current_user, doctor_id)
    return service.list_for_doctor(doctor_id)


@router.get("/doctor/{doctor_id}/date/{day}", response_model=List[AppointmentResponse])
async def list_for_doctor_on_date(
    doctor_id: int,
    day: date,
    current_user: User = Depends(get_doctor_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    ensure_doctor_access(current_user, doctor_id)
    return service.list_for_doctor_on(doctor_id, day)


@router.get("/doctor/{doctor_id}/upcoming", response_model=List[AppointmentResponse])
async def upcoming_for_doctor(
    doctor_id: int,
    current_user: User = Depends(get_doctor_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Active appointments in the coming week, soonest first."""
    ensure_doctor_access(current_user, doctor_id)
    return service.upcoming_for_doctor(doctor_id)


@router.get("/patient/{patient_id}")
async def list_for_patient(
    patient_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    ensure_patient_access(current_user, patient_id)
    return _present_all(current_user, service.list_for_patient(patient_id))


@router.get("/patient/{patient_id}/upcoming")
async def upcoming_for_patient(
    patient_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Active appointments in the coming month, soonest first."""
    ensure_patient_access(current_user, patient_id)
    return _present_all(current_user, service.upcoming_for_patient(patient_id))


@router.get("/{appointment_id}")
async def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = service.get_appointment(appointment_id)
    _ensure_appointment_access(current_user, appointment)
    return _present(current_user, appointment)


@router.put("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_status(
    appointment_id: int,
    data: StatusUpdate,
    current_user: User = Depends(get_doctor_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    _ensure_appointment_access(current_user, service.get_appointment(appointment_id))
    return service.update_status(appointment_id, data.status)


@router.put("/{appointment_id}/cancel")
async def cancel_appointment(
    appointment_id: int,
    data: Optional[CancelRequest] = None,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    _ensure_appointment_access(current_user, service.get_appointment(appointment_id))
    return _present(current_user, service.cancel(appointment_id, data.reason if data else None))


@router.put("/{appointment_id}/reschedule")
async def reschedule_appointment(
    appointment_id: int,
    data: RescheduleRequest,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    _ensure_appointment_access(current_user, service.get_appointment(appointment_id))
    appointment = service.reschedule(
        appointment_id, data.new_datetime, data.new_duration_minutes
    )
    return _present(current_user, appointment)


@router.put("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
    appointment_id: int,
    data: Optional[CompleteRequest] = None,
    current_user: User = Depends(get_doctor_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    _ensure_appointment_access(current_user, service.get_appointment(appointment_id))
    return service.complete(appointment_id, data.doctor_notes if data else None)


@router.put("/{appointment_id}/notes")
async def update_notes(
    appointment_id: int,
    data: NotesUpdate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    """Patients may edit their notes; doctor notes are for doctors and admins."""
    _ensure_appointment_access(current_user, service.get_appointment(appointment_id))
    if current_user.role == UserRole.PATIENT and data.doctor_notes is not None:
        raise AuthorizationError("Patients cannot edit doctor notes")

    appointment = service.update_notes(appointment_id, data.notes, data.doctor_notes)
    return _present(current_user, appointment)


@router.put("/{appointment_id}/payment", response_model=AppointmentResponse)
async def update_payment(
    appointment_id: int,
    data: PaymentUpdate,
    current_user: User = Depends(get_doctor_user),
    service: AppointmentService = Depends(get_appointment_service)
):
    _ensure_appointment_access(current_user, service.get_appointment(appointment_id))
    return service.update_payment(appointment_id, data.fee, data.is_paid)
