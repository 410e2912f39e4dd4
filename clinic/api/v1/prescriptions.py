from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ...api.deps import (
    get_current_user, get_admin_user, get_doctor_user, get_prescriber_user,
    get_prescription_service, ensure_doctor_access, ensure_patient_access
)
from ...core.security import AuthorizationError, UserRole
from ...models.prescription import Prescription
from ...models.user import User
from ...schemas.prescription import (
    PrescriptionCreate, PrescriptionUpdate, PrescriptionComplete,
    PrescriptionResponse, PrescriptionStats
)
from ...services.prescription_service import PrescriptionService

router = APIRouter(prefix="/prescriptions", tags=["Prescriptions"])


def _ensure_prescription_access(user: User, prescription: Prescription) -> None:
    if user.role == UserRole.PATIENT:
        ensure_patient_access(user, prescription.patient_id)
    elif user.role == UserRole.DOCTOR:
        ensure_doctor_access(user, prescription.doctor_id)


def _medications(items) -> Optional[List[dict]]:
    if items is None:
        return None
    return [item.model_dump() for item in items]


@router.post("", response_model=PrescriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_prescription(
    data: PrescriptionCreate,
    current_user: User = Depends(get_prescriber_user),
    service: PrescriptionService = Depends(get_prescription_service)
):
    """Write a prescription as the signed-in doctor."""
    if not current_user.doctor:
        raise AuthorizationError("A doctor profile is required to prescribe")
    return service.create_prescription(
        doctor_id=current_user.doctor.id,
        patient_id=data.patient_id,
        medications=_medications(data.medications),
        prescription_date=data.prescription_date,
        appointment_id=data.appointment_id,
        instructions=data.instructions,
        notes=data.notes
    )


@router.get("", response_model=List[PrescriptionResponse])
async def list_prescriptions(
    _: User = Depends(get_admin_user),
    service: PrescriptionService = Depends(get_prescription_service)
):
    return service.list_prescriptions()


@router.get("/stats", response_model=PrescriptionStats)
async def prescription_stats(
    _: User = Depends(get_doctor_user),
    service: PrescriptionService = Depends(get_prescription_service)
):
    return service.stats()


@router.get("/search", response_model=List[PrescriptionResponse])
async def search_prescriptions(
    medication: str = Query(..., min_length=1),
    current_user: User = Depends(get_doctor_user),
    service: PrescriptionService = Depends(get_prescription_service)
):
    """Search by medication name; doctors only see their own prescriptions."""
    found = service.search_by_medication(medication)
    if current_user.role == UserRole.DOCTOR:
        found = [p for p in found if p.doctor_id == current_user.doctor.id]
    return found


@router.get("/patient/{patient_id}", response_model=List[PrescriptionResponse])
async def list_for_patient(
    patient_id: int,
    current_user: User = Depends(get_current_user),
    service: PrescriptionService = Depends(get_prescription_service)
):
    ensure_patient_access(current_user, patient_id)
    return service.list_for_patient(patient_id)


@router.get("/patient/{patient_id}/active", response_model=List[PrescriptionResponse])
async def list_active_for_patient(
    patient_id: int,
    current_user: User = Depends(get_current_user),
    service: PrescriptionService = Depends(get_prescription_service)
):
    ensure_patient_access(current_user, patient_id)
    return service.list_for_patient(patient_id, active_only=True)


@router.get("/doctor/{doctor_id}", response_model=List[PrescriptionResponse])
async def list_for_doctor(
    doctor_id: int,
    current_user: User = Depends(get_doctor_user),
    service: PrescriptionService = Depends(get_prescription_service)
):
    ensure_doctor_access(current_user, doctor_id)
    return service.list_for_doctor(doctor_id)


@router.get("/{prescription_id}", response_model=PrescriptionResponse)
async def get_prescription(
    prescription_id: int,
    current_user: User = Depends(get_current_user),
    service: PrescriptionService = Depends(get_prescription_service)
):
    prescription = service.get_prescription(prescription_id)
    _ensure_prescription_access(current_user, prescription)
    return prescription


@router.put("/{prescription_id}", response_model=PrescriptionResponse)
async def update_prescription(
    prescription_id: int,
    data: PrescriptionUpdate,
    current_user: User = Depends(get_prescriber_user),
    service: PrescriptionService = Depends(get_prescription_service)
):
    _ensure_prescription_access(current_user, service.get_prescription(prescription_id))
    return service.update_prescription(
        prescription_id,
        medications=_medications(data.medications),
        instructions=data.instructions,
        notes=data.notes
    )


@router.put("/{prescription_id}/complete", response_model=PrescriptionResponse)
async def complete_prescription(
    prescription_id: int,
    data: Optional[PrescriptionComplete] = None,
    current_user: User = Depends(get_prescriber_user),
    service: PrescriptionService = Depends(get_prescription_service)
):
    """Mark a prescription completed or discontinued."""
    _ensure_prescription_access(current_user, service.get_prescription(prescription_id))
    return service.complete_prescription(prescription_id, data.reason if data else None)


@router.delete("/{prescription_id}")
async def delete_prescription(
    prescription_id: int,
    _: User = Depends(get_admin_user),
    service: PrescriptionService = Depends(get_prescription_service)
):
    service.delete_prescription(prescription_id)
    return {"message": "Prescription deleted successfully"}
