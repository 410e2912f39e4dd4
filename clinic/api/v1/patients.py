from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...api.deps import get_current_user, get_doctor_user, ensure_patient_access
from ...core.database import get_db
from ...core.exceptions import NotFoundError
from ...models.patient import Patient
from ...models.user import User
from ...schemas.directory import PatientResponse

router = APIRouter(prefix="/patients", tags=["Patients"])

@router.get("", response_model=List[PatientResponse])
async def list_patients(
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    _: User = Depends(get_doctor_user)
):
    """List patients (doctors and admins)."""
    return db.query(Patient).order_by(Patient.id).offset(skip).limit(limit).all()

@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(
    patient_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ensure_patient_access(current_user, patient_id)
    patient = db.get(Patient, patient_id)
    if not patient:
        raise NotFoundError(f"Patient not found with id: {patient_id}")
    return patient
