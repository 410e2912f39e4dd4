from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...api.deps import get_current_user
from ...core.database import get_db
from ...core.exceptions import NotFoundError
from ...models.doctor import Doctor
from ...models.user import User
from ...schemas.directory import DoctorResponse

router = APIRouter(prefix="/doctors", tags=["Doctors"])

@router.get("", response_model=List[DoctorResponse])
async def list_doctors(
    specialization: Optional[str] = None,
    available_only: bool = False,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user)
):
    """List doctors for booking, optionally by specialization."""
    query = db.query(Doctor)
    if specialization:
        query = query.filter(Doctor.specialization.ilike(specialization))
    if available_only:
        query = query.filter(Doctor.is_available == True)  # noqa: E712
    return query.order_by(Doctor.last_name, Doctor.first_name).all()

@router.get("/{doctor_id}", response_model=DoctorResponse)
async def get_doctor(
    doctor_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user)
):
    doctor = db.get(Doctor, doctor_id)
    if not doctor:
        raise NotFoundError(f"Doctor not found with id: {doctor_id}")
    return doctor
