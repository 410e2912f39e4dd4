from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class DoctorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    first_name: str
    last_name: str
    specialization: str
    license_number: str
    years_of_experience: Optional[int] = None
    qualifications: Optional[str] = None
    consultation_fee: Optional[Decimal] = None
    office_address: Optional[str] = None
    is_available: bool = True


class PatientResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    first_name: str
    last_name: str
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    phone_number: Optional[str] = None
    city: Optional[str] = None
    is_active: bool = True
