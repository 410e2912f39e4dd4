from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.prescription import MIN_MEDICATION_DAYS, MAX_MEDICATION_DAYS


class MedicationItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str = Field(..., min_length=1, max_length=200)
    dosage: str = Field(..., min_length=1, max_length=100)
    frequency: str = Field(..., min_length=1, max_length=100)
    duration_days: int = Field(..., ge=MIN_MEDICATION_DAYS, le=MAX_MEDICATION_DAYS)
    instructions: Optional[str] = Field(None, max_length=500)
    unit: Optional[str] = Field(None, max_length=100)
    quantity: Optional[int] = Field(None, ge=0)


class PrescriptionCreate(BaseModel):
    patient_id: int
    appointment_id: Optional[int] = None
    prescription_date: Optional[date] = None
    medications: List[MedicationItem] = Field(..., min_length=1)
    instructions: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=500)


class PrescriptionUpdate(BaseModel):
    """Fields left out stay as they are; a medication list replaces the old one."""

    medications: Optional[List[MedicationItem]] = Field(None, min_length=1)
    instructions: Optional[str] = Field(None, max_length=1000)
    notes: Optional[str] = Field(None, max_length=500)


class PrescriptionComplete(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class PrescriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    doctor_id: int
    appointment_id: Optional[int] = None
    prescription_date: date
    medications: List[MedicationItem]
    instructions: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PrescriptionStats(BaseModel):
    total_prescriptions: int
    active_prescriptions: int
    completed_prescriptions: int
    today_prescriptions: int
