from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundError, StoreError, ValidationError
from ..models.appointment import Appointment
from ..models.doctor import Doctor
from ..models.patient import Patient
from ..models.prescription import (
    Prescription, Medication, MIN_MEDICATION_DAYS, MAX_MEDICATION_DAYS
)

logger = logging.getLogger(__name__)

COMPLETION_PREFIX = "Completion reason: "
MEDICATION_FIELDS = ("name", "dosage", "frequency", "duration_days", "instructions", "unit", "quantity")


class PrescriptionService:
    """Prescriptions written by doctors, each with one or more medications.

    Completing a prescription clears ``is_active``; only admins delete.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.clock = clock

    def create_prescription(
        self,
        doctor_id: int,
        patient_id: int,
        medications: Iterable[dict],
        prescription_date: Optional[date] = None,
        appointment_id: Optional[int] = None,
        instructions: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Prescription:
        if not self.db.get(Doctor, doctor_id):
            raise NotFoundError(f"Doctor not found with id: {doctor_id}")
        if not self.db.get(Patient, patient_id):
            raise NotFoundError(f"Patient not found with id: {patient_id}")
        if appointment_id is not None:
            self._check_appointment(appointment_id, doctor_id, patient_id)

        now = self.clock()
        prescription = Prescription(
            doctor_id=doctor_id,
            patient_id=patient_id,
            appointment_id=appointment_id,
            prescription_date=prescription_date or now.date(),
            instructions=instructions,
            notes=notes,
            is_active=True,
            medications=self._build_medications(medications),
            created_at=now,
            updated_at=now
        )
        self.db.add(prescription)
        self._commit(prescription)

        logger.info(
            f"Created prescription {prescription.id} by doctor {doctor_id} for patient {patient_id}"
        )
        return prescription

    def update_prescription(
        self,
        prescription_id: int,
        medications: Optional[Iterable[dict]] = None,
        instructions: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Prescription:
        prescription = self.get_prescription(prescription_id)
        if medications is not None:
            prescription.medications = self._build_medications(medications)
        if instructions is not None:
            prescription.instructions = instructions
        if notes is not None:
            prescription.notes = notes
        prescription.updated_at = self.clock()
        return self._commit(prescription)

    def complete_prescription(self, prescription_id: int, reason: Optional[str] = None) -> Prescription:
        prescription = self.get_prescription(prescription_id)
        prescription.is_active = False
        if reason is not None and reason.strip():
            line = f"{COMPLETION_PREFIX}{reason}"
            prescription.notes = f"{prescription.notes}\n{line}" if prescription.notes else line
        prescription.updated_at = self.clock()
        self._commit(prescription)
        logger.info(f"Completed prescription {prescription.id}")
        return prescription

    def delete_prescription(self, prescription_id: int) -> None:
        prescription = self.get_prescription(prescription_id)
        self.db.delete(prescription)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete prescription {prescription_id}: {str(e)}")
            raise StoreError() from e
        logger.info(f"Deleted prescription {prescription_id}")

    # Queries

    def get_prescription(self, prescription_id: int) -> Prescription:
        prescription = self.db.get(Prescription, prescription_id)
        if prescription is None:
            raise NotFoundError(f"Prescription not found with id: {prescription_id}")
        return prescription

    def list_prescriptions(self) -> List[Prescription]:
        return self._newest_first(self.db.query(Prescription))

    def list_for_patient(self, patient_id: int, active_only: bool = False) -> List[Prescription]:
        if not self.db.get(Patient, patient_id):
            raise NotFoundError(f"Patient not found with id: {patient_id}")
        query = self.db.query(Prescription).filter(Prescription.patient_id == patient_id)
        if active_only:
            query = query.filter(Prescription.is_active == True)  # noqa: E712
        return self._newest_first(query)

    def list_for_doctor(self, doctor_id: int) -> List[Prescription]:
        if not self.db.get(Doctor, doctor_id):
            raise NotFoundError(f"Doctor not found with id: {doctor_id}")
        return self._newest_first(
            self.db.query(Prescription).filter(Prescription.doctor_id == doctor_id)
        )

    def search_by_medication(self, term: str) -> List[Prescription]:
        """Prescriptions with a medication whose name contains ``term`` (case-insensitive)."""
        if not term or not term.strip():
            raise ValidationError("Search term must not be blank")
        query = self.db.query(Prescription).join(Prescription.medications).filter(
            Medication.name.ilike(f"%{term.strip()}%")
        ).distinct()
        return self._newest_first(query)

    def stats(self) -> Dict[str, int]:
        total = self.db.query(Prescription).count()
        active = self.db.query(Prescription).filter(Prescription.is_active == True).count()  # noqa: E712
        return {
            "total_prescriptions": total,
            "active_prescriptions": active,
            "completed_prescriptions": total - active,
            "today_prescriptions": self.db.query(Prescription).filter(
                Prescription.prescription_date == self.clock().date()
            ).count(),
        }

    # Helpers

    @staticmethod
    def _newest_first(query) -> List[Prescription]:
        return query.order_by(Prescription.prescription_date.desc(), Prescription.id.desc()).all()

    def _build_medications(self, items: Iterable[dict]) -> List[Medication]:
        medications = []
        for item in items:
            data = {field: item.get(field) for field in MEDICATION_FIELDS}
            if not (data["name"] and data["dosage"] and data["frequency"]):
                raise ValidationError("Medication name, dosage and frequency are required")
            days = data["duration_days"]
            if days is None or not (MIN_MEDICATION_DAYS <= days <= MAX_MEDICATION_DAYS):
                raise ValidationError(
                    f"Medication duration must be between {MIN_MEDICATION_DAYS} "
                    f"and {MAX_MEDICATION_DAYS} days"
                )
            medications.append(Medication(**data))

        if not medications:
            raise ValidationError("At least one medication is required")
        return medications

    def _check_appointment(self, appointment_id: int, doctor_id: int, patient_id: int):
        appointment = self.db.get(Appointment, appointment_id)
        if appointment is None:
            raise NotFoundError(f"Appointment not found with id: {appointment_id}")
        if appointment.doctor_id != doctor_id or appointment.patient_id != patient_id:
            raise ValidationError("Appointment does not belong to this doctor and patient")

    def _commit(self, prescription: Prescription) -> Prescription:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to persist prescription: {str(e)}")
            raise StoreError() from e
        self.db.refresh(prescription)
        return prescription
