from sqlalchemy import Column, Integer, String, ForeignKey, Date, DateTime, Boolean, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

MIN_MEDICATION_DAYS = 1
MAX_MEDICATION_DAYS = 365

class Prescription(Base):
    __tablename__ = "prescriptions"

    id = Column(Integer, primary_key=True, index=True)

    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=True)

    prescription_date = Column(Date, nullable=False, index=True)
    instructions = Column(String(1000), nullable=True)
    notes = Column(Text, nullable=True)

    # Cleared when the course is completed or discontinued
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient = relationship("Patient")
    doctor = relationship("Doctor")
    medications = relationship(
        "Medication",
        back_populates="prescription",
        cascade="all, delete-orphan",
        order_by="Medication.id"
    )

    def __repr__(self):
        return (
            f"<Prescription(id={self.id}, patient_id={self.patient_id}, "
            f"doctor_id={self.doctor_id}, medications={len(self.medications)})>"
        )

class Medication(Base):
    __tablename__ = "prescription_medications"

    id = Column(Integer, primary_key=True, index=True)
    prescription_id = Column(
        Integer, ForeignKey("prescriptions.id", ondelete="CASCADE"), nullable=False, index=True
    )

    name = Column(String(200), nullable=False, index=True)
    dosage = Column(String(100), nullable=False)
    frequency = Column(String(100), nullable=False)
    duration_days = Column(Integer, nullable=False)
    instructions = Column(String(500), nullable=True)
    unit = Column(String(100), nullable=True)
    quantity = Column(Integer, nullable=True)

    prescription = relationship("Prescription", back_populates="medications")

    def __repr__(self):
        return f"<Medication(name='{self.name}', dosage='{self.dosage}')>"
