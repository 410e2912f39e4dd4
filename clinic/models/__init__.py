from .user import User, RefreshToken
from .doctor import Doctor
from .patient import Patient
from .appointment import Appointment, AppointmentStatus, AppointmentType
from .prescription import Prescription, Medication

__all__ = [
    "User",
    "RefreshToken",
    "Doctor",
    "Patient",
    "Appointment",
    "AppointmentStatus",
    "AppointmentType",
    "Prescription",
    "Medication",
]
