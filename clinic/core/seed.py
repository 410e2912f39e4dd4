from datetime import datetime, time, timedelta
from decimal import Decimal
import logging

from sqlalchemy.orm import Session

from .security import UserRole, get_password_hash
from ..models.appointment import AppointmentType
from ..models.doctor import Doctor
from ..models.patient import Patient
from ..models.user import User
from ..services.appointment_service import AppointmentService

logger = logging.getLogger(__name__)

SAMPLE_PASSWORD = "Password123"

SAMPLE_DOCTORS = [
    {
        "email": "john.smith@smartcare.org",
        "first_name": "John",
        "last_name": "Smith",
        "specialization": "Cardiology",
        "license_number": "MD-100001",
        "years_of_experience": 15,
        "consultation_fee": Decimal("150.00"),
    },
    {
        "email": "sarah.johnson@smartcare.org",
        "first_name": "Sarah",
        "last_name": "Johnson",
        "specialization": "Pediatrics",
        "license_number": "MD-100002",
        "years_of_experience": 9,
        "consultation_fee": Decimal("120.00"),
    },
]

SAMPLE_PATIENTS = [
    {"email": "alice.wilson@smartcare.org", "first_name": "Alice", "last_name": "Wilson"},
    {"email": "david.rodriguez@smartcare.org", "first_name": "David", "last_name": "Rodriguez"},
]


def _user(email: str, role: UserRole) -> User:
    return User(
        email=email,
        password_hash=get_password_hash(SAMPLE_PASSWORD),
        role=role,
        is_active=True,
        is_verified=True
    )


def seed_sample_data(db: Session, clock=datetime.utcnow) -> bool:
    """Populate an empty database with demo accounts and appointments.

    Returns False without touching anything when users already exist.
    """
    if db.query(User).first():
        logger.info("Sample data skipped: users already present")
        return False

    db.add(_user("admin@smartcare.org", UserRole.ADMIN))

    doctors = []
    for data in SAMPLE_DOCTORS:
        data = dict(data)
        user = _user(data.pop("email"), UserRole.DOCTOR)
        db.add(user)
        db.flush()
        doctor = Doctor(user_id=user.id, **data)
        db.add(doctor)
        doctors.append(doctor)

    patients = []
    for data in SAMPLE_PATIENTS:
        data = dict(data)
        user = _user(data.pop("email"), UserRole.PATIENT)
        db.add(user)
        db.flush()
        patient = Patient(user_id=user.id, **data)
        db.add(patient)
        patients.append(patient)

    db.commit()

    service = AppointmentService(db, clock=clock)
    tomorrow = clock().date() + timedelta(days=1)
    morning = datetime.combine(tomorrow, time(9, 0))
    service.create_appointment(
        doctors[0].id, patients[0].id, morning, 30,
        AppointmentType.CONSULTATION, "Chest pain during exercise"
    )
    service.create_appointment(
        doctors[0].id, patients[1].id, morning + timedelta(minutes=30), 45,
        AppointmentType.FOLLOW_UP, "Blood pressure review"
    )
    service.create_appointment(
        doctors[1].id, patients[1].id, morning + timedelta(days=2), 30,
        AppointmentType.CHECK_UP, "Annual check-up"
    )

    logger.info("Sample data inserted")
    return True
