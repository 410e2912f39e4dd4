import os
from datetime import datetime

import pytest

# Must be set before the application modules are imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite://"

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic.main import app
from clinic.api.deps import get_clock
from clinic.core.database import Base, get_db, get_redis
from clinic.core.security import UserRole, get_password_hash
from clinic.models import Doctor, Patient, User

FIXED_NOW = datetime(2024, 1, 31, 12, 0)
PASSWORD = "TestPassword123"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def fixed_clock():
    return FIXED_NOW


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: fixed_clock
    get_redis().flushall()
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_user(db, email, role, password=PASSWORD):
    user = User(
        email=email,
        password_hash=get_password_hash(password),
        role=role,
        is_active=True,
        is_verified=True,
    )
    db.add(user)
    db.flush()
    return user


def create_doctor(db, email="doctor@smartcare.org", license_number="LIC-1", specialization="Cardiology"):
    user = create_user(db, email, UserRole.DOCTOR)
    doctor = Doctor(
        user_id=user.id,
        first_name="Gregory",
        last_name="House",
        specialization=specialization,
        license_number=license_number,
    )
    db.add(doctor)
    db.commit()
    db.refresh(doctor)
    return doctor


def create_patient(db, email="patient@smartcare.org"):
    user = create_user(db, email, UserRole.PATIENT)
    patient = Patient(user_id=user.id, first_name="Alice", last_name="Wilson")
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return patient


def create_admin(db, email="admin@smartcare.org"):
    user = create_user(db, email, UserRole.ADMIN)
    db.commit()
    return user


def auth_headers(client, email, password=PASSWORD):
    response = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def doctor(db_session):
    return create_doctor(db_session)


@pytest.fixture
def patient(db_session):
    return create_patient(db_session)
