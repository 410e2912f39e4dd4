from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Callable, List
from datetime import datetime

from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.security import (
    security, verify_token, AuthenticationError,
    AuthorizationError, UserRole, TokenPayload, ACCESS
)
from ..models.user import User
from ..services.appointment_service import AppointmentService
from ..services.dashboard_service import DashboardService
from ..services.prescription_service import PrescriptionService

async def get_current_user_token(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    token_payload = verify_token(credentials.credentials)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    if token_payload.token_type != ACCESS:
        raise AuthenticationError("Invalid token type")

    return token_payload

async def get_current_user(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user from database."""
    if not token_payload.sub:
        raise AuthenticationError("Invalid token payload")

    user = db.get(User, token_payload.sub)
    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    return user

# Role-based access control dependencies
def require_role(allowed_roles: List[UserRole]):
    """Create a dependency that requires specific user roles."""
    async def role_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if current_user.role not in allowed_roles:
            raise AuthorizationError(
                f"Access denied. Required roles: {[role.value for role in allowed_roles]}"
            )
        return current_user

    return role_checker

get_admin_user = require_role([UserRole.ADMIN])
get_doctor_user = require_role([UserRole.DOCTOR, UserRole.ADMIN])
get_prescriber_user = require_role([UserRole.DOCTOR])

# Ownership checks; admins pass every check
def ensure_patient_access(user: User, patient_id: int) -> None:
    if user.role == UserRole.PATIENT and (not user.patient or user.patient.id != patient_id):
        raise AuthorizationError("Patients may only access their own records")

def ensure_doctor_access(user: User, doctor_id: int) -> None:
    if user.role == UserRole.DOCTOR and (not user.doctor or user.doctor.id != doctor_id):
        raise AuthorizationError("Doctors may only access their own records")
    if user.role == UserRole.PATIENT:
        raise AuthorizationError("Access denied")

# Clock and services
def get_clock() -> Callable[[], datetime]:
    """Source of "now" for scheduling decisions."""
    return datetime.utcnow

def get_appointment_service(
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock)
) -> AppointmentService:
    return AppointmentService(db, clock=clock)

def get_dashboard_service(
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock)
) -> DashboardService:
    return DashboardService(db, clock=clock)

def get_prescription_service(
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock)
) -> PrescriptionService:
    return PrescriptionService(db, clock=clock)

# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Basic per-IP rate limiting for authentication endpoints."""
    key = f"rate_limit:{request.client.host}:{request.url.path}"

    current_requests = redis_client.get(key)
    if current_requests is None:
        redis_client.setex(key, 3600, 1)
    elif int(current_requests) >= settings.RATE_LIMIT_PER_HOUR:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later."
        )
    else:
        redis_client.incr(key)
