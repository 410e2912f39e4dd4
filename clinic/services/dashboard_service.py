from datetime import datetime
from typing import Callable, Dict

from sqlalchemy.orm import Session

from ..core.security import UserRole
from ..models.appointment import AppointmentStatus
from ..models.user import User
from ..repositories.appointment_repository import AppointmentRepository


class DashboardService:
    """Read-only counters for dashboards, recomputed on every call."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.clock = clock
        self.appointments = AppointmentRepository(db)

    def appointment_stats(self) -> Dict[str, int]:
        return {
            "scheduled_appointments": self.appointments.count_by_status(AppointmentStatus.SCHEDULED),
            "completed_appointments": self.appointments.count_completed(),
            "cancelled_appointments": self.appointments.count_by_status(AppointmentStatus.CANCELLED),
            "confirmed_appointments": self.appointments.count_by_status(AppointmentStatus.CONFIRMED),
            "today_appointments": self.appointments.count_for_day(self.clock().date()),
        }

    def user_stats(self) -> Dict[str, int]:
        def count_role(role: UserRole) -> int:
            return self.db.query(User).filter(User.role == role).count()

        return {
            "total_users": self.db.query(User).count(),
            "total_patients": count_role(UserRole.PATIENT),
            "total_doctors": count_role(UserRole.DOCTOR),
            "total_admins": count_role(UserRole.ADMIN),
            "active_users": self.db.query(User).filter(User.is_active == True).count(),  # noqa: E712
        }
