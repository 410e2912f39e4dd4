from fastapi import APIRouter, Depends

from ...api.deps import get_doctor_user, get_dashboard_service
from ...core.security import UserRole
from ...models.user import User
from ...schemas.appointment import DashboardStats
from ...services.dashboard_service import DashboardService

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])

@router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    current_user: User = Depends(get_doctor_user),
    service: DashboardService = Depends(get_dashboard_service)
):
    """Appointment counters; admins also get user counters."""
    stats = {"appointments": service.appointment_stats()}
    if current_user.role == UserRole.ADMIN:
        stats["users"] = service.user_stats()
    return stats
