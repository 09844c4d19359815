import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

# --- Required clients and models ---
from ..db.db_client import AsyncPostgresClient
from ..models.db_models import User, Role
from ..modules.rounding import round_half_up
from .errors import InvalidRequestError, AuthorizationError

logger = logging.getLogger(__name__)

MAX_OVERVIEW_DAYS = 365


class TeacherService:
    """
    Service layer for the teacher dashboard.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def get_students_overview(self, teacher: User, days: int = 90) -> List[Dict[str, Any]]:
        """
        Son `days` gün içinde oturum açmış öğrencileri son aktivite, ortalama ilerleme yüzdesi
        ve tamamlanan/toplam modül sayısıyla döndürür.
        """
        if teacher.role != Role.TEACHER:
            raise AuthorizationError("This operation is only valid for teachers.")
        if not 1 <= days <= MAX_OVERVIEW_DAYS:
            raise InvalidRequestError(f"days must be between 1 and {MAX_OVERVIEW_DAYS}.")

        since = datetime.now(timezone.utc) - timedelta(days=days)
        rows = await self.db_client.get_active_students_overview(since)
        return [
            {
                "user_id": row["user_id"],
                "name": row["name"],
                "email": row["email"],
                "last_active": row["last_active"],
                "progress_percent": round_half_up(float(row["avg_percent"] or 0)),
                "completed_modules": row["completed_modules"],
                "total_modules": row["total_modules"],
            }
            for row in rows
        ]
