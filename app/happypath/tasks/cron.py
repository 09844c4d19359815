import logging
from datetime import datetime, timedelta, timezone
from typing import List
from uuid import UUID

from ..db.db_client import AsyncPostgresClient
from ..config.config import settings

logger = logging.getLogger(__name__)


async def close_stale_sessions(db_client: AsyncPostgresClient, max_age_hours: int = settings.STALE_SESSION_HOURS) -> List[UUID]:
    """
    Periyodik olarak çalışır ve terk edilmiş açık öğrenme oturumlarını kapatır.

    max_age_hours'tan önce başlamış ve o zamandan beri olay almamış oturumlar son olaylarının
    zamanıyla (hiç olay yoksa başlangıç zamanıyla) kapatılır. Olaylara dokunulmaz.
    """
    logger.info("Running close_stale_sessions...")
    cutoff = datetime.now(timezone.utc) - timedelta(hours=max_age_hours)
    try:
        closed = await db_client.close_stale_sessions(cutoff)
    except Exception as e:
        # Zamanlayıcı bir sonraki turda yeniden deneyecek
        logger.error(f"Failed to close stale sessions: {e}", exc_info=True)
        return []
    if closed:
        logger.info(f"Closed {len(closed)} stale learning session(s).")
    return closed
