"""
İlk admin hesabını oluşturur. Düşük dikkat uyarıları gibi sistem bildirimleri bir admin göndereni gerektirir.

Kullanım: python -m app.happypath.scripts.seed_admin
"""
import asyncio
import logging
import sys

import asyncpg

from ..config.config import settings
from ..db.db_client import AsyncPostgresClient, apply_schema, init_connection
from ..logging.logging_config import setup_logging
from ..services.user_service import UserService

logger = logging.getLogger(__name__)


async def seed_admin() -> int:
    if not settings.SEED_ADMIN_PASSWORD:
        logger.error("SEED_ADMIN_PASSWORD is not set.")
        return 1

    pool = await asyncpg.create_pool(dsn=settings.DATABASE_URL, min_size=1, max_size=2, init=init_connection)
    try:
        await apply_schema(pool)
        # Seed işlemi oturum açmadığı için Redis gerekmez
        service = UserService(redis_client=None, db_client=AsyncPostgresClient(pool=pool))
        admin = await service.seed_admin(settings.SEED_ADMIN_EMAIL, settings.SEED_ADMIN_PASSWORD, name="System Admin")
        if admin is None:
            logger.info("Admin already exists. No action taken.")
        else:
            logger.info(f"Admin created: {admin.email}")
        return 0
    finally:
        await pool.close()


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(seed_admin()))
