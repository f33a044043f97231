"""Background sweep that expires stale checkout sessions."""

import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError

from db.database import SessionLocal
from services.checkout import expire_stale_sessions

logger = logging.getLogger(__name__)


async def sweep_once() -> int:
    async with SessionLocal() as db:
        return await expire_stale_sessions(db)


async def run_expiry_sweeper(interval_sec: int) -> None:
    """Expire stale sessions every `interval_sec` seconds until cancelled."""
    logger.info("Checkout expiry sweep every %ds", interval_sec)
    while True:
        try:
            await sweep_once()
        except SQLAlchemyError:
            logger.exception("Checkout expiry sweep failed")
        await asyncio.sleep(interval_sec)
