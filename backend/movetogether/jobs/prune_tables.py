from __future__ import annotations
import asyncio
from datetime import datetime, timedelta
import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from movetogether.config import settings
from movetogether.db import SessionLocal
from movetogether.models.notification import NotificationReceipt, RateLimitWindow
from movetogether.services.clock import as_utc, utcnow

log = structlog.get_logger()

async def prune(
    session: AsyncSession,
    now: datetime | None = None,
    receipt_days: int | None = None,
    rate_limit_hours: int | None = None,
) -> dict:
    """Delete expired notification receipts and closed rate-limit windows. Returns rows removed per table."""
    now = as_utc(now) if now else utcnow()
    receipt_cutoff = now - timedelta(days=receipt_days or settings.receipt_retention_days)
    window_cutoff = now - timedelta(hours=rate_limit_hours or settings.rate_limit_retention_hours)

    receipts = await session.execute(delete(NotificationReceipt).where(NotificationReceipt.sent_at < receipt_cutoff))
    windows = await session.execute(delete(RateLimitWindow).where(RateLimitWindow.window_start < window_cutoff))
    await session.commit()

    removed = {"notification_receipts": receipts.rowcount or 0, "rate_limits": windows.rowcount or 0}
    log.info("tables_pruned", **removed)
    return removed

async def _run() -> dict:
    async with SessionLocal() as session:
        return await prune(session)

def prune_tables() -> dict:
    """RQ entrypoint; schedule periodically (e.g. hourly) on the notifications queue."""
    return asyncio.run(_run())
