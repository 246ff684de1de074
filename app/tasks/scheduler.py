"""Background reconciliation using APScheduler."""

import logging
from datetime import timedelta
from typing import Optional
from uuid import uuid4

import redis.asyncio as redis
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.blog.reconcile import Reconciler
from app.blog.schemas import ReconcileReport
from app.blog.stores import CommentStore, PostStore
from app.config import get_settings
from app.database import get_db_context

settings = get_settings()
logger = logging.getLogger(__name__)

LOCK_KEY = "blog:reconcile:lock"

# Delete the key only if it still holds our token
RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
else
    return 0
end
"""

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None
redis_client: redis.Redis | None = None


class ReconcileLock:
    """Redis lock so only one replica reconciles at a time"""

    def __init__(self, client: redis.Redis, key: str = LOCK_KEY, ttl: int = 240):
        self.client = client
        self.key = key
        self.ttl = ttl
        self.token: Optional[str] = None

    async def acquire(self) -> bool:
        token = uuid4().hex
        if await self.client.set(self.key, token, nx=True, ex=self.ttl):
            self.token = token
            return True
        return False

    async def release(self) -> None:
        if self.token is None:
            return
        await self.client.eval(RELEASE_SCRIPT, 1, self.key, self.token)
        self.token = None


async def run_reconciliation() -> ReconcileReport:
    """Run one reconciliation pass with a fresh session."""
    async with get_db_context() as db:
        reconciler = Reconciler(
            comments=CommentStore(db),
            posts=PostStore(db),
            orphan_grace=timedelta(seconds=settings.RECONCILE_ORPHAN_GRACE_SECONDS),
        )
        return await reconciler.run()


async def reconcile_task() -> None:
    """Background task to repair post/comment divergence."""
    if redis_client is None:
        logger.warning("Reconciliation skipped: Redis not initialized")
        return

    lock = ReconcileLock(redis_client, ttl=settings.RECONCILE_LOCK_TTL_SECONDS)
    try:
        if not await lock.acquire():
            logger.debug("Reconciliation already running on another instance")
            return
        try:
            report = await run_reconciliation()
            if report.total > 0:
                logger.info(f"Reconciliation repaired {report.total} inconsistencies")
        finally:
            await lock.release()
    except Exception as e:
        logger.error(f"Error during reconciliation: {e}")


def setup_scheduler() -> AsyncIOScheduler:
    """Set up and start the background task scheduler."""
    global scheduler, redis_client

    redis_client = redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True
    )

    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        reconcile_task,
        trigger=IntervalTrigger(seconds=settings.RECONCILE_INTERVAL_SECONDS),
        id="reconcile_comments",
        name="Reconcile comments with post summaries",
        replace_existing=True,
        max_instances=1,
    )

    scheduler.start()
    logger.info("Background scheduler started")

    return scheduler


async def shutdown_scheduler() -> None:
    """Shutdown the background task scheduler."""
    global scheduler, redis_client

    if scheduler:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("Background scheduler stopped")
    if redis_client:
        await redis_client.close()
        redis_client = None
