import asyncio
import logging
import os
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from app.core.config import settings
from app.core.database import SessionLocal
from app.services.quiz_attempt import quiz_attempt_service
from app.services.rebuild import rebuild_dispatcher

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


async def sweep_leaderboards():
    try:
        await rebuild_dispatcher.sweep_and_seed()
    except Exception as e:
        logger.error(f"Error sweeping leaderboards: {e}")


def _release_due():
    db = SessionLocal()
    try:
        return quiz_attempt_service.release_due_attempts(db)
    finally:
        db.close()


async def release_due_attempts():
    try:
        released = await asyncio.to_thread(_release_due)
        if released:
            logger.info(f"Released {released} pending attempts past their release time")
    except Exception as e:
        logger.error(f"Error releasing pending attempts: {e}")


def start_scheduler():
    if os.getenv("TESTING") == "true":
        logger.info("Scheduler disabled in test environment")
        return

    if not scheduler.running:
        scheduler.add_job(
            sweep_leaderboards,
            'interval',
            seconds=settings.LEADERBOARD_SWEEP_SECONDS,
            id='leaderboard_sweep',
            name='Rebuild All Leaderboards',
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        scheduler.add_job(
            release_due_attempts,
            'interval',
            seconds=settings.PENDING_RELEASE_CHECK_SECONDS,
            id='release_pending_attempts',
            name='Release Pending Attempts',
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        scheduler.start()
        logger.info("Scheduler started with leaderboard sweep and pending release jobs")


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
