import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Optional

from app.core.config import settings
from app.core.constants import AttemptStatusEnum, LeaderboardPeriodEnum, LeaderboardScopeEnum
from app.core.database import SessionLocal
from app.schemas.leaderboard import ScopeKey
from app.schemas.quiz_attempt import AttemptSummary
from app.services.badge import badge_service
from app.services.leaderboard import leaderboard_service
from app.utils.events import LEADERBOARD_REBUILT, event_bus

logger = logging.getLogger(__name__)


def affected_scope_keys(quiz_id: int) -> List[ScopeKey]:
    """Keys refreshed eagerly after an attempt on ``quiz_id``.

    Batch scopes are left to the next read or sweep since the submission
    path does not know the subject's cohort.
    """
    keys = []
    for period in LeaderboardPeriodEnum:
        keys.append(ScopeKey(scope=LeaderboardScopeEnum.GLOBAL, period=period))
    for period in LeaderboardPeriodEnum:
        keys.append(ScopeKey(scope=LeaderboardScopeEnum.QUIZ, period=period, quiz_id=quiz_id))
    return keys


class RebuildDispatcher:
    """Fire-and-forget ranking work that must never block attempt submission."""

    def __init__(self, max_workers: int = settings.REBUILD_WORKERS, session_factory=SessionLocal):
        self.session_factory = session_factory
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="rebuild")
        return self._executor

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Event loop on which cache invalidation and live pushes are scheduled."""
        self._loop = loop

    def on_attempt_completed(self, attempt: AttemptSummary) -> Optional[Future]:
        """Hook called by the attempt-recording path; returns without waiting."""
        if attempt.status != AttemptStatusEnum.COMPLETED:
            logger.debug(f"Ignoring {attempt.status.value} attempt of user {attempt.user_id}")
            return None

        future = self.executor.submit(self.process_attempt, attempt.user_id, attempt.quiz_id)
        future.add_done_callback(self._log_failure)
        return future

    def process_attempt(self, user_id: int, quiz_id: int) -> List[ScopeKey]:
        db = self.session_factory()
        rebuilt = []
        try:
            for scope_key in affected_scope_keys(quiz_id):
                try:
                    leaderboard_service.rebuild(db, scope_key)
                    rebuilt.append(scope_key)
                except Exception as e:
                    logger.error(f"Rebuild of {scope_key} after attempt by user {user_id} failed: {e}")

            try:
                badge_service.evaluate(db, user_id)
            except Exception as e:
                db.rollback()
                logger.error(f"Badge evaluation for user {user_id} failed: {e}")
        finally:
            db.close()

        self.notify_rebuilt(rebuilt)
        return rebuilt

    def notify_rebuilt(self, scope_keys: List[ScopeKey]) -> None:
        if not scope_keys or self._loop is None or self._loop.is_closed():
            return
        future = asyncio.run_coroutine_threadsafe(self._after_rebuild(scope_keys), self._loop)
        future.add_done_callback(self._log_failure)

    async def _after_rebuild(self, scope_keys: List[ScopeKey]) -> None:
        await leaderboard_service.invalidate(scope_keys)
        await event_bus.publish(LEADERBOARD_REBUILT, {"scope_keys": scope_keys})

    def sweep(self) -> List[ScopeKey]:
        """Rebuild every known scope key; failures are logged per key."""
        db = self.session_factory()
        rebuilt = []
        try:
            for scope_key in leaderboard_service.known_scope_keys(db):
                try:
                    leaderboard_service.rebuild(db, scope_key)
                    rebuilt.append(scope_key)
                except Exception as e:
                    logger.error(f"Sweep rebuild of {scope_key} failed: {e}")
        finally:
            db.close()
        return rebuilt

    async def sweep_and_seed(self) -> int:
        rebuilt = await asyncio.to_thread(self.sweep)
        await leaderboard_service.invalidate(rebuilt)
        for scope_key in rebuilt:
            try:
                await leaderboard_service.seed_page(scope_key, settings.LEADERBOARD_DEFAULT_LIMIT)
            except Exception as e:
                logger.error(f"Seeding cached page for {scope_key} failed: {e}")
        logger.info(f"Leaderboard sweep refreshed {len(rebuilt)} scope keys")
        return len(rebuilt)

    def _log_failure(self, future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(f"Background ranking work failed: {exc!r}")

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None


rebuild_dispatcher = RebuildDispatcher()
