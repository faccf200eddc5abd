"""One-off backfill: badge catalog, global leaderboards and badges for every user.

  python -m scripts.migrate_leaderboard_badges
"""

import argparse
import logging
import sys

from app.core.constants import LeaderboardPeriodEnum, LeaderboardScopeEnum
from app.core.database import SessionLocal
from app.core.logging import configure_logging
from app.crud.user import user as crud_user
from app.schemas.leaderboard import ScopeKey
from app.services.badge import badge_service
from app.services.leaderboard import leaderboard_service

logger = logging.getLogger(__name__)


def migrate() -> int:
    db = SessionLocal()
    awarded = 0
    try:
        badge_service.ensure_default_badges(db)

        logger.info("Rebuilding global leaderboards...")
        for period in LeaderboardPeriodEnum:
            leaderboard_service.rebuild(db, ScopeKey(scope=LeaderboardScopeEnum.GLOBAL, period=period))

        logger.info("Awarding badges to users...")
        for user_id in crud_user.get_all_ids(db):
            awarded += len(badge_service.evaluate(db, user_id))
    finally:
        db.close()
    return awarded


def main(argv=None) -> int:
    argparse.ArgumentParser(description=__doc__).parse_args(argv)
    configure_logging()
    awarded = migrate()
    logger.info(f"Migration complete, {awarded} badges awarded")
    return 0


if __name__ == "__main__":
    sys.exit(main())
