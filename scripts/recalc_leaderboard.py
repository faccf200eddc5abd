"""Rebuild stored leaderboards.

Typical usage:
  # every known scope key (global, each quiz, each batch) for all periods
  python -m scripts.recalc_leaderboard

  # only the global leaderboards
  python -m scripts.recalc_leaderboard --scope global
"""

import argparse
import logging
import sys

from app.core.constants import LeaderboardScopeEnum
from app.core.database import SessionLocal
from app.core.logging import configure_logging
from app.services.leaderboard import leaderboard_service

logger = logging.getLogger(__name__)


def recalc(scope: str = None) -> int:
    db = SessionLocal()
    failures = 0
    try:
        for scope_key in leaderboard_service.known_scope_keys(db):
            if scope and scope_key.scope.value != scope:
                continue
            try:
                leaderboard_service.rebuild(db, scope_key)
            except Exception as e:
                failures += 1
                logger.error(f"Rebuild of {scope_key} failed: {e}")
    finally:
        db.close()
    return failures


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Rebuild stored leaderboards")
    parser.add_argument(
        "--scope",
        choices=[s.value for s in LeaderboardScopeEnum],
        help="limit the rebuild to one scope",
    )
    args = parser.parse_args(argv)

    configure_logging()
    failures = recalc(args.scope)
    if failures:
        logger.error(f"{failures} leaderboard rebuilds failed")
        return 1
    logger.info("Leaderboards rebuilt")
    return 0


if __name__ == "__main__":
    sys.exit(main())
