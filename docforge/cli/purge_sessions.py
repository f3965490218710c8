"""Purge expired batch sessions from the DocForge database.

A session expires when it is older than the configured TTL and was never
completed. Candidates go with their session; generated documents are kept.

Options:
    --dry-run         Only report what would be removed
"""

import argparse
import asyncio
import logging
import sys
from datetime import timedelta

from docforge.config import settings
from docforge.database import close_db, init_db
from docforge.models.batch import BatchSession, SessionStatus
from docforge.services.batch_session import utcnow
from docforge.services.cleanup import purge_expired_sessions

logger = logging.getLogger(__name__)


async def count_expired_sessions() -> int:
    cutoff = utcnow() - timedelta(hours=settings.session_ttl_hours)
    return await BatchSession.find(
        {"status": {"$ne": SessionStatus.COMPLETED.value}},
        BatchSession.updated_at < cutoff,
    ).count()


async def run(dry_run: bool = False, skip_db_init: bool = False) -> int:
    """Purge (or count) expired sessions.

    Args:
        dry_run: Only count what would be removed.
        skip_db_init: Use an already initialized database (for testing).
    """
    if not skip_db_init:
        await init_db()
    try:
        if dry_run:
            count = await count_expired_sessions()
            print(f"[DRY RUN] {count} expired session(s) would be removed")
            return count
        removed = await purge_expired_sessions()
        print(f"Removed {removed} expired session(s)")
        return removed
    finally:
        if not skip_db_init:
            await close_db()


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Purge expired DocForge batch sessions",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report what would be removed",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger.info("Session TTL is %d hours", settings.session_ttl_hours)

    try:
        asyncio.run(run(dry_run=args.dry_run))
    except KeyboardInterrupt:
        print("\nOperation cancelled")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
