#!/usr/bin/env python3
"""Delete refresh tokens that are expired or revoked.

Usage:
    DATABASE_URL=postgresql://... python scripts/purge_refresh_tokens.py
    python scripts/purge_refresh_tokens.py --dry-run

Meant to run from cron; the auth flows never read these rows again.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add project root to path for imports
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def purge(database_url: str, dry_run: bool = False) -> int:
    from migestion.crud.refresh_token import refresh_token_crud
    from migestion.db.session import Database

    database = Database(database_url).open()
    try:
        with database.session_scope() as db:
            if dry_run:
                return refresh_token_crud.count_expired_or_revoked(db)
            deleted = refresh_token_crud.delete_expired_or_revoked(db)
            db.commit()
            return deleted
    finally:
        database.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Purge expired or revoked refresh tokens")
    parser.add_argument("--database-url", help="Overrides DATABASE_URL")
    parser.add_argument("--dry-run", action="store_true", help="Only count the rows that would be deleted")
    args = parser.parse_args()

    from migestion.core.config import Settings
    from migestion.core.logging import get_logger, setup_logging

    settings = Settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    logger = get_logger("purge_refresh_tokens")

    count = purge(args.database_url or settings.DATABASE_URL, dry_run=args.dry_run)
    logger.info("refresh_tokens_purged", count=count, dry_run=args.dry_run)
    return 0


if __name__ == "__main__":
    sys.exit(main())
