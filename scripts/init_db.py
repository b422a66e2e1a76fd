#!/usr/bin/env python3
"""
Create the Bracketeer tables directly from the ORM models.

Intended for local SQLite databases and throwaway environments. Shared
databases should be migrated with Alembic instead:
    alembic upgrade head

Usage:
    python scripts/init_db.py
    python scripts/init_db.py --database-url sqlite:///bracketeer.db
    python scripts/init_db.py --drop   # drop and recreate every table
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bracketeer.config import settings
from bracketeer.db.models import Base
from bracketeer.db.session import get_engine

logging.basicConfig(
    level=settings.log_level,
    format=settings.log_format,
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Create Bracketeer tables")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (defaults to DATABASE_URL / settings)",
    )
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop existing tables first (destroys all data)",
    )
    args = parser.parse_args()

    engine = get_engine(args.database_url)
    if args.drop:
        logger.warning("Dropping all tables on %s", engine.url.render_as_string(hide_password=True))
        Base.metadata.drop_all(engine)

    Base.metadata.create_all(engine)
    logger.info("Created tables: %s", ", ".join(sorted(Base.metadata.tables)))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
