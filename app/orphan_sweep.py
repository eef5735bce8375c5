"""
CLI entrypoint for the orphaned-upload sweep. Run from cron, e.g.:

  python -m app.orphan_sweep

Or hourly: 0 * * * * cd /path/to/stockroom && .venv/bin/python -m app.orphan_sweep
"""

import logging
import sys

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.logging_config import configure_logging
from app.services.orphan_sweep import run_orphan_sweep
from app.services.uploads import get_image_store

logger = logging.getLogger(__name__)


def main() -> int:
    """Delete upload files that no user or item references."""
    settings = get_settings()
    configure_logging(settings)
    db = SessionLocal()
    try:
        files_deleted = run_orphan_sweep(db, get_image_store(), settings)
        logger.info("Orphan sweep completed: files_deleted=%s", files_deleted)
        return 0
    except Exception as e:
        logger.exception("Orphan sweep failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
