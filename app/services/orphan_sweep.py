"""Orphan sweep: delete upload files that no user or item references."""

import logging
import time
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.models import Item, User
from app.services.uploads import AVATARS, ITEMS, URL_PREFIX, ImageStore

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def referenced_paths(session: Session) -> set[str]:
    """Every image reference currently stored on a user or an item."""
    refs = {avatar for (avatar,) in session.query(User.avatar).filter(User.avatar.isnot(None))}
    refs.update(image for (image,) in session.query(Item.image).filter(Item.image.isnot(None)))
    return refs


def run_orphan_sweep(
    session: Session,
    images: ImageStore,
    settings: "Settings",
    now: float | None = None,
) -> int:
    """
    Delete unreferenced files older than ORPHAN_GRACE_MINUTES; return how many were removed.

    The grace period keeps files that an in-flight upload has written but not yet
    associated. Idempotent: safe to run repeatedly.
    """
    now = time.time() if now is None else now
    cutoff = now - settings.ORPHAN_GRACE_MINUTES * 60
    referenced = referenced_paths(session)

    deleted = 0
    for namespace in (ITEMS, AVATARS):
        directory = images.root / namespace
        if not directory.is_dir():
            continue
        for path in directory.iterdir():
            if not path.is_file():
                continue
            reference = f"{URL_PREFIX}/{namespace}/{path.name}"
            if reference in referenced:
                continue
            if path.stat().st_mtime > cutoff:
                continue
            if images.delete(reference):
                deleted += 1

    if deleted > 0:
        logger.info("Orphan sweep run: files_deleted=%s", deleted)
    return deleted
