"""Backups of materialized files taken before they are overwritten."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional

from .errors import CorruptedJournal
from .models import file_safe_timestamp, utc_now

logger = logging.getLogger(__name__)

SNAPSHOT_SUFFIX = ".bak"


def snapshot_path_for(target: Path, stamp: str) -> Path:
    """Snapshot path ``<target>.<stamp>.bak``."""
    return target.with_name(f"{target.name}.{stamp}{SNAPSHOT_SUFFIX}")


def take_snapshot(target: Path, file: str, operation: str) -> Optional[Path]:
    """Copy the current target content aside.

    Returns:
        The snapshot path, or None when the target does not exist yet

    Raises:
        CorruptedJournal: If the copy fails
    """
    if not target.exists():
        return None

    stamp = file_safe_timestamp(utc_now())
    snapshot = snapshot_path_for(target, stamp)
    counter = 1
    while snapshot.exists():
        snapshot = snapshot_path_for(target, f"{stamp}-{counter}")
        counter += 1

    try:
        shutil.copy2(target, snapshot)
    except OSError as exc:
        raise CorruptedJournal(
            f"cannot snapshot {target} to {snapshot}: {exc}",
            operation=operation, file=file, path=str(snapshot),
        ) from exc

    logger.info("Snapshot of %s saved to %s", target, snapshot)
    return snapshot
