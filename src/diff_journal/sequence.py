"""Sequence number allocation for journal appends."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .errors import CorruptedJournal
from .locking import atomic_write
from .store import scan_seqs

logger = logging.getLogger(__name__)


def cache_path_for(journal_path: Path) -> Path:
    """Sequence cache path for a journal file."""
    return journal_path.with_name(journal_path.name + ".seq")


def read_cache(cache_path: Path) -> Optional[int]:
    """Read the cached last seq; any problem counts as a cache miss."""
    try:
        text = cache_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Ignoring unreadable sequence cache %s: %s", cache_path, exc)
        return None

    text = text.strip()
    if not text.isdigit() or int(text) < 1:
        logger.warning("Ignoring corrupt sequence cache %s: %r", cache_path, text[:32])
        return None
    return int(text)


def write_cache(cache_path: Path, seq: int) -> None:
    """Record the last written seq."""
    with atomic_write(cache_path) as f:
        f.write(f"{seq}\n")


def scan_max_seq(journal_path: Path) -> int:
    """Highest valid seq among parseable records, or 0.

    Malformed records are skipped; this is a hint, not a validation.
    """
    try:
        return max(scan_seqs(journal_path), default=0)
    except FileNotFoundError:
        return 0
    except OSError as exc:
        raise CorruptedJournal(
            f"cannot scan journal {journal_path}: {exc}",
            operation="append", path=str(journal_path),
        ) from exc


class SequenceAllocator:
    """Allocates the next seq for a journal, using its cache when possible."""

    def __init__(self, use_cache: bool = True):
        self.use_cache = use_cache

    def _cache_is_fresh(self, journal_path: Path, cache_path: Path) -> bool:
        # The cache is written after the journal; an older cache missed an append
        try:
            return cache_path.stat().st_mtime_ns >= journal_path.stat().st_mtime_ns
        except OSError:
            return False

    def next_seq(self, journal_path: Path) -> int:
        """Return the seq to assign to the next appended entry."""
        cache_path = cache_path_for(journal_path)
        if self.use_cache and self._cache_is_fresh(journal_path, cache_path):
            cached = read_cache(cache_path)
            if cached is not None:
                logger.debug("Sequence cache hit for %s: %d", journal_path, cached)
                return cached + 1

        logger.debug("Sequence cache miss for %s, scanning journal", journal_path)
        return scan_max_seq(journal_path) + 1

    def record(self, journal_path: Path, seq: int) -> None:
        """Update the cache after a successful append.

        The entry is already durable at this point, so a cache write failure
        only drops the cache; the next allocation falls back to a scan.
        """
        if not self.use_cache:
            return
        cache_path = cache_path_for(journal_path)
        try:
            write_cache(cache_path, seq)
        except OSError as exc:
            logger.warning("Could not update sequence cache %s: %s", cache_path, exc)
            cache_path.unlink(missing_ok=True)
