"""Replay of journal entries into file content."""

from __future__ import annotations

import logging
from typing import Optional

from .codec import PatchCodec
from .errors import CorruptedJournal, PatchApplicationError, StrictReplayMismatch
from .models import JournalEntry, content_hash

logger = logging.getLogger(__name__)


def order_entries(
    entries: list[JournalEntry],
    file: str,
    up_to_seq: Optional[int] = None,
    operation: str = "replay",
) -> list[JournalEntry]:
    """Select entries up to a seq and check they form exactly 1..k.

    Args:
        entries: Entries as read from the journal
        file: Tracked file, for error context
        up_to_seq: Last seq to include; None for the whole journal
        operation: Calling operation, for error context

    Raises:
        CorruptedJournal: On non-positive, non-integer or duplicate seqs,
            gaps, or when ``up_to_seq`` was never reached
    """
    selected = [e for e in entries if up_to_seq is None or e.seq <= up_to_seq]

    seen: set[int] = set()
    for entry in selected:
        if not isinstance(entry.seq, int) or entry.seq < 1:
            raise CorruptedJournal(
                f"invalid seq {entry.seq!r} in journal",
                operation=operation, file=file,
            )
        if entry.seq in seen:
            raise CorruptedJournal(
                f"duplicate seq {entry.seq} in journal",
                operation=operation, file=file, seq=entry.seq,
            )
        seen.add(entry.seq)

    ordered = sorted(selected, key=lambda e: e.seq)
    for expected, entry in enumerate(ordered, start=1):
        if entry.seq != expected:
            raise CorruptedJournal(
                f"seq gap in journal: expected {expected}, found {entry.seq}",
                operation=operation, file=file, seq=expected,
            )

    if up_to_seq is not None and len(ordered) != up_to_seq:
        raise CorruptedJournal(
            f"seq {up_to_seq} not present in journal (head is {len(ordered)})",
            operation=operation, file=file, seq=up_to_seq,
        )
    return ordered


def apply_entries(
    entries: list[JournalEntry],
    codec: PatchCodec,
    file: str,
    up_to_seq: Optional[int] = None,
    strict: bool = False,
    operation: str = "replay",
) -> str:
    """Reconstruct content by folding entry diffs over empty text.

    In strict mode every entry's ``base_hash`` is checked against the digest
    of the content accumulated so far.

    Raises:
        CorruptedJournal: If the selected entries are not exactly 1..k
        StrictReplayMismatch: If a recorded digest does not match
        PatchApplicationError: If a diff does not apply cleanly
    """
    ordered = order_entries(entries, file, up_to_seq, operation)

    content = ""
    for entry in ordered:
        if strict:
            actual = content_hash(content)
            if entry.base_hash != actual:
                raise StrictReplayMismatch(
                    f"base hash mismatch at seq {entry.seq}: "
                    f"expected {entry.base_hash}, actual {actual}",
                    operation=operation, file=file, seq=entry.seq,
                    expected=str(entry.base_hash), actual=actual,
                )

        patched = codec.apply(content, entry.diff)
        if patched is None:
            raise PatchApplicationError(
                f"diff at seq {entry.seq} does not apply cleanly",
                operation=operation, file=file, seq=entry.seq,
            )
        content = patched

    logger.debug("Replayed %d entries for %s (strict=%s)", len(ordered), file, strict)
    return content
