"""Core diff journal - append-only change history with replay and rollback."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional

from .codec import PatchCodec, UnifiedDiffCodec
from .config import JournalOptions, options_from_dict
from .errors import CorruptedJournal, InvalidInput
from .locking import RetryPolicy, atomic_write, is_locked, lock_marker, lock_path_for
from .models import (
    HistoryEntry,
    InspectResult,
    JournalEntry,
    VerifyReport,
    content_hash,
    format_timestamp,
    utc_now,
)
from .paths import guard_path, target_file_path
from .replay import apply_entries, order_entries
from .sequence import SequenceAllocator
from .snapshots import take_snapshot
from .store import JournalStore

logger = logging.getLogger(__name__)


def _require_text(value: Any, name: str, operation: str, allow_empty: bool = False) -> str:
    if not isinstance(value, str):
        raise InvalidInput(f"'{name}' must be a string", rule="string", operation=operation)
    if not allow_empty and not value.strip():
        raise InvalidInput(
            f"'{name}' must be a non-empty string", rule="non_empty_string", operation=operation,
        )
    return value


def _require_seq(seq: Any, operation: str, file: str) -> int:
    if isinstance(seq, bool) or not isinstance(seq, int) or seq < 1:
        raise InvalidInput(
            f"'seq' must be a positive integer, got {seq!r}",
            rule="positive_seq", operation=operation, file=file,
        )
    return seq


class DiffJournal:
    """Per-file journals of attributed diffs under one root directory.

    The handle holds only its options, codec and allocator; all state lives
    on disk. Options never change after the handle is opened.
    """

    def __init__(
        self,
        options: JournalOptions,
        codec: Optional[PatchCodec] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.options = options.validate()
        self.codec: PatchCodec = codec if codec is not None else UnifiedDiffCodec()
        self.store = JournalStore(self.options)
        self.allocator = SequenceAllocator()
        if sleep is None:
            self.retry = RetryPolicy(self.options.lock_attempts, self.options.lock_delay)
        else:
            self.retry = RetryPolicy(self.options.lock_attempts, self.options.lock_delay, sleep)

    # ========== Helpers ==========

    def _check_not_appending(self, file: str, operation: str) -> None:
        """Refuse to read a journal while its lock marker is present.

        This is a point-in-time check: an append may still start right after
        it. Readers do not take the lock themselves.
        """
        lock_path = lock_path_for(self.store.journal_path(file))
        if is_locked(lock_path, file=file):
            logger.warning("Refusing %s of %s: append in progress (%s)", operation, file, lock_path)
            raise CorruptedJournal(
                "append in progress", operation=operation, file=file, path=str(lock_path),
            )

    def _replay(self, file: str, up_to_seq: Optional[int], strict: bool, operation: str) -> str:
        self._check_not_appending(file, operation)
        entries = self.store.read(file)
        return apply_entries(
            entries, self.codec, file, up_to_seq=up_to_seq, strict=strict, operation=operation,
        )

    def _write_target(self, file: str, content: str, operation: str) -> Path:
        target = target_file_path(self.options, file)

        if self.options.snapshots:
            take_snapshot(target, file, operation)

        try:
            with atomic_write(target) as f:
                f.write(content)
        except OSError as exc:
            raise CorruptedJournal(
                f"cannot write {target}: {exc}", operation=operation, file=file, path=str(target),
            ) from exc
        return target

    # ========== Journal Operations ==========

    def append(self, file: str, actor: str, intent: str, before: str, after: str) -> JournalEntry:
        """Record the change of a file from ``before`` to ``after``.

        Returns:
            The written entry with its assigned seq.

        Raises:
            InvalidInput: On missing or empty fields or an unsafe path.
            CorruptedJournal: If the lock cannot be taken or the write fails.
        """
        _require_text(file, "file", "append")
        _require_text(actor, "actor", "append")
        _require_text(intent, "intent", "append")
        _require_text(before, "before", "append", allow_empty=True)
        _require_text(after, "after", "append", allow_empty=True)
        normalized = guard_path(self.options, file, "append")

        journal_path = self.store.journal_path(normalized)
        with lock_marker(lock_path_for(journal_path), self.retry, file=normalized):
            entry = JournalEntry(
                seq=self.allocator.next_seq(journal_path),
                timestamp=format_timestamp(utc_now()),
                file=normalized,
                actor=actor,
                intent=intent,
                base_hash=content_hash(before),
                diff=self.codec.diff(before, after),
            )
            self.store.append(entry)
            self.allocator.record(journal_path, entry.seq)

        logger.info("Appended %s seq %d by %s", normalized, entry.seq, actor)
        return entry

    def content_at(self, file: str, seq: Optional[int] = None, strict: Optional[bool] = None) -> str:
        """Reconstruct content without writing anything.

        Args:
            file: Tracked file
            seq: Last seq to replay; None for the whole journal
            strict: Override the configured strict replay setting
        """
        normalized = guard_path(self.options, file, "content_at")
        if seq is not None:
            _require_seq(seq, "content_at", normalized)
        if strict is None:
            strict = self.options.strict_replay
        return self._replay(normalized, seq, strict, "content_at")

    def materialize(self, file: str) -> Path:
        """Replay the whole journal and write the result to the file.

        Returns:
            Path of the written file.
        """
        normalized = guard_path(self.options, file, "materialize")
        content = self._replay(normalized, None, self.options.strict_replay, "materialize")
        target = self._write_target(normalized, content, "materialize")
        logger.info("Materialized %s", target)
        return target

    def rollback(self, file: str, seq: int) -> Path:
        """Write the file's content as of ``seq``. The journal is left intact.

        Returns:
            Path of the written file.
        """
        normalized = guard_path(self.options, file, "rollback")
        _require_seq(seq, "rollback", normalized)
        content = self._replay(normalized, seq, self.options.strict_replay, "rollback")
        target = self._write_target(normalized, content, "rollback")
        logger.info("Rolled back %s to seq %d", target, seq)
        return target

    def exists(self, file: str) -> bool:
        """True if a journal exists for the file."""
        normalized = guard_path(self.options, file, "exists")
        return self.store.exists(normalized)

    def inspect(self, file: str) -> InspectResult:
        """Diagnostic summary of the file's journal."""
        normalized = guard_path(self.options, file, "inspect")
        return self.store.inspect(normalized)

    def history(self, file: str) -> list[HistoryEntry]:
        """Who changed the file, when and why, in seq order."""
        normalized = guard_path(self.options, file, "history")
        entries = order_entries(self.store.read(normalized), normalized, operation="history")
        return [
            HistoryEntry(
                seq=e.seq,
                timestamp=e.timestamp,
                actor=e.actor,
                intent=e.intent,
                base_hash=e.base_hash,
            )
            for e in entries
        ]

    def verify(self, file: str, seq: Optional[int] = None) -> VerifyReport:
        """Strictly replay the journal (or a prefix) and report the result.

        Always checks the hash chain, whatever the configured strictness.
        Nothing is written.
        """
        normalized = guard_path(self.options, file, "verify")
        if seq is not None:
            _require_seq(seq, "verify", normalized)
        self._check_not_appending(normalized, "verify")
        prefix = order_entries(self.store.read(normalized), normalized, seq, "verify")
        content = apply_entries(prefix, self.codec, normalized, strict=True, operation="verify")
        return VerifyReport(
            file=normalized,
            count=len(prefix),
            head_seq=prefix[-1].seq if prefix else None,
            content_hash=content_hash(content),
        )


def open_diff_journal(
    options: Optional[dict[str, Any]] = None,
    *,
    codec: Optional[PatchCodec] = None,
    sleep: Optional[Callable[[float], None]] = None,
    **kwargs: Any,
) -> DiffJournal:
    """Open a journal handle from an option mapping or keyword options.

    Example:
        journal = open_diff_journal(root_dir="work", strict_replay=True)

    Raises:
        InvalidInput: If any option is missing, unknown or invalid
    """
    data = dict(options or {})
    data.update(kwargs)
    return DiffJournal(options_from_dict(data), codec=codec, sleep=sleep)
