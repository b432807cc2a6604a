"""Error taxonomy for the diff journal.

Every failure surfaced by the journal is one of four variants of
:class:`JournalError`. Each carries the operation and file it concerns plus
whatever structured context is relevant, so callers can react without
parsing messages.
"""

from __future__ import annotations

from typing import Optional


class JournalError(Exception):
    """Base exception for journal operations."""

    kind = "journal_error"

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        file: Optional[str] = None,
        seq: Optional[int] = None,
        path: Optional[str] = None,
    ):
        self.operation = operation
        self.file = file
        self.seq = seq
        self.path = path
        prefix = f"{operation}: " if operation else ""
        super().__init__(prefix + message)

    def to_dict(self) -> dict:
        """Structured view of the error for tool responses."""
        data = {
            "error_type": self.kind,
            "error": str(self),
            "operation": self.operation,
            "file": self.file,
        }
        if self.seq is not None:
            data["seq"] = self.seq
        if self.path is not None:
            data["path"] = self.path
        return data


class InvalidInput(JournalError):
    """Caller-supplied arguments violate a documented precondition."""

    kind = "invalid_input"

    def __init__(self, message: str, *, rule: str, **context):
        self.rule = rule
        super().__init__(message, **context)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["rule"] = self.rule
        return data


class CorruptedJournal(JournalError):
    """The journal or one of its side files is unusable.

    Also raised when an append is detected in progress during a read, and when
    lock acquisition runs out of attempts (``attempts`` is then set).
    """

    kind = "corrupted_journal"

    def __init__(self, message: str, *, attempts: Optional[int] = None, **context):
        self.attempts = attempts
        super().__init__(message, **context)

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.attempts is not None:
            data["attempts"] = self.attempts
        return data


class PatchApplicationError(JournalError):
    """A recorded diff did not apply cleanly during replay."""

    kind = "patch_application_error"


class StrictReplayMismatch(JournalError):
    """Recomputed content digest differs from a recorded ``base_hash``."""

    kind = "strict_replay_mismatch"

    def __init__(self, message: str, *, expected: str, actual: str, **context):
        self.expected = expected
        self.actual = actual
        super().__init__(message, **context)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["expected"] = self.expected
        data["actual"] = self.actual
        return data
