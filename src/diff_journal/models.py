"""Data models for journal entries and the views derived from them."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Format datetime as ISO 8601 with timezone."""
    return dt.isoformat(timespec='milliseconds')


def file_safe_timestamp(dt: datetime) -> str:
    """Format datetime for use inside a file name (no colons or dots)."""
    return dt.strftime('%Y-%m-%dT%H-%M-%S-') + f"{dt.microsecond // 1000:03d}Z"


def content_hash(text: str) -> str:
    """Compute SHA-256 hex digest of UTF-8 encoded text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass
class JournalEntry:
    """A single recorded change to a tracked file."""
    seq: Union[int, float]
    timestamp: str
    file: str
    actor: str
    intent: str
    base_hash: Optional[str]
    diff: str

    def to_dict(self) -> dict:
        """Convert entry to the on-disk record layout."""
        return {
            "seq": self.seq,
            "ts": self.timestamp,
            "file": self.file,
            "actor": self.actor,
            "intent": self.intent,
            "base_hash": self.base_hash,
            "diff": self.diff,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "JournalEntry":
        """Build an entry from a parsed record; fields besides seq/diff are lenient."""
        return cls(
            seq=data["seq"],
            timestamp=str(data.get("ts") or ""),
            file=str(data.get("file") or ""),
            actor=str(data.get("actor") or ""),
            intent=str(data.get("intent") or ""),
            base_hash=data.get("base_hash"),
            diff=data["diff"],
        )


@dataclass
class InspectResult:
    """Diagnostic summary of a journal (never used to drive replay)."""
    exists: bool
    count: int = 0
    min_seq: Optional[int] = None
    max_seq: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "exists": self.exists,
            "count": self.count,
            "min_seq": self.min_seq,
            "max_seq": self.max_seq,
        }


@dataclass
class HistoryEntry:
    """Provenance record for one entry, without its diff."""
    seq: int
    timestamp: str
    actor: str
    intent: str
    base_hash: Optional[str]

    def to_dict(self) -> dict:
        return {
            "seq": self.seq,
            "ts": self.timestamp,
            "actor": self.actor,
            "intent": self.intent,
            "base_hash": self.base_hash,
        }


@dataclass
class VerifyReport:
    """Outcome of a strict, write-free replay."""
    file: str
    count: int
    head_seq: Optional[int]
    content_hash: str

    def to_dict(self) -> dict:
        return {
            "file": self.file,
            "count": self.count,
            "head_seq": self.head_seq,
            "content_hash": self.content_hash,
        }
