"""Append-only storage of journal records.

One JSON object per line, one log file per tracked file at
``<journal_dir>/<file>.log``. Records are only ever appended.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Iterator, Optional

from .config import JournalOptions
from .errors import CorruptedJournal
from .locking import locked_append
from .models import InspectResult, JournalEntry
from .paths import journal_file_path

logger = logging.getLogger(__name__)


def seq_value(value: Any) -> Optional[int | float]:
    """Numeric seq value, or None for anything non-numeric.

    Integral floats such as ``1.0`` count as the matching int.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def parse_record(line: str, file: str, line_no: int) -> JournalEntry:
    """Parse one record line.

    Raises:
        CorruptedJournal: If the line is not a well-formed entry
    """
    try:
        data = json.loads(line)
    except ValueError as exc:
        raise CorruptedJournal(
            f"unparseable record at line {line_no}: {exc}",
            operation="read", file=file,
        ) from exc

    if not isinstance(data, dict):
        raise CorruptedJournal(
            f"record at line {line_no} is not an object",
            operation="read", file=file,
        )

    seq = seq_value(data.get("seq"))
    if seq is None:
        raise CorruptedJournal(
            f"record at line {line_no} has a missing or non-numeric seq",
            operation="read", file=file,
        )
    if not isinstance(data.get("diff"), str):
        raise CorruptedJournal(
            f"record at line {line_no} has no diff text",
            operation="read", file=file, seq=seq if isinstance(seq, int) else None,
        )

    data["seq"] = seq
    return JournalEntry.from_dict(data)


def scan_seqs(path: Path) -> Iterator[int]:
    """Positive int seqs of the parseable records in a journal file.

    Lines that are not valid UTF-8, not JSON objects or carry no usable seq
    are skipped.

    Raises:
        FileNotFoundError: If the journal does not exist
        OSError: If it cannot be read
    """
    content = path.read_bytes()
    for raw in content.split(b"\n"):
        if not raw.strip():
            continue
        try:
            data = json.loads(raw.decode("utf-8"))
        except ValueError:
            continue
        seq = seq_value(data.get("seq")) if isinstance(data, dict) else None
        if isinstance(seq, int) and seq > 0:
            yield seq


class JournalStore:
    """Reads and appends the journal records of tracked files."""

    def __init__(self, options: JournalOptions):
        self.options = options

    def journal_path(self, file: str) -> Path:
        """Path of the log for a normalized tracked-file path."""
        return journal_file_path(self.options, file)

    def _read_text(self, file: str, operation: str) -> Optional[str]:
        path = self.journal_path(file)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise CorruptedJournal(
                f"cannot read journal {path}: {exc}",
                operation=operation, file=file, path=str(path),
            ) from exc

    def append(self, entry: JournalEntry) -> None:
        """Append one entry. The caller must hold the file's lock marker.

        Raises:
            CorruptedJournal: If the record cannot be written
        """
        path = self.journal_path(entry.file)
        line = json.dumps(entry.to_dict(), ensure_ascii=False) + "\n"
        try:
            locked_append(path, line)
        except OSError as exc:
            raise CorruptedJournal(
                f"cannot append to journal {path}: {exc}",
                operation="append", file=entry.file, seq=entry.seq, path=str(path),
            ) from exc

    def read(self, file: str) -> list[JournalEntry]:
        """All entries of a journal in file order; empty if there is none.

        Raises:
            CorruptedJournal: If any non-blank record is malformed
        """
        content = self._read_text(file, "read")
        if content is None:
            return []

        entries = []
        for line_no, line in enumerate(content.split("\n"), start=1):
            if not line.strip():
                continue
            entries.append(parse_record(line, file, line_no))

        logger.debug("Read %d entries for %s", len(entries), file)
        return entries

    def exists(self, file: str) -> bool:
        """True if a journal is present for the file.

        Raises:
            CorruptedJournal: On access errors other than absence
        """
        path = self.journal_path(file)
        try:
            os.stat(path)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise CorruptedJournal(
                f"cannot access journal {path}: {exc}",
                operation="exists", file=file, path=str(path),
            ) from exc
        return True

    def inspect(self, file: str) -> InspectResult:
        """Tolerant summary of a journal; malformed records are skipped."""
        path = self.journal_path(file)
        try:
            seqs = list(scan_seqs(path))
        except FileNotFoundError:
            return InspectResult(exists=False)
        except OSError as exc:
            raise CorruptedJournal(
                f"cannot read journal {path}: {exc}",
                operation="inspect", file=file, path=str(path),
            ) from exc

        if not seqs:
            return InspectResult(exists=True)
        return InspectResult(exists=True, count=len(seqs), min_seq=min(seqs), max_seq=max(seqs))
