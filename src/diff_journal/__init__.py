"""Diff Journal - append-only, attributed change history for text files."""

from .codec import PatchCodec, UnifiedDiffCodec
from .config import JournalOptions, load_config, options_from_dict
from .engine import DiffJournal, open_diff_journal
from .errors import (
    CorruptedJournal,
    InvalidInput,
    JournalError,
    PatchApplicationError,
    StrictReplayMismatch,
)
from .models import HistoryEntry, InspectResult, JournalEntry, VerifyReport

__version__ = "0.1.0"

__all__ = [
    "CorruptedJournal",
    "DiffJournal",
    "HistoryEntry",
    "InspectResult",
    "InvalidInput",
    "JournalEntry",
    "JournalError",
    "JournalOptions",
    "PatchApplicationError",
    "PatchCodec",
    "StrictReplayMismatch",
    "UnifiedDiffCodec",
    "VerifyReport",
    "load_config",
    "open_diff_journal",
    "options_from_dict",
]
