"""Shared pytest fixtures for diff-journal tests."""

import tempfile
from pathlib import Path

import pytest

from diff_journal.config import JournalOptions
from diff_journal.engine import DiffJournal


@pytest.fixture
def temp_project():
    """Create a temporary root directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def options(temp_project):
    """Default options rooted at the temp directory."""
    return JournalOptions(root_dir=temp_project)


@pytest.fixture
def journal(options):
    """Journal handle with default options and no lock back-off delay."""
    return DiffJournal(options, sleep=lambda _delay: None)


@pytest.fixture
def strict_journal(temp_project):
    """Journal handle with strict replay and snapshots enabled."""
    return DiffJournal(
        JournalOptions(root_dir=temp_project, strict_replay=True, snapshots=True),
        sleep=lambda _delay: None,
    )


def record_chain(journal, file, contents, actor="test"):
    """Append one entry per successive content, starting from empty."""
    entries = []
    before = ""
    for i, after in enumerate(contents, start=1):
        entries.append(journal.append(file=file, actor=actor, intent=f"step {i}", before=before, after=after))
        before = after
    return entries
