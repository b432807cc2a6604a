"""Tests for the DiffJournal facade."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import record_chain
from diff_journal.config import JournalOptions
from diff_journal.engine import DiffJournal, open_diff_journal
from diff_journal.errors import (
    CorruptedJournal,
    InvalidInput,
    PatchApplicationError,
    StrictReplayMismatch,
)
from diff_journal.locking import lock_path_for
from diff_journal.models import content_hash
from diff_journal.sequence import cache_path_for

VERSIONS = ["Hello world\n", "Hello world\nNice to meet you.\n", "Hi world\nNice to meet you.\nBye\n"]


def journal_records(journal, file):
    path = journal.store.journal_path(file)
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


def rewrite_records(journal, file, records):
    path = journal.store.journal_path(file)
    path.write_text("".join(json.dumps(r) + "\n" for r in records))


class TestQuickstartScenario:
    """End-to-end walk through the documented scenario."""

    def test_scenario(self, temp_project):
        """Append twice, materialize, roll back, inspect."""
        journal = open_diff_journal(
            root_dir=temp_project, journal_dir=".journal", strict_replay=True, snapshots=True,
        )
        first = journal.append(
            file="example.txt", actor="a", intent="init", before="", after="Hello world\n",
        )
        second = journal.append(
            file="example.txt", actor="a", intent="add line",
            before="Hello world\n", after="Hello world\nNice to meet you.\n",
        )
        assert (first.seq, second.seq) == (1, 2)

        journal.materialize("example.txt")
        target = temp_project / "example.txt"
        assert target.read_text() == "Hello world\nNice to meet you.\n"

        journal.rollback("example.txt", seq=1)
        assert target.read_text() == "Hello world\n"

        snapshots = list(temp_project.glob("example.txt.*.bak"))
        assert len(snapshots) == 1
        assert snapshots[0].read_text() == "Hello world\nNice to meet you.\n"

        summary = journal.inspect("example.txt")
        assert summary.to_dict() == {"exists": True, "count": 2, "min_seq": 1, "max_seq": 2}


class TestAppend:
    """Tests for append."""

    def test_entry_fields(self, journal):
        """The returned entry carries the recorded metadata."""
        entry = journal.append(file="./a.txt", actor="bot", intent="create", before="", after="x\n")
        assert entry.seq == 1
        assert entry.file == "a.txt"
        assert entry.actor == "bot"
        assert entry.intent == "create"
        assert entry.base_hash == content_hash("")
        assert entry.timestamp

    def test_writes_one_record(self, journal):
        """Each append adds exactly one record."""
        record_chain(journal, "a.txt", VERSIONS)
        records = journal_records(journal, "a.txt")
        assert [r["seq"] for r in records] == [1, 2, 3]
        assert records[1]["base_hash"] == content_hash(VERSIONS[0])
        assert {r["file"] for r in records} == {"a.txt"}

    def test_updates_cache_and_releases_lock(self, journal):
        """After append the cache holds the seq and no lock remains."""
        record_chain(journal, "a.txt", VERSIONS[:2])
        journal_path = journal.store.journal_path("a.txt")
        assert cache_path_for(journal_path).read_text() == "2\n"
        assert not lock_path_for(journal_path).exists()

    def test_journals_are_per_file(self, journal):
        """Different files have independent seqs."""
        journal.append(file="a.txt", actor="t", intent="i", before="", after="a\n")
        entry = journal.append(file="docs/b.txt", actor="t", intent="i", before="", after="b\n")
        assert entry.seq == 1

    def test_scan_skips_undecodable_record(self, journal):
        """Without a cache, an invalid UTF-8 record does not block appends."""
        record_chain(journal, "a.txt", VERSIONS[:2])
        journal_path = journal.store.journal_path("a.txt")
        with open(journal_path, "ab") as f:
            f.write(b'{"seq": 99, "diff": "\xff\xfe"}\n')
        cache_path_for(journal_path).unlink()
        entry = journal.append(file="a.txt", actor="t", intent="i", before=VERSIONS[1], after=VERSIONS[2])
        assert entry.seq == 3

    def test_float_seq_on_disk_not_reused(self, journal, temp_project):
        """A seq stored as 1.0 is taken, so the next append gets 2."""
        record_chain(journal, "a.txt", VERSIONS[:1])
        records = journal_records(journal, "a.txt")
        records[0]["seq"] = 1.0
        rewrite_records(journal, "a.txt", records)
        cache_path_for(journal.store.journal_path("a.txt")).unlink(missing_ok=True)
        entry = journal.append(file="a.txt", actor="t", intent="i", before=VERSIONS[0], after=VERSIONS[1])
        assert entry.seq == 2
        journal.materialize("a.txt")
        assert (temp_project / "a.txt").read_text() == VERSIONS[1]

    def test_recovers_from_missing_cache(self, journal):
        """Deleting the cache does not break allocation."""
        record_chain(journal, "a.txt", VERSIONS[:2])
        cache_path_for(journal.store.journal_path("a.txt")).unlink()
        entry = journal.append(file="a.txt", actor="t", intent="i", before=VERSIONS[1], after=VERSIONS[2])
        assert entry.seq == 3

    @pytest.mark.parametrize("field", ["actor", "intent"])
    @pytest.mark.parametrize("value", ["", "   ", None, 3])
    def test_required_text_fields(self, journal, temp_project, field, value):
        """actor and intent must be non-empty strings."""
        change = dict(file="a.txt", actor="t", intent="i", before="", after="x")
        change[field] = value
        with pytest.raises(InvalidInput):
            journal.append(**change)
        assert not (temp_project / ".journal").exists()

    @pytest.mark.parametrize("field", ["before", "after"])
    def test_content_must_be_string(self, journal, field):
        """before/after may be empty but must be strings."""
        change = dict(file="a.txt", actor="t", intent="i", before="", after="x")
        change[field] = None
        with pytest.raises(InvalidInput):
            journal.append(**change)

    def test_held_lock_times_out(self, temp_project):
        """A lock held elsewhere exhausts the retry budget."""
        journal = DiffJournal(
            JournalOptions(root_dir=temp_project, lock_attempts=3, lock_delay=0),
            sleep=lambda _delay: None,
        )
        lock_path = lock_path_for(journal.store.journal_path("a.txt"))
        lock_path.parent.mkdir(parents=True)
        lock_path.write_text("")
        with pytest.raises(CorruptedJournal) as exc_info:
            journal.append(file="a.txt", actor="t", intent="i", before="", after="x")
        assert exc_info.value.attempts == 3
        assert not journal.store.journal_path("a.txt").exists()

    def test_failed_write_leaves_no_record(self, journal):
        """A failed write appends nothing and releases the lock."""
        record_chain(journal, "a.txt", VERSIONS[:1])
        with patch("diff_journal.store.locked_append", side_effect=OSError("disk full")):
            with pytest.raises(CorruptedJournal):
                journal.append(file="a.txt", actor="t", intent="i", before=VERSIONS[0], after=VERSIONS[1])
        journal_path = journal.store.journal_path("a.txt")
        assert [r["seq"] for r in journal_records(journal, "a.txt")] == [1]
        assert not lock_path_for(journal_path).exists()

        entry = journal.append(file="a.txt", actor="t", intent="i", before=VERSIONS[0], after=VERSIONS[1])
        assert entry.seq == 2


class TestMaterializeAndRollback:
    """Tests for materialize and rollback."""

    def test_round_trip(self, journal, temp_project):
        """materialize writes the last recorded content."""
        record_chain(journal, "docs/a.md", VERSIONS)
        target = journal.materialize("docs/a.md")
        assert target == temp_project / "docs" / "a.md"
        assert target.read_text() == VERSIONS[-1]

    @pytest.mark.parametrize("seq", [1, 2, 3])
    def test_rollback_each_seq(self, journal, temp_project, seq):
        """rollback(k) writes the content after the k-th append."""
        record_chain(journal, "a.txt", VERSIONS)
        journal.rollback("a.txt", seq)
        assert (temp_project / "a.txt").read_text() == VERSIONS[seq - 1]

    def test_rollback_keeps_journal(self, journal, temp_project):
        """Later entries survive a rollback and can be reached again."""
        record_chain(journal, "a.txt", VERSIONS)
        journal.rollback("a.txt", 1)
        assert journal.inspect("a.txt").max_seq == 3
        journal.materialize("a.txt")
        assert (temp_project / "a.txt").read_text() == VERSIONS[-1]

    def test_materialize_without_journal(self, journal, temp_project):
        """A file with no journal materializes as empty content."""
        journal.materialize("new.txt")
        assert (temp_project / "new.txt").read_text() == ""

    @pytest.mark.parametrize("seq", [0, -2, 1.0, 2.5, True, "1", None])
    def test_rollback_seq_validated(self, journal, seq):
        """Rollback targets must be positive integers."""
        record_chain(journal, "a.txt", VERSIONS)
        with pytest.raises(InvalidInput) as exc_info:
            journal.rollback("a.txt", seq)
        assert exc_info.value.rule == "positive_seq"

    def test_rollback_past_head(self, journal):
        """A seq never reached is rejected."""
        record_chain(journal, "a.txt", VERSIONS)
        with pytest.raises(CorruptedJournal):
            journal.rollback("a.txt", 4)

    def test_refuses_while_append_in_progress(self, journal, temp_project):
        """A present lock marker blocks materialize and rollback."""
        record_chain(journal, "a.txt", VERSIONS)
        lock_path_for(journal.store.journal_path("a.txt")).write_text("")
        with pytest.raises(CorruptedJournal, match="append in progress"):
            journal.materialize("a.txt")
        with pytest.raises(CorruptedJournal, match="append in progress"):
            journal.rollback("a.txt", 1)
        assert not (temp_project / "a.txt").exists()

    def test_gap_fails_replay(self, journal, temp_project):
        """A journal with a seq gap never materializes."""
        record_chain(journal, "a.txt", VERSIONS)
        records = journal_records(journal, "a.txt")
        rewrite_records(journal, "a.txt", [records[0], records[2]])
        with pytest.raises(CorruptedJournal):
            journal.materialize("a.txt")
        assert not (temp_project / "a.txt").exists()

    def test_duplicate_fails_replay(self, journal):
        """A journal with a duplicated seq never materializes."""
        record_chain(journal, "a.txt", VERSIONS[:2])
        records = journal_records(journal, "a.txt")
        rewrite_records(journal, "a.txt", records + [records[1]])
        with pytest.raises(CorruptedJournal):
            journal.rollback("a.txt", 2)

    def test_malformed_record_fails_replay(self, journal):
        """A garbage line makes replay fail instead of being skipped."""
        record_chain(journal, "a.txt", VERSIONS)
        with open(journal.store.journal_path("a.txt"), "a") as f:
            f.write("{broken\n")
        with pytest.raises(CorruptedJournal):
            journal.materialize("a.txt")

    def test_unapplicable_diff(self, journal):
        """A diff that no longer applies fails with PatchApplicationError."""
        record_chain(journal, "a.txt", VERSIONS)
        records = journal_records(journal, "a.txt")
        records[1]["diff"] = journal.codec.diff("unrelated\n", "unrelated\nmore\n")
        rewrite_records(journal, "a.txt", records)
        with pytest.raises(PatchApplicationError):
            journal.materialize("a.txt")

    def test_existing_target_overwritten_without_snapshot(self, journal, temp_project):
        """Snapshots are off by default."""
        (temp_project / "a.txt").write_text("local edits\n")
        record_chain(journal, "a.txt", VERSIONS[:1])
        journal.materialize("a.txt")
        assert (temp_project / "a.txt").read_text() == VERSIONS[0]
        assert list(temp_project.glob("a.txt.*.bak")) == []


class TestStrictReplay:
    """Tests for hash-chain verification during replay."""

    def test_tampered_base_hash(self, strict_journal, temp_project):
        """A modified base_hash fails strict materialize."""
        record_chain(strict_journal, "a.txt", VERSIONS)
        records = journal_records(strict_journal, "a.txt")
        records[1]["base_hash"] = "0" * 64
        rewrite_records(strict_journal, "a.txt", records)
        with pytest.raises(StrictReplayMismatch) as exc_info:
            strict_journal.materialize("a.txt")
        assert exc_info.value.seq == 2
        assert not (temp_project / "a.txt").exists()

    def test_tampered_diff(self, strict_journal, temp_project):
        """A rewritten diff in the replayed prefix fails strict rollback."""
        record_chain(strict_journal, "a.txt", VERSIONS)
        records = journal_records(strict_journal, "a.txt")
        records[0]["diff"] = strict_journal.codec.diff("", "Hello world\n\n")
        rewrite_records(strict_journal, "a.txt", records)
        with pytest.raises(StrictReplayMismatch):
            strict_journal.rollback("a.txt", 2)
        assert not (temp_project / "a.txt").exists()

    def test_non_strict_ignores_hash(self, journal, temp_project):
        """Without strict mode a bad base_hash is not checked."""
        record_chain(journal, "a.txt", VERSIONS)
        records = journal_records(journal, "a.txt")
        records[1]["base_hash"] = "0" * 64
        rewrite_records(journal, "a.txt", records)
        journal.materialize("a.txt")
        assert (temp_project / "a.txt").read_text() == VERSIONS[-1]


class TestSnapshots:
    """Tests for snapshot behavior during materialize/rollback."""

    def test_no_snapshot_when_target_missing(self, strict_journal, temp_project):
        """Nothing to preserve for a new target."""
        record_chain(strict_journal, "a.txt", VERSIONS)
        strict_journal.materialize("a.txt")
        assert list(temp_project.glob("a.txt.*.bak")) == []

    def test_snapshot_per_overwrite(self, strict_journal, temp_project):
        """Each overwrite keeps one copy of the previous content."""
        record_chain(strict_journal, "a.txt", VERSIONS)
        strict_journal.materialize("a.txt")
        strict_journal.rollback("a.txt", 1)
        strict_journal.rollback("a.txt", 2)
        contents = sorted(p.read_text() for p in temp_project.glob("a.txt.*.bak"))
        assert contents == sorted([VERSIONS[2], VERSIONS[0]])

    def test_snapshot_failure_aborts(self, strict_journal, temp_project):
        """If the backup fails the target is left alone."""
        record_chain(strict_journal, "a.txt", VERSIONS)
        (temp_project / "a.txt").write_text("keep me\n")
        with patch("diff_journal.snapshots.shutil.copy2", side_effect=OSError("no space")):
            with pytest.raises(CorruptedJournal) as exc_info:
                strict_journal.materialize("a.txt")
        assert exc_info.value.path.endswith(".bak")
        assert (temp_project / "a.txt").read_text() == "keep me\n"


class TestPathSafety:
    """Every operation rejects unsafe paths before touching the disk."""

    @pytest.mark.parametrize("file", ["/tmp/abs.txt", "../up.txt", "a/../../up.txt", ".journal/x.txt", "a\x00b.txt"])
    def test_all_operations(self, journal, temp_project, file):
        """append, materialize, rollback, exists and inspect all refuse."""
        calls = [
            lambda: journal.append(file=file, actor="t", intent="i", before="", after="x"),
            lambda: journal.materialize(file),
            lambda: journal.rollback(file, 1),
            lambda: journal.exists(file),
            lambda: journal.inspect(file),
            lambda: journal.history(file),
            lambda: journal.verify(file),
        ]
        for call in calls:
            with pytest.raises(InvalidInput):
                call()
        assert list(temp_project.iterdir()) == []


class TestExistsInspect:
    """Tests for exists and inspect."""

    def test_exists(self, journal):
        """exists follows the journal file."""
        assert journal.exists("a.txt") is False
        record_chain(journal, "a.txt", VERSIONS[:1])
        assert journal.exists("a.txt") is True

    def test_inspect_absent(self, journal):
        """Inspecting an unknown file is not an error."""
        assert journal.inspect("a.txt").to_dict() == {
            "exists": False, "count": 0, "min_seq": None, "max_seq": None,
        }

    def test_inspect_tolerates_corruption(self, journal):
        """inspect skips records that would fail a replay."""
        record_chain(journal, "a.txt", VERSIONS)
        with open(journal.store.journal_path("a.txt"), "a") as f:
            f.write("garbage\n")
        summary = journal.inspect("a.txt")
        assert (summary.count, summary.max_seq) == (3, 3)


class TestHistoryVerify:
    """Tests for history, verify and content_at."""

    def test_history(self, journal):
        """History lists actor and intent per seq."""
        journal.append(file="a.txt", actor="alice", intent="create", before="", after=VERSIONS[0])
        journal.append(file="a.txt", actor="bob", intent="extend", before=VERSIONS[0], after=VERSIONS[1])
        history = journal.history("a.txt")
        assert [(h.seq, h.actor, h.intent) for h in history] == [(1, "alice", "create"), (2, "bob", "extend")]
        assert history[1].base_hash == content_hash(VERSIONS[0])

    def test_history_empty(self, journal):
        """No journal, no history."""
        assert journal.history("a.txt") == []

    def test_verify_writes_nothing(self, journal, temp_project):
        """verify reports the head and digest without writing the target."""
        record_chain(journal, "a.txt", VERSIONS)
        report = journal.verify("a.txt")
        assert report.head_seq == 3
        assert report.count == 3
        assert report.content_hash == content_hash(VERSIONS[-1])
        assert not (temp_project / "a.txt").exists()

    def test_verify_prefix(self, journal):
        """verify can stop at a seq."""
        record_chain(journal, "a.txt", VERSIONS)
        report = journal.verify("a.txt", seq=1)
        assert report.head_seq == 1
        assert report.count == 1
        assert report.content_hash == content_hash(VERSIONS[0])

    def test_verify_empty(self, journal):
        """Verifying a file without a journal reports nothing replayed."""
        report = journal.verify("a.txt")
        assert (report.count, report.head_seq) == (0, None)
        assert report.content_hash == content_hash("")

    def test_verify_counts_replayed_entries(self, journal):
        """count and head_seq describe the entries that were checked."""
        record_chain(journal, "a.txt", VERSIONS)
        with patch.object(journal.store, "inspect", side_effect=AssertionError("second read")):
            report = journal.verify("a.txt")
        assert (report.count, report.head_seq) == (3, 3)

    def test_verify_is_always_strict(self, journal):
        """verify checks hashes even on a non-strict journal."""
        record_chain(journal, "a.txt", VERSIONS)
        records = journal_records(journal, "a.txt")
        records[2]["base_hash"] = "0" * 64
        rewrite_records(journal, "a.txt", records)
        with pytest.raises(StrictReplayMismatch):
            journal.verify("a.txt")

    def test_content_at(self, journal, temp_project):
        """content_at returns content without writing."""
        record_chain(journal, "a.txt", VERSIONS)
        assert journal.content_at("a.txt") == VERSIONS[-1]
        assert journal.content_at("a.txt", seq=2) == VERSIONS[1]
        assert not (temp_project / "a.txt").exists()


class TestOpen:
    """Tests for open_diff_journal."""

    def test_option_mapping(self, temp_project):
        """A camelCase mapping opens a journal."""
        journal = open_diff_journal({"rootDir": str(temp_project), "strictReplay": True})
        assert journal.options.strict_replay is True
        assert journal.options.root_dir == Path(temp_project)

    def test_invalid_options_fail_before_io(self, tmp_path):
        """Invalid options raise InvalidInput and create nothing."""
        with pytest.raises(InvalidInput):
            open_diff_journal(root_dir=tmp_path / "root", journal_dir="../out")
        assert not (tmp_path / "root").exists()

    def test_missing_root(self):
        """rootDir is required."""
        with pytest.raises(InvalidInput):
            open_diff_journal()

    def test_options_are_frozen(self, journal):
        """Options cannot be changed on an open handle."""
        with pytest.raises(AttributeError):
            journal.options.strict_replay = True
