"""Diff Journal quickstart.

Records two changes to example.txt, materializes it, rolls back to the first
change and prints the journal summary. Run from an empty directory.
"""

from pathlib import Path

from diff_journal import open_diff_journal

WORKSPACE_DIR = Path(".")
FILE = "example.txt"
ACTOR = "quickstart"

journal = open_diff_journal(
    root_dir=WORKSPACE_DIR,
    journal_dir=".journal",
    strict_replay=True,
    snapshots=True,
)


def append_change(current, intent, compute_next):
    after = compute_next(current)
    journal.append(file=FILE, actor=ACTOR, intent=intent, before=current, after=after)
    return after


current = ""
current = append_change(current, "initial content", lambda t: "Hello world\n")
current = append_change(current, "add a second line", lambda t: t + "Nice to meet you.\n")

journal.materialize(FILE)
print("=== CURRENT ===")
print((WORKSPACE_DIR / FILE).read_text(encoding="utf-8"))

journal.rollback(FILE, seq=1)
print("=== ROLLBACK (seq=1) ===")
print((WORKSPACE_DIR / FILE).read_text(encoding="utf-8"))

print("=== INSPECT ===")
print(journal.inspect(FILE).to_dict())
