"""Textual patch codec used to record and replay changes.

Patches are unified diffs computed with :mod:`difflib`. Lines are split on
``"\\n"`` only so that other line-break characters survive inside a line, and
a last line without terminator is flagged with the usual
``\\ No newline at end of file`` marker.
"""

from __future__ import annotations

import difflib
import re
from typing import Optional, Protocol

NO_NEWLINE_MARKER = "\\ No newline at end of file"
CONTEXT_LINES = 3

_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


class PatchCodec(Protocol):
    """Computes and applies textual patches."""

    def diff(self, before: str, after: str) -> str:
        """Patch turning ``before`` into ``after``; deterministic."""
        ...

    def apply(self, base: str, patch: str) -> Optional[str]:
        """Patched text, or None if the patch does not apply cleanly."""
        ...


def split_lines(text: str) -> list[str]:
    """Split on newlines only, keeping the terminators."""
    if not text:
        return []
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _format_range(start: int, stop: int) -> str:
    beginning = start + 1
    length = stop - start
    if length == 1:
        return str(beginning)
    if not length:
        beginning -= 1
    return f"{beginning},{length}"


def _emit(out: list[str], prefix: str, line: str) -> None:
    if line.endswith("\n"):
        out.append(prefix + line)
    else:
        out.append(prefix + line + "\n")
        out.append(NO_NEWLINE_MARKER + "\n")


class UnifiedDiffCodec:
    """Unified-diff patch codec."""

    def __init__(self, context: int = CONTEXT_LINES, label: str = "file"):
        self.context = context
        self.label = label

    def diff(self, before: str, after: str) -> str:
        a = split_lines(before)
        b = split_lines(after)
        if a == b:
            return ""

        out = [f"--- a/{self.label}\n", f"+++ b/{self.label}\n"]
        matcher = difflib.SequenceMatcher(None, a, b, autojunk=False)
        for group in matcher.get_grouped_opcodes(self.context):
            first, last = group[0], group[-1]
            old_range = _format_range(first[1], last[2])
            new_range = _format_range(first[3], last[4])
            out.append(f"@@ -{old_range} +{new_range} @@\n")
            for tag, i1, i2, j1, j2 in group:
                if tag == "equal":
                    for line in a[i1:i2]:
                        _emit(out, " ", line)
                    continue
                if tag in ("replace", "delete"):
                    for line in a[i1:i2]:
                        _emit(out, "-", line)
                if tag in ("replace", "insert"):
                    for line in b[j1:j2]:
                        _emit(out, "+", line)
        return "".join(out)

    def apply(self, base: str, patch: str) -> Optional[str]:
        hunks = _parse_hunks(patch)
        if hunks is None:
            return None

        source = split_lines(base)
        result: list[str] = []
        cursor = 0

        for old_start, old_count, new_count, body in hunks:
            # An empty old range names the line after which to insert
            pos = old_start - 1 if old_count else old_start
            if pos < cursor or pos > len(source):
                return None
            result.extend(source[cursor:pos])

            seen_old = seen_new = 0
            for op, line in body:
                if op in (" ", "-"):
                    if pos >= len(source) or source[pos] != line:
                        return None
                    pos += 1
                    seen_old += 1
                if op in (" ", "+"):
                    result.append(line)
                    seen_new += 1

            if seen_old != old_count or seen_new != new_count:
                return None
            cursor = pos

        result.extend(source[cursor:])
        return "".join(result)


def _parse_hunks(patch: str) -> Optional[list[tuple[int, int, int, list[tuple[str, str]]]]]:
    """Parse patch text into (old_start, old_count, new_count, body) hunks."""
    lines = [line[:-1] if line.endswith("\n") else line for line in split_lines(patch)]
    hunks: list[tuple[int, int, int, list[tuple[str, str]]]] = []
    body: Optional[list[tuple[str, str]]] = None

    for line in lines:
        if body is None and (line.startswith("--- ") or line.startswith("+++ ")):
            continue

        match = _HUNK_HEADER.match(line)
        if match:
            old_start, old_count, _new_start, new_count = match.groups()
            body = []
            hunks.append((
                int(old_start),
                1 if old_count is None else int(old_count),
                1 if new_count is None else int(new_count),
                body,
            ))
            continue

        if body is None:
            return None

        if line == NO_NEWLINE_MARKER:
            if not body or not body[-1][1].endswith("\n"):
                return None
            op, text = body[-1]
            body[-1] = (op, text[:-1])
            continue

        if not line or line[0] not in " -+":
            return None
        body.append((line[0], line[1:] + "\n"))

    return hunks
