"""Validation of caller-supplied file paths."""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath, PureWindowsPath

from .config import JournalOptions
from .errors import InvalidInput


def normalize_file(file: object, operation: str) -> str:
    """Check a tracked-file path and return its normalized relative form.

    The path must be a non-empty relative path without '..' segments. The
    result uses forward slashes and no leading './'.

    Raises:
        InvalidInput: Naming the violated rule and the calling operation
    """
    if not isinstance(file, str) or not file.strip():
        raise InvalidInput(
            "'file' must be a non-empty string",
            rule="non_empty_string", operation=operation,
        )

    if "\x00" in file:
        raise InvalidInput(
            "'file' must not contain NUL characters",
            rule="invalid_character", operation=operation, file=file.replace("\x00", "\\x00"),
        )

    if os.path.isabs(file) or file.startswith(("/", "\\")) or PureWindowsPath(file).drive:
        raise InvalidInput(
            f"'file' must be a relative path: {file}",
            rule="absolute_path", operation=operation, file=file,
        )

    parts = PurePosixPath(file.replace("\\", "/")).parts
    if ".." in parts:
        raise InvalidInput(
            f"'file' must not contain '..': {file}",
            rule="parent_traversal", operation=operation, file=file,
        )

    normalized = "/".join(p for p in parts if p != ".")
    if not normalized:
        raise InvalidInput(
            f"'file' must name a file below the root: {file}",
            rule="non_empty_string", operation=operation, file=file,
        )
    return normalized


def guard_path(options: JournalOptions, file: object, operation: str) -> str:
    """Run every path rule, including containment in the journal directory.

    Returns:
        The normalized relative path
    """
    normalized = normalize_file(file, operation)

    root = options.get_root_path().resolve()
    journal_root = (root / options.journal_dir).resolve()
    target = (root / normalized).resolve()

    if target == journal_root or journal_root in target.parents:
        raise InvalidInput(
            f"'file' must not be inside the journal directory: {file}",
            rule="inside_journal_dir", operation=operation, file=normalized,
        )
    return normalized


def journal_file_path(options: JournalOptions, normalized: str) -> Path:
    """Path of the journal log for a normalized tracked-file path."""
    return options.get_journal_path() / f"{normalized}.log"


def target_file_path(options: JournalOptions, normalized: str) -> Path:
    """Path of the materialized file for a normalized tracked-file path."""
    return options.get_root_path() / normalized
