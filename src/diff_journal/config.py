"""Configuration loading for the diff journal.

Options can be passed directly, built from a plain dict (the camelCase keys
used by other clients are accepted alongside snake_case), or read from a
config file in the root directory:

1. diff_journal.toml / .diff_journal.toml - ``[journal]`` table
2. diff_journal.json / .diff_journal.json - ``"journal"`` object

Options are validated once, before the journal touches the filesystem.
"""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Any, Optional

from .errors import InvalidInput

DEFAULT_JOURNAL_DIR = ".journal"
DEFAULT_LOCK_ATTEMPTS = 50
DEFAULT_LOCK_DELAY = 0.05

# Accepted option keys -> dataclass field names
OPTION_KEYS = {
    "rootDir": "root_dir",
    "root_dir": "root_dir",
    "journalDir": "journal_dir",
    "journal_dir": "journal_dir",
    "strictReplay": "strict_replay",
    "strict_replay": "strict_replay",
    "snapshots": "snapshots",
    "lockAttempts": "lock_attempts",
    "lock_attempts": "lock_attempts",
    "lockDelay": "lock_delay",
    "lock_delay": "lock_delay",
}

CONFIG_CANDIDATES = [
    "diff_journal.toml",
    "diff_journal.json",
    ".diff_journal.toml",
    ".diff_journal.json",
]


def _invalid(message: str, rule: str) -> InvalidInput:
    return InvalidInput(message, rule=rule, operation="open")


@dataclass(frozen=True)
class JournalOptions:
    """Immutable configuration of one opened journal."""

    root_dir: Path
    journal_dir: str = DEFAULT_JOURNAL_DIR
    strict_replay: bool = False
    snapshots: bool = False

    # Lock retry tuning (attempts, seconds between attempts)
    lock_attempts: int = DEFAULT_LOCK_ATTEMPTS
    lock_delay: float = DEFAULT_LOCK_DELAY

    def validate(self) -> "JournalOptions":
        """Check every option; raises InvalidInput on the first violation."""
        if not isinstance(self.root_dir, (str, PurePath)) or not str(self.root_dir):
            raise _invalid("'root_dir' is required and must be a path", "root_dir")

        if not isinstance(self.journal_dir, str) or not self.journal_dir.strip():
            raise _invalid("'journal_dir' must be a non-empty string", "journal_dir")
        journal_dir = PurePath(self.journal_dir)
        if journal_dir.is_absolute():
            raise _invalid("'journal_dir' must be a relative path", "absolute_path")
        if ".." in journal_dir.parts:
            raise _invalid("'journal_dir' must not contain '..'", "parent_traversal")
        if journal_dir.parts in ((), (".",)):
            raise _invalid("'journal_dir' must name a subdirectory", "journal_dir")

        for name in ("strict_replay", "snapshots"):
            if not isinstance(getattr(self, name), bool):
                raise _invalid(f"'{name}' must be a boolean", name)

        if isinstance(self.lock_attempts, bool) or not isinstance(self.lock_attempts, int) \
                or self.lock_attempts < 1:
            raise _invalid("'lock_attempts' must be a positive integer", "lock_attempts")
        if isinstance(self.lock_delay, bool) or not isinstance(self.lock_delay, (int, float)) \
                or self.lock_delay < 0:
            raise _invalid("'lock_delay' must be a non-negative number", "lock_delay")

        return self

    def get_root_path(self) -> Path:
        return Path(self.root_dir)

    def get_journal_path(self) -> Path:
        return Path(self.root_dir) / self.journal_dir


def options_from_dict(data: dict[str, Any], root_dir: Optional[Path] = None) -> JournalOptions:
    """Convert dictionary to validated JournalOptions.

    Args:
        data: Option mapping; camelCase and snake_case keys are accepted
        root_dir: Used when the mapping carries no root directory

    Raises:
        InvalidInput: On unknown keys or invalid values
    """
    if not isinstance(data, dict):
        raise _invalid("options must be a mapping", "options")

    fields: dict[str, Any] = {}
    for key, value in data.items():
        if key not in OPTION_KEYS:
            raise _invalid(f"unknown option '{key}'", "unknown_option")
        fields[OPTION_KEYS[key]] = value

    if "root_dir" not in fields:
        if root_dir is None:
            raise _invalid("'root_dir' is required", "root_dir")
        fields["root_dir"] = root_dir

    root = fields["root_dir"]
    if isinstance(root, str) and root:
        fields["root_dir"] = Path(root)

    return JournalOptions(**fields).validate()


def _journal_table(data: Any, path: Path) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise _invalid(f"{path}: top level must be a table", "config_file")
    table = data.get("journal", {})
    if not isinstance(table, dict):
        raise _invalid(f"{path}: 'journal' must be a table", "config_file")
    return table


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load the journal table from a TOML file."""
    with open(path, "rb") as f:
        data = tomllib.load(f)
    return _journal_table(data, path)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load the journal object from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return _journal_table(data, path)


def find_config_file(root_dir: Path) -> Optional[Path]:
    """Find the first config file present in the root directory."""
    for name in CONFIG_CANDIDATES:
        path = root_dir / name
        if path.exists():
            return path

    return None


def load_config(root_dir: Path, config_path: Optional[Path] = None) -> JournalOptions:
    """Load journal options for a root directory.

    Args:
        root_dir: Root directory holding the tracked files
        config_path: Optional explicit path to config file

    Returns:
        Validated JournalOptions (defaults when no config file exists)
    """
    if config_path is None:
        config_path = find_config_file(root_dir)

    if config_path is None:
        return JournalOptions(root_dir=root_dir).validate()

    suffix = config_path.suffix.lower()

    if suffix not in (".toml", ".json"):
        raise _invalid(f"Unsupported config file type: {suffix}", "config_file")

    try:
        if suffix == ".toml":
            data = load_toml_config(config_path)
        else:
            data = load_json_config(config_path)
    except ValueError as exc:
        # TOMLDecodeError, JSONDecodeError and UnicodeDecodeError
        raise _invalid(f"cannot parse {config_path}: {exc}", "config_file") from exc

    # A config file cannot relocate the root it was found in
    data = {k: v for k, v in data.items() if OPTION_KEYS.get(k) != "root_dir"}
    return options_from_dict(data, root_dir=root_dir)
