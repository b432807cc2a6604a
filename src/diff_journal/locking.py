"""Lock markers and file write helpers for concurrent access safety.

Appends to one journal are serialized across processes by a marker file
created with exclusive-create semantics. Existence of the marker is the whole
signal; it holds the writer's pid only as a debugging aid.
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Generator, Optional

import portalocker

from .config import DEFAULT_LOCK_ATTEMPTS, DEFAULT_LOCK_DELAY
from .errors import CorruptedJournal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry policy for lock acquisition."""
    attempts: int = DEFAULT_LOCK_ATTEMPTS
    delay: float = DEFAULT_LOCK_DELAY
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)


def lock_path_for(journal_path: Path) -> Path:
    """Lock marker path for a journal file."""
    return journal_path.with_name(journal_path.name + ".lock")


def acquire(lock_path: Path, policy: RetryPolicy = RetryPolicy(), file: Optional[str] = None) -> int:
    """Create the lock marker, retrying while another holder owns it.

    Args:
        lock_path: Marker to create
        policy: Attempt bound and inter-attempt delay
        file: Tracked file, for error context

    Returns:
        Open descriptor of the marker

    Raises:
        CorruptedJournal: On any I/O error other than a conflict, or when
            every attempt found the marker present
    """
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise CorruptedJournal(
            f"cannot create lock directory {lock_path.parent}: {exc}",
            operation="lock", file=file, path=str(lock_path),
        ) from exc

    for attempt in range(1, policy.attempts + 1):
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            if attempt < policy.attempts:
                policy.sleep(policy.delay)
            continue
        except OSError as exc:
            raise CorruptedJournal(
                f"cannot create lock {lock_path}: {exc}",
                operation="lock", file=file, path=str(lock_path),
            ) from exc

        try:
            os.write(fd, f"{os.getpid()}\n".encode("ascii"))
        except OSError as exc:
            release(fd, lock_path, pending=exc, file=file)
            raise CorruptedJournal(
                f"cannot write lock {lock_path}: {exc}",
                operation="lock", file=file, path=str(lock_path),
            ) from exc
        logger.debug("Acquired lock %s after %d attempt(s)", lock_path, attempt)
        return fd

    logger.warning("Lock %s still held after %d attempts", lock_path, policy.attempts)
    raise CorruptedJournal(
        f"could not acquire lock {lock_path} after {policy.attempts} attempts",
        operation="lock", file=file, path=str(lock_path), attempts=policy.attempts,
    )


def release(
    fd: Optional[int],
    lock_path: Path,
    pending: Optional[BaseException] = None,
    file: Optional[str] = None,
) -> None:
    """Close the marker descriptor and remove the marker.

    A marker that is already gone counts as released. Any other failure is
    raised unless ``pending`` holds an earlier error, which takes priority.
    """
    failure: Optional[OSError] = None

    if fd is not None:
        try:
            os.close(fd)
        except OSError as exc:
            failure = exc

    try:
        os.unlink(lock_path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        failure = failure or exc

    if failure is None:
        logger.debug("Released lock %s", lock_path)
        return

    if pending is not None:
        logger.warning("Failed to release lock %s while handling %r: %s", lock_path, pending, failure)
        return

    raise CorruptedJournal(
        f"cannot release lock {lock_path}: {failure}",
        operation="unlock", file=file, path=str(lock_path),
    ) from failure


@contextmanager
def lock_marker(
    lock_path: Path,
    policy: RetryPolicy = RetryPolicy(),
    file: Optional[str] = None,
) -> Generator[None, None, None]:
    """Hold the lock marker for the duration of the block.

    Raises:
        CorruptedJournal: If the lock cannot be acquired or released
    """
    fd = acquire(lock_path, policy, file=file)
    try:
        yield
    except BaseException as exc:
        release(fd, lock_path, pending=exc, file=file)
        raise
    release(fd, lock_path, file=file)


def is_locked(lock_path: Path, file: Optional[str] = None) -> bool:
    """Point-in-time check for a lock marker.

    Raises:
        CorruptedJournal: If the marker's presence cannot be determined
    """
    try:
        os.lstat(lock_path)
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise CorruptedJournal(
            f"cannot check lock {lock_path}: {exc}",
            operation="lock", file=file, path=str(lock_path),
        ) from exc
    return True


def locked_append(path: Path, text: str, encoding: str = "utf-8") -> None:
    """Append text to a file under an exclusive OS lock, flushed to disk.

    Args:
        path: File to append to (parent directories are created)
        text: Complete record, including its line terminator
        encoding: Text encoding
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "a", encoding=encoding, newline="") as f:
        portalocker.lock(f, portalocker.LOCK_EX)
        try:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        finally:
            portalocker.unlock(f)


@contextmanager
def atomic_write(path: Path, encoding: str = "utf-8") -> Generator:
    """Write a text file atomically.

    Writes to a temporary file then renames to target path.

    Args:
        path: Target file path
        encoding: Text encoding

    Yields:
        File handle for writing
    """
    tmp_path = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(tmp_path, "w", encoding=encoding, newline="") as f:
            yield f
            f.flush()
            os.fsync(f.fileno())

        os.replace(tmp_path, path)

    except BaseException:
        # Clean up temp file on failure
        if tmp_path.exists():
            tmp_path.unlink()
        raise
