"""
Lock-scoped file operations.

Every read or write of a shared cache file goes through here. The handle is
opened, an exclusive advisory lock (flock) is taken, the caller's operation
runs, and the lock is released and the handle closed on every exit path.

Lock acquisition blocks with no timeout.
"""

import fcntl
import logging
import os
from contextlib import contextmanager
from typing import Any, Callable, IO, Iterator, Optional

from .errors import LockAcquisitionError, ResourceOpenError

logger = logging.getLogger(__name__)

FILE_MODE = 0o644


def _open(path: str, mode: str) -> IO[str]:
    if mode == "r":
        return open(path, "r", encoding="utf-8")
    if mode == "w":
        # Truncation is deferred until the lock is held
        fd = os.open(path, os.O_WRONLY | os.O_CREAT, FILE_MODE)
        return os.fdopen(fd, "w", encoding="utf-8")
    if mode == "r+":
        fd = os.open(path, os.O_RDWR | os.O_CREAT, FILE_MODE)
        return os.fdopen(fd, "r+", encoding="utf-8")
    raise ValueError(f"Unsupported mode: {mode!r}")


def lock(fd: int) -> None:
    """Take an exclusive lock on a file descriptor, blocking until granted."""
    try:
        fcntl.flock(fd, fcntl.LOCK_EX)
    except OSError as e:
        raise LockAcquisitionError(f"flock failed on fd {fd}: {e}") from e


def unlock(fd: int) -> None:
    try:
        fcntl.flock(fd, fcntl.LOCK_UN)
    except OSError as e:
        logger.warning(f"flock unlock failed on fd {fd}: {e}")


@contextmanager
def locked_file(path: str, mode: str = "r") -> Iterator[IO[str]]:
    """
    Open `path` and hold an exclusive lock on it for the body of the block.

    Modes:
        "r"  read an existing file
        "w"  write, creating if needed; truncated after the lock is held
        "r+" read and write, creating if needed, never truncated

    Raises:
        ResourceOpenError: the file could not be opened
        LockAcquisitionError: the lock could not be taken
    """
    try:
        handle = _open(path, mode)
    except OSError as e:
        raise ResourceOpenError(path, e) from e

    try:
        lock(handle.fileno())
        try:
            if mode == "w":
                handle.seek(0)
                handle.truncate()
            yield handle
        finally:
            # Buffered writes must land before other processes can get in
            try:
                if mode != "r":
                    handle.flush()
            finally:
                unlock(handle.fileno())
    finally:
        handle.close()


@contextmanager
def locked_directory(path: str) -> Iterator[str]:
    """Hold an exclusive lock on a directory handle for the body of the block."""
    try:
        fd = os.open(path, os.O_RDONLY | getattr(os, "O_DIRECTORY", 0))
    except OSError as e:
        raise ResourceOpenError(path, e) from e

    try:
        lock(fd)
        try:
            yield path
        finally:
            unlock(fd)
    finally:
        os.close(fd)


def operate_file_atomically(path: str, mode: str, op: Callable[[IO[str]], Any]) -> Optional[Any]:
    """
    Run `op(handle)` under an exclusive lock on `path`.

    Returns:
        The result of `op`, or None if the file could not be opened or locked.
        Exceptions raised by `op` propagate after the lock is released.
    """
    try:
        with locked_file(path, mode) as handle:
            return op(handle)
    except (ResourceOpenError, LockAcquisitionError) as e:
        logger.debug(f"Locked operation skipped: {e}")
        return None


def operate_directory_atomically(path: str, op: Callable[[str], Any]) -> Optional[Any]:
    """Run `op(path)` while holding an exclusive lock on the directory."""
    try:
        with locked_directory(path) as locked_path:
            return op(locked_path)
    except (ResourceOpenError, LockAcquisitionError) as e:
        logger.debug(f"Locked directory operation skipped: {e}")
        return None
