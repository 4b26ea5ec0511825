#!/usr/bin/env python3
"""
Key-Value Store
A persistent map with per-key TTL, shared across processes through one file

Implements:
- get(key) → value | None
- set(key, value, ttl=None)
- close()

File format (UTF-8 JSON):
    {"<key>": {"value": "<json-encoded value>", "exp_time": <unix timestamp>}}

Every set() rewrites the whole file, so this suits small to moderate key
counts. All keys share one lock.

The in-memory mirror is reloaded only when the file mtime moves past the
mtime it was loaded at. Two writes landing within one mtime tick of the
filesystem cannot be told apart.
"""

import json
import logging
import os
import time
from contextlib import contextmanager
from typing import IO, Any, Dict, Iterator, Optional

from .errors import CacheError, DirectoryCreateError, ResourceOpenError
from .file_ops import FILE_MODE, lock, unlock

logger = logging.getLogger(__name__)

DEFAULT_EXP_TIME = 60 * 60  # 1 hour


class KeyValueStore:
    """
    File-backed key-value store.

    The store owns an open handle on its file for its whole lifetime;
    call close() (or use it as a context manager) to release it.

    Raises from the constructor:
        DirectoryCreateError: the parent directory could not be created
        ResourceOpenError: the file could not be opened or created
    """

    def __init__(self, file_path: str, exp_time: int = DEFAULT_EXP_TIME):
        self.file_path = str(file_path)
        self.exp_time = exp_time

        self._handle = None
        self._data: Dict[str, Dict[str, Any]] = {}
        self._last_time = 0.0

        self._handle = self._open()
        try:
            with self._locked():
                self._load(force=True)
        except (CacheError, OSError) as e:
            logger.warning(f"Initial load of {self.file_path} failed: {e}")

        logger.info(f"KeyValueStore opened at {self.file_path} ({len(self._data)} entries)")

    def __enter__(self) -> "KeyValueStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get(self, key: str) -> Optional[Any]:
        """
        Get the value for `key`.

        Returns:
            The stored value, or None if the key is missing, expired, or the
            file could not be read
        """
        self._check_open()
        try:
            with self._locked():
                self._load()
                entry = self._data.get(key)
                now = time.time()
                serialized = (
                    entry["value"]
                    if _is_entry(entry) and entry["exp_time"] > now
                    else None
                )
        except (CacheError, OSError) as e:
            logger.warning(f"KeyValueStore get failed ({self.file_path}): {e}")
            return None

        if serialized is None:
            return None
        try:
            return json.loads(serialized)
        except ValueError:
            logger.debug(f"Undecodable value for key {key!r} in {self.file_path}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        """
        Store `value` under `key` for `ttl` seconds (defaults to exp_time).

        Returns:
            True if the file was rewritten, False if the write failed

        Raises:
            TypeError: value is not JSON-serializable
        """
        self._check_open()
        serialized = json.dumps(value, indent=4, ensure_ascii=False)
        if ttl is None:
            ttl = self.exp_time

        try:
            with self._locked():
                self._load()
                self._data[key] = {
                    "value": serialized,
                    "exp_time": time.time() + ttl,
                }
                self._save()
        except (CacheError, OSError) as e:
            logger.warning(f"KeyValueStore set failed ({self.file_path}): {e}")
            return False

        logger.debug(f"Stored key {key!r} (ttl={ttl}s)")
        return True

    def close(self) -> None:
        """Close the file handle. Safe to call more than once."""
        if self._handle is not None:
            self._handle.close()
            self._handle = None
            logger.debug(f"KeyValueStore closed ({self.file_path})")

    # -------------------------------------------------------------------------

    def _open(self) -> IO[str]:
        directory = os.path.dirname(os.path.abspath(self.file_path))
        if not os.path.isdir(directory):
            try:
                os.makedirs(directory, mode=0o755, exist_ok=True)
            except OSError as e:
                logger.error(f"Unable to create the directory: {directory}")
                raise DirectoryCreateError(directory, e) from e

        try:
            fd = os.open(self.file_path, os.O_RDWR | os.O_CREAT, FILE_MODE)
            return os.fdopen(fd, "r+", encoding="utf-8")
        except OSError as e:
            logger.error(f"Unable to open or create the file: {self.file_path}")
            raise ResourceOpenError(self.file_path, e) from e

    def _check_open(self) -> None:
        if self._handle is None:
            raise ValueError(f"KeyValueStore is closed: {self.file_path}")

    @contextmanager
    def _locked(self) -> Iterator[None]:
        """
        Hold the exclusive lock on the backing file.

        If the file was deleted or replaced while we held an old handle,
        reopen it so the lock and the writes land on the file others see.
        """
        while True:
            fd = self._handle.fileno()
            lock(fd)
            try:
                on_disk = os.stat(self.file_path)
            except FileNotFoundError:
                on_disk = None
            except OSError:
                unlock(fd)
                raise
            if on_disk is not None and os.path.samestat(on_disk, os.fstat(fd)):
                break

            unlock(fd)
            logger.info(f"Backing file {self.file_path} was replaced, reopening")
            # Keep the old handle if the reopen fails, so later calls can retry
            new_handle = self._open()
            self._handle.close()
            self._handle = new_handle
            self._last_time = 0.0
            self._data = {}

        try:
            yield
        finally:
            try:
                self._handle.flush()
            finally:
                unlock(fd)

    def _load(self, force: bool = False) -> None:
        """Reload the mirror if the file changed since it was last loaded."""
        mtime = os.fstat(self._handle.fileno()).st_mtime
        if not force and mtime <= self._last_time:
            return

        self._handle.seek(0)
        try:
            text = self._handle.read()
        except UnicodeDecodeError:
            text = ""
        self._last_time = mtime
        self._data = _decode_map(text)

    def _save(self) -> None:
        text = json.dumps(self._data, ensure_ascii=False)

        self._handle.seek(0)
        self._handle.truncate()
        self._handle.write(text)
        self._handle.flush()

        self._last_time = os.fstat(self._handle.fileno()).st_mtime


def _decode_map(text: str) -> Dict[str, Dict[str, Any]]:
    if not text.strip():
        return {}
    try:
        data = json.loads(text)
    except ValueError:
        logger.warning("Key-value file is not valid JSON, starting from an empty map")
        return {}
    if not isinstance(data, dict):
        logger.warning("Key-value file is not a JSON object, starting from an empty map")
        return {}
    return data


def _is_entry(entry: Any) -> bool:
    return (
        isinstance(entry, dict)
        and isinstance(entry.get("value"), str)
        and isinstance(entry.get("exp_time"), (int, float))
    )
