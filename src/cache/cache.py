#!/usr/bin/env python3
"""
Cache Store
On-disk memoization of a producer, one JSON file per parameter set

Implements:
- get_data(params) → data | None
- clear_expired() → removed count
- last_error → last producer failure message
- get_stats() → {hits, misses, writes, producer_failures, evictions, ...}
"""

import json
import logging
import os
import time
from typing import Any, Callable, Dict, Optional

from jsonschema import Draft7Validator

from .errors import DeserializeError, ProducerError
from .file_ops import operate_file_atomically
from .key_generator import CacheKeyGenerator, normalize_params
from .sweeper import sweep_directory

logger = logging.getLogger(__name__)

DEFAULT_EXP_TIME = 24 * 60 * 60  # 24 hours
DEFAULT_ERROR = "API request failed"

ENTRY_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["params", "data"],
    "properties": {
        "params": {"type": "object"},
    },
}

_validator = Draft7Validator(ENTRY_SCHEMA)

Producer = Callable[[Dict[str, Any]], Any]


def decode_entry(text: str) -> Dict[str, Any]:
    """
    Parse the contents of an entry file.

    Raises:
        DeserializeError: not JSON, or not shaped like {"params": {...}, "data": ...}
    """
    try:
        entry = json.loads(text)
    except ValueError as e:
        raise DeserializeError(f"entry is not valid JSON: {e}") from e

    errors = sorted(_validator.iter_errors(entry), key=lambda e: e.path)
    if errors:
        messages = ", ".join(error.message for error in errors)
        raise DeserializeError(f"entry validation failed: {messages}")
    return entry


def encode_entry(params: Dict[str, Any], data: Any) -> str:
    return json.dumps({"data": data, "params": params}, indent=4, ensure_ascii=False)


class CacheStore:
    """
    Get-or-produce cache backed by a directory of JSON files.

    Design principles:
    - Graceful degradation: any file problem is a miss, never an error
    - Params are stored next to the data and compared on read, so a key
      collision or foreign file can never return the wrong data
    - Every file access holds an exclusive lock on that file
    - Failures are not cached; the next call asks the producer again

    Two processes missing on the same params at once will both call the
    producer and both write. The last write wins. Writes never interleave.
    """

    def __init__(self, cache_dir: str, producer: Producer, exp_time: int = DEFAULT_EXP_TIME,
                 key_generator: Optional[CacheKeyGenerator] = None):
        """
        Initialize the store.

        Args:
            cache_dir: Directory holding the entry files (created if missing)
            producer: Called with params on a miss; returns data, or None /
                raises ProducerError on failure
            exp_time: Entry lifetime in seconds, measured from the file mtime
            key_generator: Override key derivation (defaults to md5)
        """
        self.cache_dir = str(cache_dir)
        self.exp_time = exp_time
        self._producer = producer
        self._keygen = key_generator or CacheKeyGenerator()
        self._last_error: Optional[str] = None

        try:
            os.makedirs(self.cache_dir, mode=0o755, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create cache directory {self.cache_dir}: {e}")

        self.stats = {
            "hits": 0,
            "misses": 0,
            "writes": 0,
            "producer_failures": 0,
            "evictions": 0,
            "start_time": time.time(),
        }

        logger.info(f"CacheStore initialized at {self.cache_dir} (exp_time={exp_time}s)")

    @property
    def last_error(self) -> Optional[str]:
        """Message from the most recent producer failure, or None."""
        return self._last_error

    def get_data(self, params: Dict[str, Any]) -> Optional[Any]:
        """
        Return cached data for params, producing and caching it on a miss.

        Returns:
            Cached or freshly produced data, or None if the producer failed
                (including when it raised; see last_error)

        Raises:
            TypeError: params are not JSON-serializable
        """
        self.clear_expired()

        params = normalize_params(params)
        key = self._keygen.generate_cache_key(params)

        data = self._read(key, params)
        if data is not None:
            self.stats["hits"] += 1
            logger.debug(f"Cache hit (key={key})")
            return data

        self.stats["misses"] += 1
        logger.debug(f"Cache miss (key={key})")

        data = self._produce(params)
        if data is not None:
            self._write(key, params, data)
        return data

    def clear_expired(self) -> int:
        """Remove entry files older than exp_time. Returns the number removed."""
        removed = sweep_directory(self.cache_dir, self.exp_time) or 0
        self.stats["evictions"] += removed
        return removed

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_requests = self.stats["hits"] + self.stats["misses"]
        hit_rate = (self.stats["hits"] / total_requests * 100) if total_requests > 0 else 0

        try:
            cache_entries = sum(1 for entry in os.scandir(self.cache_dir) if entry.is_file())
        except OSError:
            cache_entries = 0

        return {
            "hits": self.stats["hits"],
            "misses": self.stats["misses"],
            "hit_rate_percent": round(hit_rate, 1),
            "total_requests": total_requests,
            "writes": self.stats["writes"],
            "producer_failures": self.stats["producer_failures"],
            "evictions": self.stats["evictions"],
            "cache_entries": cache_entries,
            "uptime_seconds": int(time.time() - self.stats["start_time"]),
        }

    # -------------------------------------------------------------------------

    def _path(self, key: str) -> str:
        return os.path.join(self.cache_dir, f"{key}.txt")

    def _read(self, key: str, params: Dict[str, Any]) -> Optional[Any]:
        path = self._path(key)
        if not os.path.exists(path):
            return None

        try:
            text = operate_file_atomically(path, "r", lambda fh: fh.read())
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cache read error ({path}): {e}")
            return None
        if text is None:
            return None

        try:
            entry = decode_entry(text)
        except DeserializeError as e:
            logger.debug(f"Ignoring unreadable entry {path}: {e}")
            return None

        if entry["params"] != params:
            logger.debug(f"Params mismatch in {path}, treating as miss")
            return None
        return entry["data"]

    def _produce(self, params: Dict[str, Any]) -> Optional[Any]:
        try:
            data = self._producer(params)
        except ProducerError as e:
            data = None
            self._last_error = str(e) or DEFAULT_ERROR
        except Exception as e:
            data = None
            self._last_error = f"{type(e).__name__}: {e}"
            logger.exception(f"Producer raised unexpectedly for {params}")
        else:
            if data is None:
                self._last_error = DEFAULT_ERROR
            else:
                self._last_error = None

        if data is None:
            self.stats["producer_failures"] += 1
            logger.warning(f"Producer failed for {params}: {self._last_error}")
        return data

    def _write(self, key: str, params: Dict[str, Any], data: Any) -> bool:
        path = self._path(key)
        try:
            content = encode_entry(params, data)
        except (TypeError, ValueError) as e:
            logger.warning(f"Not caching unserializable data for {params}: {e}")
            return False

        try:
            written = operate_file_atomically(path, "w", lambda fh: fh.write(content))
        except OSError as e:
            logger.warning(f"Cache write error ({path}): {e}")
            return False
        if written is None:
            logger.warning(f"Cache write skipped, could not open or lock {path}")
            return False

        self.stats["writes"] += 1
        logger.debug(f"Cached entry (key={key}, bytes={written})")
        return True
