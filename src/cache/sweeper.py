#!/usr/bin/env python3
"""
Cache Directory Sweeper

Deletes cache entry files older than a maximum age. The Cache Store runs
this on every lookup; the same sweep can be run from cron against a cache
directory shared by several processes.

Usage:
    python -m cache.sweeper <cache_dir> [max_age_sec]

Exit status is 0 when the sweep ran, 1 when the directory could not be
opened or locked, 2 on bad arguments.
"""

import logging
import os
import sys
import time
from typing import Optional

from .file_ops import operate_directory_atomically

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = 24 * 60 * 60  # 24 hours


def _remove_expired(cache_dir: str, max_age: float, now: float) -> int:
    removed = 0
    with os.scandir(cache_dir) as entries:
        for entry in entries:
            try:
                if not entry.is_file(follow_symlinks=False):
                    continue
                if now - entry.stat(follow_symlinks=False).st_mtime <= max_age:
                    continue
                os.unlink(entry.path)
                removed += 1
            except FileNotFoundError:
                # Removed by an external cleaner between scandir and unlink
                continue
            except OSError as e:
                logger.warning(f"Could not remove {entry.path}: {e}")
                continue
    return removed


def sweep_directory(cache_dir: str, max_age: float = DEFAULT_MAX_AGE,
                    now: Optional[float] = None) -> Optional[int]:
    """
    Remove every regular file directly under `cache_dir` whose age exceeds
    `max_age` seconds.

    The scan runs under an exclusive lock on the directory handle so that
    concurrent sweeps do not step on each other. Subdirectories are left
    alone.

    Returns:
        Number of files removed, or None if the directory could not be
        opened, locked or listed.
    """
    if now is None:
        now = time.time()

    try:
        removed = operate_directory_atomically(
            cache_dir, lambda path: _remove_expired(path, max_age, now)
        )
    except OSError as e:
        logger.warning(f"Sweep of {cache_dir} failed: {e}")
        return None

    if removed:
        logger.info(f"Swept {removed} expired entries from {cache_dir}")
    return removed


def main(argv=None) -> int:
    """Entry point for cron or manual invocation."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    args = sys.argv[1:] if argv is None else argv
    if not args or len(args) > 2:
        print(__doc__.strip(), file=sys.stderr)
        return 2

    cache_dir = args[0]
    try:
        max_age = float(args[1]) if len(args) > 1 else DEFAULT_MAX_AGE
    except ValueError:
        logger.error(f"Invalid max age: {args[1]}")
        return 2

    removed = sweep_directory(cache_dir, max_age)
    if removed is None:
        logger.error(f"Could not sweep cache directory: {cache_dir}")
        return 1

    logger.info(f"Sweep complete: {removed} removed from {cache_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
