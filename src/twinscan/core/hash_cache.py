"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/hash_cache.py
Persistent cross-run cache of full-content hashes.

The cache is an optimization only: a missing or corrupt file means an empty
cache, a failed flush means the next run hashes again. Nothing here may
change which files are reported as duplicates.

File format (UTF-8, one record per line):
    path|size|mtime-ticks|hash
"""

import logging
import os
import sys
import tempfile
import threading
from collections import OrderedDict
from typing import Optional, Dict, Union

from twinscan.core.interfaces import HashStore
from twinscan.core.models import CacheEntry

logger = logging.getLogger(__name__)

APP_DIR_NAME = "twinscan"
CACHE_FILE_NAME = "hash_cache.db"
MAX_CACHE_ENTRIES = 100_000


def default_cache_path() -> str:
    """Per-user cache location for the current platform."""
    if sys.platform == "win32":
        base = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA") or os.path.expanduser("~")
    elif sys.platform == "darwin":
        base = os.path.join(os.path.expanduser("~"), "Library", "Caches")
    else:
        base = os.environ.get("XDG_CACHE_HOME") or os.path.join(os.path.expanduser("~"), ".cache")
    return os.path.join(base, APP_DIR_NAME, CACHE_FILE_NAME)


class HashCache(HashStore):
    """
    Thread-safe path -> (size, mtime, hash) store with explicit
    load/flush lifecycle.

    Entries are kept in recency order; when the store grows past
    `max_entries` the least recently used ones are not persisted.
    A cache created with `path=None` lives in memory only.
    """

    def __init__(self, path: Optional[Union[str, os.PathLike]] = None, max_entries: int = MAX_CACHE_ENTRIES):
        if max_entries < 1:
            raise ValueError("Cache must hold at least one entry")
        self.path = os.fspath(path) if path is not None else None
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._dirty = False
        self._version = 0
        self._loaded = False
        self._stats = {"hits": 0, "misses": 0, "stores": 0, "skipped_records": 0}

    @property
    def loaded(self) -> bool:
        return self._loaded

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def load(self) -> int:
        """
        Reads the persisted records, replacing the in-memory state.
        Malformed records are skipped. Returns the number of entries loaded.
        """
        with self._lock:
            self._entries.clear()
            self._dirty = False
            self._loaded = True
            if self.path is None or not os.path.exists(self.path):
                return 0

            skipped = 0
            try:
                with open(self.path, "r", encoding="utf-8", errors="surrogateescape", newline="\n") as f:
                    for line in f:
                        entry = CacheEntry.from_record(line)
                        if entry is None:
                            if line.strip():
                                skipped += 1
                                logger.debug(f"Skipping malformed cache record: {line[:120]!r}")
                            continue
                        self._entries[entry.path] = entry
                        self._entries.move_to_end(entry.path)
            except OSError as e:
                logger.warning(f"Could not read hash cache {self.path}: {e}")

            self._stats["skipped_records"] += skipped
            logger.debug(f"Loaded {len(self._entries)} cache entries from {self.path} ({skipped} skipped)")
            return len(self._entries)

    def lookup(self, path: str, size: int, mtime: int) -> Optional[str]:
        """Returns the cached hash if size and mtime match exactly, else None."""
        with self._lock:
            entry = self._entries.get(path)
            if entry is None or not entry.matches(size, mtime):
                self._stats["misses"] += 1
                return None
            self._entries.move_to_end(path)
            self._stats["hits"] += 1
            return entry.hash

    def store(self, path: str, size: int, mtime: int, hash_value: str) -> None:
        entry = CacheEntry(path=path, size=size, mtime=mtime, hash=hash_value)
        with self._lock:
            if self._entries.get(path) != entry:
                self._mark_dirty()
            self._entries[path] = entry
            self._entries.move_to_end(path)
            self._stats["stores"] += 1

    def invalidate(self, path: str) -> None:
        with self._lock:
            if self._entries.pop(path, None) is not None:
                self._mark_dirty()

    def _mark_dirty(self) -> None:
        self._dirty = True
        self._version += 1

    def flush(self) -> bool:
        """
        Atomically rewrites the cache file. Failures are logged and swallowed.
        Returns True if the file is up to date afterwards.
        """
        if self.path is None:
            return True

        with self._lock:
            if not self._dirty:
                return True
            version = self._version
            entries = list(self._entries.values())[-self.max_entries:]

        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".hash_cache.", suffix=".tmp", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8", errors="surrogateescape", newline="\n") as f:
                for entry in entries:
                    if "\n" in entry.path or "\r" in entry.path:
                        continue
                    f.write(entry.to_record())
                    f.write("\n")
            os.replace(tmp_path, self.path)
            tmp_path = None
        except (OSError, UnicodeError) as e:
            logger.warning(f"Could not persist hash cache to {self.path}: {e}")
            return False
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass

        with self._lock:
            if self._version == version:
                self._dirty = False
        logger.debug(f"Flushed {len(entries)} cache entries to {self.path}")
        return True

    def clear(self) -> None:
        with self._lock:
            if self._entries:
                self._mark_dirty()
            self._entries.clear()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            result = dict(self._stats)
            result["entries"] = len(self._entries)
            return result
