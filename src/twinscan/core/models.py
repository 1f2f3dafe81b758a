"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/models.py
Data models and domain values for duplicate detection.

File snapshots, candidate buckets, emitted duplicate groups, per-item hash
results, run options and run statistics all live here so that every other
module speaks the same vocabulary.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Union, Callable, Tuple, Iterable
from enum import Enum
import logging
import os
import stat
import threading

from twinscan.utils.convert_utils import ConvertUtils

logger = logging.getLogger(__name__)

KB = 1024
MB = 1024 * KB

# Hash value shared by every zero-length file
EMPTY_HASH = "EMPTY"

DEFAULT_MIN_SIZE_BYTES = 256 * KB
DEFAULT_FORCE_VERIFY_ABOVE_BYTES = 32 * MB
DEFAULT_PARTIAL_HASH_THRESHOLD = 256 * KB
DEFAULT_PARTIAL_HASH_WINDOW = 64 * KB


# =============================
# Enums
# =============================

class Stage(str, Enum):
    """Pipeline stages, in execution order."""
    SIZE = "size"
    PARTIAL = "partial"
    FULL = "full"
    VERIFY = "verify"

    @property
    def display_name(self) -> str:
        """Human-readable name for progress output."""
        mapping = {
            Stage.SIZE: "Size grouping",
            Stage.PARTIAL: "Partial Hash",
            Stage.FULL: "Full Hash",
            Stage.VERIFY: "Byte Verification",
        }
        return mapping.get(self, self.value)

    @classmethod
    def get_all(cls):
        return [cls.SIZE, cls.PARTIAL, cls.FULL, cls.VERIFY]


class KeepRule(Enum):
    """
    Which file survives when a duplicate group is reduced to one copy.
    """
    FIRST = "first"
    NEWEST = "newest"
    OLDEST = "oldest"
    SHORTEST_PATH = "shortest-path"
    PREFERRED_FOLDER = "preferred-folder"

    @property
    def description(self) -> str:
        """Detailed description for help text."""
        mapping = {
            KeepRule.FIRST: "Keep the first file reported in each group",
            KeepRule.NEWEST: "Keep the most recently modified file in each group",
            KeepRule.OLDEST: "Keep the oldest file (by modification date) in each group",
            KeepRule.SHORTEST_PATH: "Keep the file with the shortest full path",
            KeepRule.PREFERRED_FOLDER: "Keep the file inside a preferred folder, if any",
        }
        return mapping.get(self, self.value)

    def __repr__(self) -> str:
        return self.value


# ======================
#  Core Data Models
# ======================

@dataclass(frozen=True)
class FileDescriptor:
    """
    Immutable snapshot of one candidate file taken at scan time.
    mtime is kept in integer nanoseconds so that cache validation can compare
    it exactly. file_id is (st_dev, st_ino) when the file was stat-ed; two
    spellings of one file share it.
    """
    path: str
    size: int  # in bytes
    mtime: int = 0  # st_mtime_ns
    file_id: Optional[Tuple[int, int]] = field(default=None, compare=False)

    def __post_init__(self):
        if not self.path:
            raise ValueError("File path cannot be empty")
        if self.size < 0:
            raise ValueError(f"File size cannot be negative: {self.size}")

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    @property
    def identity(self):
        """
        Key under which two descriptors denote the same file.
        Falls back to the normalised absolute path when no inode is known
        (st_ino is 0 on some Windows file systems).
        """
        if self.file_id is not None and self.file_id[1] != 0:
            return self.file_id
        return os.path.normcase(os.path.abspath(self.path))

    @classmethod
    def from_path(cls, path: Union[str, os.PathLike]) -> Optional["FileDescriptor"]:
        """
        Stat a path and build a descriptor.
        Returns None for missing, unreadable or non-regular files.
        """
        path = os.fspath(path)
        try:
            st = os.stat(path)
        except OSError as e:
            logger.debug(f"Could not stat {path}: {e}")
            return None
        if not stat.S_ISREG(st.st_mode):
            logger.debug(f"Skipping non-regular file: {path}")
            return None
        return cls(path=path, size=st.st_size, mtime=st.st_mtime_ns, file_id=(st.st_dev, st.st_ino))

    def __repr__(self):
        return f"<FileDescriptor path={self.path}, size={self.size}>"


@dataclass(frozen=True)
class CacheEntry:
    """
    Persisted hash of a file, valid only while size and mtime are unchanged.
    Record format: path|size|mtime-ticks|hash
    """
    path: str
    size: int
    mtime: int
    hash: str

    SEPARATOR = "|"

    def matches(self, size: int, mtime: int) -> bool:
        """True if the entry can be reused for a file with this size and mtime."""
        return self.size == size and self.mtime == mtime

    def to_record(self) -> str:
        return self.SEPARATOR.join((self.path, str(self.size), str(self.mtime), self.hash))

    @classmethod
    def from_record(cls, line: str) -> Optional["CacheEntry"]:
        """
        Parse one persisted record. The path is everything before the last
        three separators, so paths containing '|' survive.
        Returns None for malformed records.
        """
        parts = line.rstrip("\r\n").rsplit(cls.SEPARATOR, 3)
        if len(parts) != 4:
            return None
        path, size_str, mtime_str, hash_value = parts
        if not path or not hash_value:
            return None
        try:
            size = int(size_str)
            mtime = int(mtime_str)
        except ValueError:
            return None
        if size < 0:
            return None
        return cls(path=path, size=size, mtime=mtime, hash=hash_value)


@dataclass(frozen=True)
class HashResult:
    """
    Outcome of hashing one file: a value, a failure reason, or a skip
    caused by cancellation. Stages branch on this instead of on exceptions.
    """
    value: Optional[str] = None
    error: Optional[str] = None
    cancelled: bool = False
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.value is not None

    @classmethod
    def success(cls, value: str, from_cache: bool = False) -> "HashResult":
        return cls(value=value, from_cache=from_cache)

    @classmethod
    def failure(cls, reason: str) -> "HashResult":
        return cls(error=reason)

    @classmethod
    def skipped(cls) -> "HashResult":
        return cls(cancelled=True)


@dataclass
class CandidateGroup:
    """
    A bucket of files that are still potential duplicates.
    All members share the same size and every key refined so far.
    """
    size: int
    files: List[FileDescriptor]

    @property
    def duplicate_count(self) -> int:
        return len(self.files)

    def add_file(self, file: FileDescriptor) -> None:
        if file.size != self.size:
            raise ValueError("Cannot add file with different size to a group.")
        self.files.append(file)

    def is_duplicate(self) -> bool:
        """True if this bucket contains at least two files."""
        return self.duplicate_count >= 2

    def __repr__(self):
        return f"<CandidateGroup size={self.size}, count={len(self.files)}>"


@dataclass(frozen=True)
class DuplicateGroup:
    """
    A confirmed set of identical files. Immutable once produced.
    """
    size: int
    paths: Tuple[str, ...]

    def __post_init__(self):
        if len(self.paths) < 2:
            raise ValueError("A duplicate group needs at least two files")

    @classmethod
    def from_files(cls, files: Iterable[FileDescriptor]) -> "DuplicateGroup":
        files = list(files)
        if not files:
            raise ValueError("A duplicate group needs at least two files")
        return cls(size=files[0].size, paths=tuple(f.path for f in files))

    @property
    def count(self) -> int:
        return len(self.paths)

    @property
    def display_name(self) -> str:
        """Basename of the representative (first) file."""
        return os.path.basename(self.paths[0])

    @property
    def wasted_space(self) -> int:
        """Bytes held by every copy beyond the first."""
        return self.size * (self.count - 1)

    @property
    def total_bytes(self) -> int:
        return self.size * self.count

    def __repr__(self):
        return f"<DuplicateGroup size={self.size}, count={self.count}, name={self.display_name}>"


# =============================
# Options
# =============================

def default_parallelism() -> int:
    """Half of the available logical CPUs, never less than one."""
    return max(1, (os.cpu_count() or 1) // 2)


@dataclass
class DetectionOptions:
    """
    Tunable knobs of the detection engine, validated on creation.
    """
    min_size_bytes: int = DEFAULT_MIN_SIZE_BYTES
    verify_byte_by_byte: bool = False
    force_verify_above_bytes: int = DEFAULT_FORCE_VERIFY_ABOVE_BYTES
    max_degree_of_parallelism: Optional[int] = None
    partial_hash_enabled: bool = True
    partial_hash_threshold: int = DEFAULT_PARTIAL_HASH_THRESHOLD
    partial_hash_window: int = DEFAULT_PARTIAL_HASH_WINDOW

    def __post_init__(self):
        """Validate options immediately after creation."""
        if self.min_size_bytes < 0:
            raise ValueError("Minimum size cannot be negative")
        if self.force_verify_above_bytes < 0:
            raise ValueError("Forced verification threshold cannot be negative")
        if self.max_degree_of_parallelism is not None and self.max_degree_of_parallelism < 1:
            raise ValueError("Degree of parallelism must be at least 1")
        if self.partial_hash_window <= 0:
            raise ValueError("Partial hash window must be positive")
        if self.partial_hash_threshold < self.partial_hash_window:
            raise ValueError("Partial hash threshold cannot be smaller than the window")

    @property
    def degree_of_parallelism(self) -> int:
        if self.max_degree_of_parallelism is None:
            return default_parallelism()
        return self.max_degree_of_parallelism

    @staticmethod
    def from_human_readable(
            min_size_str: str = "256KB",
            force_verify_above_str: str = "32MB",
            verify_byte_by_byte: bool = False,
            max_degree_of_parallelism: Optional[int] = None,
            partial_hash_enabled: bool = True,
    ) -> 'DetectionOptions':
        """
        Factory method to create options from human-readable inputs.
        Useful for CLI argument parsing.
        """
        return DetectionOptions(
            min_size_bytes=ConvertUtils.human_to_bytes(min_size_str),
            verify_byte_by_byte=verify_byte_by_byte,
            force_verify_above_bytes=ConvertUtils.human_to_bytes(force_verify_above_str),
            max_degree_of_parallelism=max_degree_of_parallelism,
            partial_hash_enabled=partial_hash_enabled,
        )


@dataclass
class DetectionParams:
    """
    DTO for a full scan-and-detect run: where to look, what to skip,
    how to detect and where to keep the hash cache.
    """
    root_dir: str
    options: DetectionOptions = field(default_factory=DetectionOptions)
    excluded_dirs: List[str] = field(default_factory=list)
    cache_path: Optional[str] = None
    use_cache: bool = True

    def __post_init__(self):
        if not self.root_dir:
            raise ValueError("Root directory cannot be empty")


# =============================
# Statistics and results
# =============================

class DetectionStats:
    """
    Statistics collected during one detection run.
    Worker threads record errors and cache activity, so updates are locked.
    """

    def __init__(self):
        self.total_time: float = 0.0
        self.stage_stats: Dict[str, Dict[str, Union[int, float]]] = {}
        self.errors: List[str] = []
        self.cache_hits: int = 0
        self.cache_misses: int = 0
        self.bytes_hashed: int = 0
        self.files_verified: int = 0
        self.verification_rejects: int = 0
        self._lock = threading.Lock()
        self._listeners: List[Callable[[str, Dict], None]] = []

    def add_listener(self, listener: Callable[[str, Dict], None]):
        """Adds a listener to receive updates when stats are updated."""
        self._listeners.append(listener)

    def update_stage(
            self,
            stage_name: str,
            groups_found: int,
            files_processed: int,
            duration: float
    ) -> None:
        with self._lock:
            if stage_name not in self.stage_stats:
                self.stage_stats[stage_name] = {
                    "groups": 0,
                    "files": 0,
                    "time": 0.0
                }
            self.stage_stats[stage_name]["groups"] += groups_found
            self.stage_stats[stage_name]["files"] += files_processed
            self.stage_stats[stage_name]["time"] += duration
            snapshot = dict(self.stage_stats[stage_name])

        for listener in self._listeners:
            try:
                listener(stage_name, snapshot)
            except Exception as e:
                logger.warning(f"Error in stats event handler: {e}")

    def record_error(self, path: str, reason: str) -> None:
        with self._lock:
            self.errors.append(f"{path}: {reason}")

    def record_hash(self, result: HashResult, size: int = 0) -> None:
        """Counts cache hits and misses of full-hash lookups, and bytes actually read."""
        with self._lock:
            if result.from_cache:
                self.cache_hits += 1
            elif result.ok:
                self.cache_misses += 1
                self.bytes_hashed += size

    def record_verification(self, accepted: bool) -> None:
        with self._lock:
            self.files_verified += 1
            if not accepted:
                self.verification_rejects += 1

    def print_summary(self) -> str:
        labels = {
            Stage.SIZE.value: "Size Groups",
            Stage.PARTIAL.value: "Partial Hash Groups",
            Stage.FULL.value: "Full Hash Groups",
            Stage.VERIFY.value: "Verified Groups",
        }

        lines = [
            "Detection Statistics:",
            f"Total Execution Time: {self.total_time:.3f}s\n",
            "Stage: GROUPS / FILES / TIME"
        ]

        for stage_name, data in self.stage_stats.items():
            label = labels.get(stage_name, stage_name.title())
            if data["groups"] > 0 or data["time"] > 0:
                lines.append(f"{label}: {data['groups']} / {data['files']} / {data['time']:.3f}s")

        lines.append(f"Cache: {self.cache_hits} hits / {self.cache_misses} misses")
        if self.bytes_hashed:
            lines.append(f"Hashed: {ConvertUtils.bytes_to_human(self.bytes_hashed)}")
        if self.files_verified:
            lines.append(f"Byte-verified: {self.files_verified} ({self.verification_rejects} rejected)")
        if self.errors:
            lines.append(f"Errors: {len(self.errors)}")

        return "\n".join(lines)


@dataclass
class DetectionReport:
    """Everything a run produced: sorted groups, statistics, and whether it was cut short."""
    groups: List[DuplicateGroup]
    stats: DetectionStats
    cancelled: bool = False

    @property
    def errors(self) -> List[str]:
        return list(self.stats.errors)

    @property
    def total_wasted_space(self) -> int:
        return sum(g.wasted_space for g in self.groups)
