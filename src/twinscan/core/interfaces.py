"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

interfaces.py

Defines core interfaces (Protocols) used throughout the detection pipeline.
These protocols enforce structural typing using Python's `typing.Protocol` so
that every stage can be swapped or faked in tests.

Key Components:
---------------
- HashAlgorithm: Factory for streaming hash objects (xxHash64 by default).
- HashStore: Persistent path -> (size, mtime, hash) memoization store.
- PartialHasher / FullHasher: Per-file fingerprinting returning HashResult values.
- Verifier: Byte-exact file comparison.
- FileScanner: Produces FileDescriptors for the engine.
- SizeStage / HashStage / VerifyStage: Individual pipeline stages.
- DuplicateDetector: The engine coordinating all stages.
"""

from typing import Protocol, List, Dict, Optional, Callable, Iterable
from twinscan.core.models import (
    FileDescriptor,
    CandidateGroup,
    DuplicateGroup,
    DetectionReport,
    HashResult,
)


StoppedFlag = Optional[Callable[[], bool]]
ProgressCallback = Optional[Callable[[str, int, object], None]]


# ===== Interfaces =====

class StreamingHash(Protocol):
    def update(self, data: bytes) -> None: ...
    def hexdigest(self) -> str: ...


class HashAlgorithm(Protocol):
    """
    Interface for generic streaming hash algorithms.

    Allows plugging in a different fast hash without affecting the rest of
    the pipeline.
    """

    @staticmethod
    def new() -> StreamingHash:
        """Returns a fresh incremental hasher."""
        ...


class HashStore(Protocol):
    """Interface for the cross-run hash cache."""
    def lookup(self, path: str, size: int, mtime: int) -> Optional[str]: ...
    def store(self, path: str, size: int, mtime: int, hash_value: str) -> None: ...
    def flush(self) -> bool: ...


class PartialHasher(Protocol):
    """Interface for the cheap sampled fingerprint."""
    def compute(self, file: FileDescriptor) -> HashResult: ...


class FullHasher(Protocol):
    """Interface for the complete-content hash."""
    def compute(self, file: FileDescriptor) -> HashResult: ...


class Verifier(Protocol):
    """Interface for byte-exact comparison of two files."""
    def identical(self, path_a: str, path_b: str) -> bool: ...


class FileScanner(Protocol):
    """
    Interface for producing candidate files.

    Methods:
        scan: Returns descriptors of all files found.
    """
    def scan(
        self,
        stopped_flag: StoppedFlag = None,
        progress_callback: ProgressCallback = None
    ) -> List[FileDescriptor]:
        ...


class FileGrouper(Protocol):
    """
    Interface for splitting files into buckets by size or hash.
    Every method drops buckets with fewer than two members.
    """
    def group_by_size(self, files: List[FileDescriptor]) -> Dict[int, List[FileDescriptor]]: ...

    def group_by_partial_hash(
        self, files: List[FileDescriptor], stopped_flag: StoppedFlag = None
    ) -> Dict[str, List[FileDescriptor]]: ...

    def group_by_full_hash(
        self, files: List[FileDescriptor], stopped_flag: StoppedFlag = None
    ) -> Dict[str, List[FileDescriptor]]: ...


# =============================
# Stage Interfaces
# =============================

class SizeStage(Protocol):
    """First stage: bucket files by exact size."""
    def process(
        self,
        files: List[FileDescriptor],
        stopped_flag: StoppedFlag = None,
        progress_callback: ProgressCallback = None
    ) -> List[CandidateGroup]:
        ...


class HashStage(Protocol):
    """
    A stage that splits each candidate bucket by some hash of its members.
    """

    def get_stage_name(self) -> str:
        """Return the name of this stage (used in logging and stats)."""
        ...

    def process(
        self,
        groups: List[CandidateGroup],
        stopped_flag: StoppedFlag = None,
        progress_callback: ProgressCallback = None
    ) -> List[CandidateGroup]:
        """
        Returns refined buckets with at least two members each.
        """
        ...


class VerifyStage(Protocol):
    """Final stage: confirm buckets and turn them into duplicate groups."""
    def process(
        self,
        groups: List[CandidateGroup],
        stopped_flag: StoppedFlag = None,
        progress_callback: ProgressCallback = None
    ) -> List[DuplicateGroup]:
        ...


class DuplicateDetector(Protocol):
    """
    Interface for the detection engine.

    Coordinates size -> partial hash -> full hash -> verification and
    collects statistics about the run.
    """
    def find_duplicates(
        self,
        files: Iterable[FileDescriptor],
        stopped_flag: StoppedFlag = None,
        on_group: Optional[Callable[[DuplicateGroup], None]] = None,
        progress_callback: ProgressCallback = None
    ) -> DetectionReport:
        ...
