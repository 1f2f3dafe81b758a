"""
Core detection engine: hashers, cache, verifier, grouper, stages and the
pipeline orchestrator.

- FileScannerImpl: recursive walk producing FileDescriptors
- PartialHasherImpl / FullHasherImpl: xxHash64 fingerprints, returning HashResult values
- HashCache: persistent path -> (size, mtime, hash) store
- FileVerifierImpl: byte-exact comparison
- DuplicateDetectionEngine: size -> partial hash -> full hash -> verification

All components are pure Python with no UI dependencies.
"""

from .scanner import FileScannerImpl
from .grouper import FileGrouperImpl
from .hasher import PartialHasherImpl, FullHasherImpl, XXHashAlgorithmImpl
from .hash_cache import HashCache, default_cache_path
from .verifier import FileVerifierImpl
from .engine import DuplicateDetectionEngine
from .sorter import Sorter
from .models import (
    FileDescriptor, CacheEntry, HashResult, CandidateGroup, DuplicateGroup,
    DetectionOptions, DetectionParams, DetectionStats, DetectionReport, Stage, KeepRule)

__all__ = [
    "FileScannerImpl",
    "FileGrouperImpl",
    "PartialHasherImpl",
    "FullHasherImpl",
    "XXHashAlgorithmImpl",
    "HashCache",
    "default_cache_path",
    "FileVerifierImpl",
    "DuplicateDetectionEngine",
    "Sorter",
    "FileDescriptor",
    "CacheEntry",
    "HashResult",
    "CandidateGroup",
    "DuplicateGroup",
    "DetectionOptions",
    "DetectionParams",
    "DetectionStats",
    "DetectionReport",
    "Stage",
    "KeepRule",
]
