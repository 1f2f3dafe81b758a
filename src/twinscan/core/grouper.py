"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/grouper.py
Splits files into buckets by size or by hash, hashing through an optional
bounded worker pool.

Bucket membership follows input order: results are collected in submission
order, so the same input always yields the same buckets.
"""

import logging
import uuid
from collections import defaultdict
from concurrent.futures import Executor
from typing import List, Dict, Any, Callable, Optional

from twinscan.core.interfaces import FileGrouper, PartialHasher, FullHasher, StoppedFlag
from twinscan.core.models import FileDescriptor, HashResult, DetectionStats
from twinscan.core.hasher import PartialHasherImpl, FullHasherImpl

logger = logging.getLogger(__name__)

UNREADABLE_PREFIX = "unreadable:"


class FileGrouperImpl(FileGrouper):
    """
    A concrete FileGrouper using injected hashers.
    With `executor=None` hashing runs inline on the calling thread.
    """

    def __init__(
            self,
            partial_hasher: Optional[PartialHasher] = None,
            full_hasher: Optional[FullHasher] = None,
            executor: Optional[Executor] = None,
            stats: Optional[DetectionStats] = None,
    ):
        self.partial_hasher = partial_hasher or PartialHasherImpl()
        self.full_hasher = full_hasher or FullHasherImpl()
        self.executor = executor
        self.stats = stats

    def group_by_size(self, files: List[FileDescriptor]) -> Dict[int, List[FileDescriptor]]:
        """Groups files by their size."""
        return self._group_by(files, lambda f: f.size)

    def group_by_partial_hash(
            self, files: List[FileDescriptor], stopped_flag: StoppedFlag = None
    ) -> Dict[str, List[FileDescriptor]]:
        """
        Groups files by sampled partial hash.
        Unreadable files are left out of every bucket.
        """
        results = self._hash_all(files, self.partial_hasher.compute, stopped_flag)
        keys = {}
        for file, result in zip(files, results):
            if result.ok:
                keys[file.path] = result.value
            elif not result.cancelled:
                self._record_failure(file, result)
        return self._group_by(files, lambda f: keys.get(f.path))

    def group_by_full_hash(
            self, files: List[FileDescriptor], stopped_flag: StoppedFlag = None
    ) -> Dict[str, List[FileDescriptor]]:
        """
        Groups files by full content hash.
        An unreadable file gets a process-unique placeholder so it can never
        share a bucket with another file.
        """
        results = self._hash_all(files, self.full_hasher.compute, stopped_flag)
        keys = {}
        for file, result in zip(files, results):
            if result.ok:
                keys[file.path] = result.value
                if self.stats is not None:
                    self.stats.record_hash(result, file.size)
            elif result.cancelled:
                continue
            else:
                self._record_failure(file, result)
                keys[file.path] = UNREADABLE_PREFIX + uuid.uuid4().hex
        return self._group_by(files, lambda f: keys.get(f.path))

    def _hash_all(
            self,
            files: List[FileDescriptor],
            compute: Callable[[FileDescriptor], HashResult],
            stopped_flag: StoppedFlag,
    ) -> List[HashResult]:
        """Hashes every file, in parallel when an executor is set. Order is preserved."""

        def task(file: FileDescriptor) -> HashResult:
            if stopped_flag and stopped_flag():
                return HashResult.skipped()
            return compute(file)

        if self.executor is None:
            return [task(f) for f in files]
        return list(self.executor.map(task, files))

    def _record_failure(self, file: FileDescriptor, result: HashResult) -> None:
        if self.stats is not None:
            self.stats.record_error(file.path, result.error or "unknown error")

    @staticmethod
    def _group_by(files: List[FileDescriptor], key_func: Callable[[FileDescriptor], Any]) -> Dict[Any, List[FileDescriptor]]:
        """
        Helper method to group files by any computed key.
        Files whose key is None are skipped; buckets with fewer than
        two files are dropped.
        """
        groups = defaultdict(list)
        for file in files:
            key = key_func(file)
            if key is not None:
                groups[key].append(file)

        return {key: group for key, group in groups.items() if len(group) >= 2}
