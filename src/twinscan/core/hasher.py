"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

hasher.py
Implements file hashing with pluggable hash algorithms (xxHash64 by default).

- PartialHasherImpl: cheap pre-filter fingerprint. Small files are hashed
  completely, larger files are sampled at head, middle and tail.
- FullHasherImpl: streams the whole file, consulting the hash cache first.

Both return HashResult values instead of raising, so one unreadable file
never aborts a batch.
"""

import logging
import os
from typing import Optional, Tuple, BinaryIO

import xxhash

from twinscan.core.models import (
    FileDescriptor, HashResult, EMPTY_HASH,
    DEFAULT_PARTIAL_HASH_THRESHOLD, DEFAULT_PARTIAL_HASH_WINDOW,
)
from twinscan.core.interfaces import (
    HashAlgorithm, HashStore, PartialHasher, FullHasher, StreamingHash,
)

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 1024 * 1024


# Use the same way to implement and use any other hashing algorithm
class XXHashAlgorithmImpl(HashAlgorithm):
    @staticmethod
    def new() -> StreamingHash:
        return xxhash.xxh64()


def _update_from_stream(hasher: StreamingHash, stream: BinaryIO, chunk_size: int = READ_CHUNK_SIZE) -> int:
    """Feeds the rest of the stream into the hasher, returns bytes consumed."""
    total = 0
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        hasher.update(chunk)
        total += len(chunk)
    return total


def _describe(error: OSError) -> str:
    return f"{type(error).__name__}: {error.strerror or error}"


class PartialHasherImpl(PartialHasher):
    """
    Multi-window fingerprint.

    Two byte-identical files always get the same value, because the windows
    depend only on the file length, which identical files share.
    """

    def __init__(
            self,
            algorithm: Optional[HashAlgorithm] = None,
            threshold: int = DEFAULT_PARTIAL_HASH_THRESHOLD,
            window: int = DEFAULT_PARTIAL_HASH_WINDOW,
    ):
        if window <= 0 or threshold < window:
            raise ValueError("Partial hash threshold must be at least one window")
        self.algorithm = algorithm or XXHashAlgorithmImpl()
        self.threshold = threshold
        self.window = window

    def window_offsets(self, length: int) -> Tuple[int, int, int]:
        """Head, middle and tail offsets for a file longer than the threshold."""
        middle = max(0, length // 2 - self.window // 2)
        tail = max(0, length - self.window)
        return 0, middle, tail

    def compute(self, file: FileDescriptor) -> HashResult:
        try:
            with open(file.path, "rb") as f:
                length = os.fstat(f.fileno()).st_size
                if length == 0:
                    return HashResult.success(EMPTY_HASH)

                hasher = self.algorithm.new()
                if length <= self.threshold:
                    _update_from_stream(hasher, f)
                else:
                    for offset in self.window_offsets(length):
                        f.seek(offset)
                        hasher.update(f.read(self.window))
                return HashResult.success(hasher.hexdigest())
        except OSError as e:
            logger.warning(f"Partial hash failed for {file.path}: {e}")
            return HashResult.failure(_describe(e))


class FullHasherImpl(FullHasher):
    """
    Complete-content hash, cache-assisted.
    A cache hit returns without touching the file.
    """

    def __init__(
            self,
            cache: Optional[HashStore] = None,
            algorithm: Optional[HashAlgorithm] = None,
            chunk_size: int = READ_CHUNK_SIZE,
    ):
        self.cache = cache
        self.algorithm = algorithm or XXHashAlgorithmImpl()
        self.chunk_size = chunk_size

    def compute(self, file: FileDescriptor) -> HashResult:
        if self.cache is not None:
            cached = self.cache.lookup(file.path, file.size, file.mtime)
            if cached is not None:
                return HashResult.success(cached, from_cache=True)

        try:
            with open(file.path, "rb") as f:
                st = os.fstat(f.fileno())
                hasher = self.algorithm.new()
                consumed = _update_from_stream(hasher, f, self.chunk_size)
        except OSError as e:
            logger.warning(f"Full hash failed for {file.path}: {e}")
            return HashResult.failure(_describe(e))

        digest = EMPTY_HASH if consumed == 0 else hasher.hexdigest()
        if self.cache is not None:
            # Keyed by the handle's own stat so the entry describes the bytes just read
            self.cache.store(file.path, st.st_size, st.st_mtime_ns, digest)
        return HashResult.success(digest)
