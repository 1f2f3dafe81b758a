"""
Unit tests for PartialHasherImpl and FullHasherImpl (xxHash64).
"""
import os
from unittest import mock

import pytest
import xxhash

from twinscan.core.hash_cache import HashCache
from twinscan.core.hasher import PartialHasherImpl, FullHasherImpl, XXHashAlgorithmImpl
from twinscan.core.models import FileDescriptor, EMPTY_HASH, KB


class TestPartialHasher:
    """Sampling policy and error handling of the cheap fingerprint."""

    def test_empty_file_gets_sentinel(self, make_file, describe):
        path = make_file("empty.bin", b"")
        assert PartialHasherImpl().compute(describe(path)[0]).value == EMPTY_HASH

    def test_small_file_is_hashed_completely(self, make_file, describe):
        content = os.urandom(100 * KB)
        path = make_file("small.bin", content)
        result = PartialHasherImpl().compute(describe(path)[0])
        assert result.value == xxhash.xxh64(content).hexdigest()

    def test_large_file_hashes_head_middle_and_tail(self, make_file, describe):
        content = os.urandom(1024 * KB)
        path = make_file("large.bin", content)
        hasher = PartialHasherImpl()
        window = 64 * KB
        head, middle, tail = hasher.window_offsets(len(content))

        expected = xxhash.xxh64()
        for offset in (head, middle, tail):
            expected.update(content[offset:offset + window])

        assert (head, middle, tail) == (0, 512 * KB - 32 * KB, 1024 * KB - window)
        assert hasher.compute(describe(path)[0]).value == expected.hexdigest()

    def test_identical_large_files_share_partial_hash(self, make_file, describe):
        content = os.urandom(300 * KB)
        a = make_file("a.bin", content)
        b = make_file("b.bin", content)
        hasher = PartialHasherImpl()
        fa, fb = describe(a, b)
        assert hasher.compute(fa).value == hasher.compute(fb).value

    def test_difference_outside_windows_is_not_seen(self, make_file, describe):
        """False positives are allowed; later stages remove them."""
        base = bytearray(os.urandom(1024 * KB))
        other = bytearray(base)
        other[200 * KB] ^= 0xFF  # between head and middle windows
        a = make_file("a.bin", bytes(base))
        b = make_file("b.bin", bytes(other))
        hasher = PartialHasherImpl()
        fa, fb = describe(a, b)
        assert hasher.compute(fa).value == hasher.compute(fb).value

    def test_missing_file_returns_failure(self, temp_dir):
        result = PartialHasherImpl().compute(FileDescriptor(str(temp_dir / "gone.bin"), 10))
        assert not result.ok
        assert "FileNotFoundError" in result.error

    def test_threshold_must_cover_a_window(self):
        with pytest.raises(ValueError):
            PartialHasherImpl(threshold=10, window=20)


class TestFullHasher:
    """Complete-content hashing with cache assistance."""

    def test_same_content_same_hash_regardless_of_path(self, make_file, describe):
        content = b"test content " * 1000
        a = make_file("one/a.bin", content)
        b = make_file("two/b.dat", content)
        hasher = FullHasherImpl()
        fa, fb = describe(a, b)
        assert hasher.compute(fa).value == hasher.compute(fb).value == xxhash.xxh64(content).hexdigest()

    def test_streams_in_chunks(self, make_file, describe):
        content = os.urandom(10 * KB + 3)
        path = make_file("a.bin", content)
        result = FullHasherImpl(chunk_size=KB).compute(describe(path)[0])
        assert result.value == xxhash.xxh64(content).hexdigest()

    def test_empty_file_gets_sentinel(self, make_file, describe):
        path = make_file("empty.bin", b"")
        assert FullHasherImpl().compute(describe(path)[0]).value == EMPTY_HASH

    def test_result_is_stored_in_cache(self, make_file, describe):
        path = make_file("a.bin", b"payload")
        cache = HashCache()
        descriptor = describe(path)[0]

        result = FullHasherImpl(cache=cache).compute(descriptor)

        assert not result.from_cache
        assert cache.lookup(descriptor.path, descriptor.size, descriptor.mtime) == result.value

    def test_cache_hit_skips_io(self, make_file, describe):
        path = make_file("a.bin", b"payload")
        descriptor = describe(path)[0]
        cache = HashCache()
        cache.store(descriptor.path, descriptor.size, descriptor.mtime, "cafebabe")

        with mock.patch("builtins.open", side_effect=AssertionError("file must not be opened")):
            result = FullHasherImpl(cache=cache).compute(descriptor)

        assert result.value == "cafebabe"
        assert result.from_cache

    def test_stale_cache_entry_is_rehashed(self, make_file, describe):
        path = make_file("a.bin", b"payload")
        descriptor = describe(path)[0]
        cache = HashCache()
        cache.store(descriptor.path, descriptor.size, descriptor.mtime - 1, "stale")

        result = FullHasherImpl(cache=cache).compute(descriptor)
        assert result.value == xxhash.xxh64(b"payload").hexdigest()
        assert not result.from_cache

    def test_unreadable_file_returns_failure_and_caches_nothing(self, temp_dir):
        cache = HashCache()
        result = FullHasherImpl(cache=cache).compute(FileDescriptor(str(temp_dir / "gone"), 5))
        assert not result.ok and result.error
        assert len(cache) == 0

    def test_algorithm_is_pluggable(self, make_file, describe):
        class Xxh3Algorithm:
            @staticmethod
            def new():
                return xxhash.xxh3_64()

        path = make_file("a.bin", b"abc")
        result = FullHasherImpl(algorithm=Xxh3Algorithm()).compute(describe(path)[0])
        assert result.value == xxhash.xxh3_64(b"abc").hexdigest()

    def test_default_algorithm_is_xxh64(self):
        assert isinstance(XXHashAlgorithmImpl.new(), type(xxhash.xxh64()))
