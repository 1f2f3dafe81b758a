"""
Unit tests for data models: descriptors, cache records, groups, options and stats.
"""
import os

import pytest
from unittest import mock

from twinscan.core.models import (
    FileDescriptor, CacheEntry, HashResult, CandidateGroup, DuplicateGroup,
    DetectionOptions, DetectionParams, DetectionStats, DetectionReport, Stage, KeepRule,
    KB, MB,
)


class TestFileDescriptor:
    def test_from_path_reads_size_and_mtime_ns(self, make_file):
        path = make_file("a.bin", b"x" * 100)
        descriptor = FileDescriptor.from_path(path)

        assert descriptor.path == str(path)
        assert descriptor.size == 100
        assert descriptor.mtime == path.stat().st_mtime_ns
        assert descriptor.name == "a.bin"

    def test_from_path_returns_none_for_missing_file(self, temp_dir):
        assert FileDescriptor.from_path(temp_dir / "nope.bin") is None

    def test_from_path_returns_none_for_directory(self, temp_dir):
        assert FileDescriptor.from_path(temp_dir) is None

    def test_from_path_records_inode(self, make_file):
        path = make_file("a.bin", b"x")
        st = path.stat()
        assert FileDescriptor.from_path(path).file_id == (st.st_dev, st.st_ino)

    def test_identity_ignores_spelling(self, make_file, temp_dir, monkeypatch):
        path = make_file("a.bin", b"x")
        monkeypatch.chdir(temp_dir)
        assert FileDescriptor.from_path("a.bin").identity == FileDescriptor.from_path(str(path)).identity
        assert FileDescriptor("a.bin", 1).identity == FileDescriptor(str(path.resolve()), 1).identity

    def test_identity_falls_back_to_path_without_inode(self, temp_dir):
        descriptor = FileDescriptor(str(temp_dir / "a.bin"), 1, file_id=(5, 0))
        assert descriptor.identity == os.path.normcase(os.path.abspath(descriptor.path))

    def test_file_id_does_not_affect_equality(self):
        assert FileDescriptor("/a", 1, 2, file_id=(1, 2)) == FileDescriptor("/a", 1, 2)

    def test_rejects_negative_size_and_empty_path(self):
        with pytest.raises(ValueError):
            FileDescriptor(path="a", size=-1)
        with pytest.raises(ValueError):
            FileDescriptor(path="", size=1)


class TestCacheEntry:
    def test_record_keeps_pipes_in_path(self):
        """Only the last three separators split the record."""
        entry = CacheEntry(path="/data/a|b|c.txt", size=10, mtime=123, hash="abcd")
        parsed = CacheEntry.from_record(entry.to_record() + "\n")
        assert parsed == entry

    @pytest.mark.parametrize("line", [
        "",
        "no separators at all",
        "/a|10|123",
        "/a|ten|123|abcd",
        "/a|10|soon|abcd",
        "/a|-5|123|abcd",
        "|10|123|abcd",
        "/a|10|123|",
    ])
    def test_malformed_records_are_rejected(self, line):
        assert CacheEntry.from_record(line) is None

    def test_matches_requires_exact_size_and_mtime(self):
        entry = CacheEntry(path="/a", size=10, mtime=123, hash="h")
        assert entry.matches(10, 123)
        assert not entry.matches(11, 123)
        assert not entry.matches(10, 124)


class TestHashResult:
    def test_variants(self):
        assert HashResult.success("abc").ok
        assert HashResult.success("abc", from_cache=True).from_cache
        failed = HashResult.failure("PermissionError: denied")
        assert not failed.ok and failed.error == "PermissionError: denied"
        skipped = HashResult.skipped()
        assert not skipped.ok and skipped.cancelled


class TestGroups:
    def test_candidate_group_rejects_other_size(self):
        group = CandidateGroup(size=10, files=[FileDescriptor("/a", 10)])
        with pytest.raises(ValueError):
            group.add_file(FileDescriptor("/b", 11))
        assert not group.is_duplicate()
        group.add_file(FileDescriptor("/c", 10))
        assert group.is_duplicate()

    def test_duplicate_group_derived_values(self):
        group = DuplicateGroup(size=10 * MB, paths=("/x/Movie.mkv", "/y/copy.mkv", "/z/c.mkv"))
        assert group.count == 3
        assert group.display_name == "Movie.mkv"
        assert group.wasted_space == 20 * MB
        assert group.total_bytes == 30 * MB

    def test_duplicate_group_needs_two_members(self):
        with pytest.raises(ValueError):
            DuplicateGroup(size=1, paths=("/only",))

    def test_from_files_keeps_member_order(self):
        files = [FileDescriptor("/b", 5), FileDescriptor("/a", 5)]
        assert DuplicateGroup.from_files(files).paths == ("/b", "/a")


class TestDetectionOptions:
    def test_defaults(self):
        options = DetectionOptions()
        assert options.min_size_bytes == 256 * KB
        assert options.force_verify_above_bytes == 32 * MB
        assert options.verify_byte_by_byte is False
        assert options.partial_hash_enabled is True
        assert options.partial_hash_threshold == 256 * KB
        assert options.partial_hash_window == 64 * KB

    @pytest.mark.parametrize("kwargs", [
        {"min_size_bytes": -1},
        {"force_verify_above_bytes": -1},
        {"max_degree_of_parallelism": 0},
        {"partial_hash_window": 0},
        {"partial_hash_threshold": 10, "partial_hash_window": 20},
    ])
    def test_invalid_values_raise(self, kwargs):
        with pytest.raises(ValueError):
            DetectionOptions(**kwargs)

    @pytest.mark.parametrize("cpus, expected", [(None, 1), (1, 1), (2, 1), (8, 4), (16, 8)])
    def test_default_parallelism_is_half_the_cpus(self, cpus, expected):
        with mock.patch("twinscan.core.models.os.cpu_count", return_value=cpus):
            assert DetectionOptions().degree_of_parallelism == expected

    def test_explicit_parallelism_wins(self):
        assert DetectionOptions(max_degree_of_parallelism=3).degree_of_parallelism == 3

    def test_from_human_readable(self):
        options = DetectionOptions.from_human_readable(
            min_size_str="1MB", force_verify_above_str="1GB", verify_byte_by_byte=True,
            max_degree_of_parallelism=2, partial_hash_enabled=False)
        assert options.min_size_bytes == MB
        assert options.force_verify_above_bytes == 1024 * MB
        assert options.verify_byte_by_byte
        assert options.max_degree_of_parallelism == 2
        assert not options.partial_hash_enabled

    def test_params_require_root(self):
        with pytest.raises(ValueError):
            DetectionParams(root_dir="")


class TestDetectionStats:
    def test_update_stage_accumulates_and_notifies(self):
        stats = DetectionStats()
        events = []
        stats.add_listener(lambda name, data: events.append((name, data["groups"])))

        stats.update_stage("full", groups_found=2, files_processed=5, duration=0.5)
        stats.update_stage("full", groups_found=1, files_processed=3, duration=0.25)

        assert stats.stage_stats["full"] == {"groups": 3, "files": 8, "time": 0.75}
        assert events == [("full", 2), ("full", 3)]

    def test_failing_listener_does_not_break_update(self):
        stats = DetectionStats()
        stats.add_listener(mock.Mock(side_effect=RuntimeError("boom")))
        stats.update_stage("size", 1, 2, 0.1)
        assert stats.stage_stats["size"]["groups"] == 1

    def test_record_hash_counts_hits_misses_and_bytes(self):
        stats = DetectionStats()
        stats.record_hash(HashResult.success("a", from_cache=True), 100)
        stats.record_hash(HashResult.success("b"), 50)
        stats.record_hash(HashResult.failure("x"), 70)
        assert (stats.cache_hits, stats.cache_misses, stats.bytes_hashed) == (1, 1, 50)

    def test_summary_lists_stages_cache_and_errors(self):
        stats = DetectionStats()
        stats.update_stage(Stage.SIZE.value, 2, 10, 0.01)
        stats.update_stage(Stage.VERIFY.value, 1, 2, 0.01)
        stats.record_error("/bad", "PermissionError: denied")
        stats.record_verification(False)

        summary = stats.print_summary()
        assert "Size Groups: 2 / 10" in summary
        assert "Verified Groups: 1 / 2" in summary
        assert "Cache: 0 hits / 0 misses" in summary
        assert "Byte-verified: 1 (1 rejected)" in summary
        assert "Errors: 1" in summary

    def test_report_exposes_errors_and_waste(self):
        stats = DetectionStats()
        stats.record_error("/bad", "gone")
        report = DetectionReport(
            groups=[DuplicateGroup(size=10, paths=("/a", "/b", "/c"))], stats=stats)
        assert report.errors == ["/bad: gone"]
        assert report.total_wasted_space == 20
        assert report.cancelled is False


class TestEnums:
    def test_stage_values_and_names(self):
        assert [s.value for s in Stage.get_all()] == ["size", "partial", "full", "verify"]
        assert Stage.VERIFY.display_name == "Byte Verification"

    def test_keep_rule_values(self):
        assert KeepRule("shortest-path") is KeepRule.SHORTEST_PATH
        assert "recently modified" in KeepRule.NEWEST.description
