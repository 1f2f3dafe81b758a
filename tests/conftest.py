"""
Shared fixtures for detection tests.
Creates isolated temporary directories with controlled test files.
"""
import pytest
import tempfile
from pathlib import Path
from typing import Dict, List

from twinscan.core.models import DetectionOptions, FileDescriptor


@pytest.fixture
def temp_dir():
    """Creates isolated temporary directory, auto-cleanup after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_file(temp_dir):
    """Factory: writes bytes to a file under temp_dir and returns its Path."""
    def _make(relative: str, content: bytes) -> Path:
        path = temp_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path
    return _make


@pytest.fixture
def describe():
    """Factory: FileDescriptors for a list of paths, stat-ed now."""
    def _describe(*paths) -> List[FileDescriptor]:
        return [FileDescriptor.from_path(str(p)) for p in paths]
    return _describe


@pytest.fixture
def small_options() -> DetectionOptions:
    """Options that let tiny test files through every stage, on two workers."""
    return DetectionOptions(
        min_size_bytes=0,
        max_degree_of_parallelism=2,
        partial_hash_threshold=1024,
        partial_hash_window=256,
    )


@pytest.fixture
def test_files(temp_dir) -> Dict[str, Path]:
    """
    Creates controlled test files for detection scenarios:
    - 3 identical 1KB files (one in a subdirectory)
    - 2 identical 2KB files
    - 2 unique files
    - 2 empty files
    """
    files = {}

    content_a = b"A" * 1024
    files["dup1_a"] = temp_dir / "dup1_a.txt"
    files["dup1_b"] = temp_dir / "dup1_b.txt"
    files["dup1_a"].write_bytes(content_a)
    files["dup1_b"].write_bytes(content_a)

    content_b = b"B" * 2048
    files["dup2_a"] = temp_dir / "dup2_a.txt"
    files["dup2_b"] = temp_dir / "dup2_b.txt"
    files["dup2_a"].write_bytes(content_b)
    files["dup2_b"].write_bytes(content_b)

    files["unique1"] = temp_dir / "unique1.txt"
    files["unique1"].write_bytes(b"C" * 1500)
    files["unique2"] = temp_dir / "unique2.txt"
    files["unique2"].write_bytes(b"D" * 2500)

    files["empty1"] = temp_dir / "empty1.txt"
    files["empty1"].write_bytes(b"")
    files["empty2"] = temp_dir / "empty2.txt"
    files["empty2"].write_bytes(b"")

    subdir = temp_dir / "subdir"
    subdir.mkdir()
    files["sub_dup"] = subdir / "dup_in_subdir.txt"
    files["sub_dup"].write_bytes(content_a)

    return files

