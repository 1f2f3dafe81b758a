"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/scanner.py
Thin descriptor source for the detection engine.
Features:
- Recursively walks a directory tree with os.walk
- Skips symbolic links, the system trash and excluded directories
- Applies an optional size range and extension filter
- Returns FileDescriptors in walk order (zero-byte files included)
"""

import os
import sys
from typing import List, Optional
from pathlib import Path
import time
import logging

from twinscan.core.models import FileDescriptor
from twinscan.core.interfaces import FileScanner, StoppedFlag, ProgressCallback

logger = logging.getLogger(__name__)


class FileScannerImpl(FileScanner):
    """
    Scans directories recursively and produces one FileDescriptor per regular file.

    Attributes:
        root_dir: Root directory to scan
        min_size: Minimum file size in bytes (optional)
        max_size: Maximum file size in bytes (optional)
        extensions: Allowed file extensions (e.g., [".txt", ".jpg"]); empty means all
        excluded_dirs: Directories that are never entered
    """

    PROGRESS_INTERVAL = 5000

    def __init__(
        self,
        root_dir: str,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
        extensions: Optional[List[str]] = None,
        excluded_dirs: Optional[List[str]] = None
    ):
        self.root_dir = root_dir
        self.min_size = min_size
        self.max_size = max_size
        self.extensions = [ext.lower() for ext in extensions] if extensions else []
        self.excluded_dirs = [str(Path(d).resolve()) for d in excluded_dirs] if excluded_dirs else []

    def scan(self,
             stopped_flag: StoppedFlag = None,
             progress_callback: ProgressCallback = None) -> List[FileDescriptor]:
        """
        Single pass over the tree. Returns whatever was found so far when
        cancelled.

        Raises:
            RuntimeError: If the root does not exist or is not a directory
        """
        logger.debug(f"Scanning {self.root_dir} (min_size={self.min_size}, max_size={self.max_size}, "
                     f"extensions={self.extensions})")

        found_files: List[FileDescriptor] = []
        root_path = Path(self.root_dir)
        processed_files = 0

        if stopped_flag and stopped_flag():
            logger.debug("Scan cancelled before start")
            return []

        if not root_path.exists():
            error_msg = f"Directory does not exist: {self.root_dir}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)
        if not root_path.is_dir():
            error_msg = f"Not a directory: {self.root_dir}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)

        start_time = time.time()

        def on_walk_error(error: OSError) -> None:
            logger.warning(f"Cannot read directory {error.filename}: {error.strerror}")

        for root, dirs, files in os.walk(str(root_path), onerror=on_walk_error):
            if stopped_flag and stopped_flag():
                logger.debug("Scan interrupted by user")
                break

            dirs[:] = sorted(d for d in dirs if self._prefilter_dirs(Path(root) / d))

            for filename in sorted(files):
                descriptor = self._process_file(Path(root) / filename)
                if descriptor:
                    found_files.append(descriptor)
                processed_files += 1

                if progress_callback and processed_files % self.PROGRESS_INTERVAL == 0:
                    progress_callback('scanning', processed_files, None)

        if progress_callback:
            progress_callback('scanning', processed_files, None)

        logger.debug(f"Scan finished in {time.time() - start_time:.2f}s: "
                     f"{len(found_files)} of {processed_files} files accepted")
        return found_files

    @staticmethod
    def _is_system_trash(path: Path) -> bool:
        """
        Check if path belongs to the OS trash/recycle bin.
        Returns False on any error.
        """
        try:
            path_str = str(path.resolve(strict=False))

            if sys.platform == "win32":
                return "$Recycle.Bin" in path_str or "\\Recycler\\" in path_str
            if sys.platform == "darwin":
                return "/.Trash/" in path_str or path_str.endswith("/.Trash")
            return ".local/share/Trash" in path_str or "/.trash/" in path_str
        except (OSError, ValueError):
            return False

    def _is_excluded_directory(self, path: Path) -> bool:
        try:
            path_str = str(path.resolve(strict=False))
        except (OSError, ValueError):
            return False
        return any(
            path_str == excluded or path_str.startswith(excluded + os.sep)
            for excluded in self.excluded_dirs
        )

    def _prefilter_dirs(self, path: Path) -> bool:
        """Decides whether os.walk may enter a subdirectory."""
        if path.is_symlink():
            logger.debug(f"Skipping symlinked directory: {path}")
            return False

        if self._is_system_trash(path):
            logger.debug(f"Skipping system trash directory: {path}")
            return False

        if self.excluded_dirs and self._is_excluded_directory(path):
            logger.debug(f"Skipping excluded directory: {path}")
            return False

        return os.access(path, os.R_OK | os.X_OK)

    def _process_file(self, path: Path) -> Optional[FileDescriptor]:
        """
        Turn one walk entry into a descriptor, or None if it is filtered out.
        """
        try:
            if path.is_symlink():
                logger.debug(f"Skipping symbolic link: {path}")
                return None
        except OSError as e:
            logger.debug(f"Could not check symlink status for {path}: {e}")
            return None

        descriptor = FileDescriptor.from_path(str(path))
        if descriptor is None:
            return None

        if not self._size_passes(descriptor.size):
            return None

        if not self._extension_passes(path):
            return None

        return descriptor

    def _size_passes(self, size: int) -> bool:
        if self.min_size is not None and size < self.min_size:
            return False
        if self.max_size is not None and size > self.max_size:
            return False
        return True

    def _extension_passes(self, path: Path) -> bool:
        if not self.extensions:
            return True
        return path.suffix.lower() in self.extensions
