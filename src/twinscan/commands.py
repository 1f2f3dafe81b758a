"""
Unified command orchestrator for a scan-and-detect run.
This is the single place where scanner, hash cache and engine are wired
together; the CLI and library callers both go through it.
"""
import logging
from typing import List, Optional, Callable

from twinscan.core.engine import DuplicateDetectionEngine
from twinscan.core.hash_cache import HashCache, default_cache_path
from twinscan.core.interfaces import StoppedFlag, ProgressCallback
from twinscan.core.models import DetectionParams, DetectionReport, DuplicateGroup, FileDescriptor
from twinscan.core.scanner import FileScannerImpl

logger = logging.getLogger(__name__)


class DetectionCommand:
    """
    Orchestrates the whole workflow:
    1. Scan the root directory into FileDescriptors
    2. Open the hash cache (persistent unless disabled)
    3. Run the detection engine with progress/cancellation support

    Usage:
        params = DetectionParams(root_dir="~/Downloads")
        command = DetectionCommand()
        report = command.execute(
            params,
            progress_callback=cli_progress_printer,
            stopped_flag=signal_handler_check
        )
    """

    def __init__(self):
        self._files: List[FileDescriptor] = []
        self.cache: Optional[HashCache] = None

    def execute(
            self,
            params: DetectionParams,
            progress_callback: ProgressCallback = None,
            stopped_flag: StoppedFlag = None,
            on_group: Optional[Callable[[DuplicateGroup], None]] = None,
    ) -> DetectionReport:
        """
        Execute detection with given parameters.

        Returns:
            DetectionReport (empty if nothing was found or the run was cancelled early)

        Raises:
            RuntimeError: If the root directory cannot be scanned
        """
        scanner = FileScannerImpl(
            root_dir=params.root_dir,
            min_size=params.options.min_size_bytes,
            excluded_dirs=params.excluded_dirs,
        )
        self._files = scanner.scan(stopped_flag=stopped_flag, progress_callback=progress_callback)
        logger.debug(f"Scanner returned {len(self._files)} files")

        self.cache = self._open_cache(params)
        engine = DuplicateDetectionEngine(options=params.options, cache=self.cache)
        return engine.find_duplicates(
            self._files,
            stopped_flag=stopped_flag,
            on_group=on_group,
            progress_callback=progress_callback
        )

    @staticmethod
    def _open_cache(params: DetectionParams) -> HashCache:
        if not params.use_cache:
            return HashCache(path=None)
        cache = HashCache(path=params.cache_path or default_cache_path())
        cache.load()
        return cache

    def get_files(self) -> List[FileDescriptor]:
        """Get scanned files after execution."""
        return self._files.copy()
