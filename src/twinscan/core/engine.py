"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

engine.py
Pipeline-based duplicate detection over FileDescriptors:
    size → partial hash (optional) → full hash → byte verification

Buckets are walked depth-first, one size bucket at a time, which bounds
peak memory and lets each confirmed group be reported as soon as it exists.
Hashing inside a bucket runs on a bounded thread pool.
"""
import logging
import os
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List, Tuple, Optional, Callable, Iterable, Generator, Union

from twinscan.core.models import (
    FileDescriptor, CandidateGroup, DuplicateGroup, DetectionOptions, DetectionStats,
    DetectionReport, Stage,
)
from twinscan.core.interfaces import (
    DuplicateDetector, HashStage, HashStore, PartialHasher, FullHasher, Verifier,
    StoppedFlag, ProgressCallback,
)
from twinscan.core.grouper import FileGrouperImpl
from twinscan.core.hasher import PartialHasherImpl, FullHasherImpl
from twinscan.core.stages import SizeStageImpl, PartialHashStageImpl, FullHashStageImpl, VerifyStageImpl
from twinscan.core.verifier import FileVerifierImpl
from twinscan.core.sorter import Sorter

logger = logging.getLogger(__name__)

GroupCallback = Optional[Callable[[DuplicateGroup], None]]


# =============================
# Main Engine Class
# =============================
class DuplicateDetectionEngine(DuplicateDetector):
    """
    Multi-stage duplicate detection with a persistent hash cache.

    The cache is injected and owned by the caller; the engine loads it on
    first use and flushes it once at the end of every run.
    """

    def __init__(
            self,
            options: Optional[DetectionOptions] = None,
            cache: Optional[HashStore] = None,
            verifier: Optional[Verifier] = None,
            partial_hasher: Optional[PartialHasher] = None,
            full_hasher: Optional[FullHasher] = None,
    ):
        self.options = options or DetectionOptions()
        self.cache = cache
        self.verifier = verifier or FileVerifierImpl()
        self.partial_hasher = partial_hasher or PartialHasherImpl(
            threshold=self.options.partial_hash_threshold,
            window=self.options.partial_hash_window,
        )
        self.full_hasher = full_hasher or FullHasherImpl(cache=cache)
        self.last_report: Optional[DetectionReport] = None

    def find_duplicates(
            self,
            files: Iterable[FileDescriptor],
            stopped_flag: StoppedFlag = None,
            on_group: GroupCallback = None,
            progress_callback: ProgressCallback = None
    ) -> DetectionReport:
        """
        Main detection pipeline.
        Args:
            files: Descriptors supplied by a scanner, in any order
            stopped_flag: Returns True once the run should stop; checked at
                every bucket, before every file hash and every comparison
            on_group: Called with each DuplicateGroup as soon as it is confirmed
            progress_callback: (stage, current, total) per stage
        Returns:
            DetectionReport with groups sorted by wasted space
        Raises:
            ValueError: If files is None
        """
        if files is None:
            raise ValueError("files cannot be None")

        stats = DetectionStats()
        total_start_time = time.time()
        emitted: List[DuplicateGroup] = []
        unique_files = self._unique(files)

        self._ensure_cache_loaded()

        def emit(group: DuplicateGroup) -> None:
            emitted.append(group)
            if on_group:
                try:
                    on_group(group)
                except Exception as e:
                    logger.warning(f"Error in duplicate group handler: {e}")

        degree = self.options.degree_of_parallelism
        logger.debug(f"Detecting duplicates among {len(unique_files)} files with {degree} workers")

        with ThreadPoolExecutor(max_workers=degree, thread_name_prefix="twinscan-hash") as pool:
            grouper = FileGrouperImpl(self.partial_hasher, self.full_hasher, executor=pool, stats=stats)
            size_stage = SizeStageImpl(grouper, min_size_bytes=self.options.min_size_bytes)
            pipeline = self._build_pipeline(grouper)
            verify_stage = VerifyStageImpl(self.options, self.verifier, stats)

            start_time = time.time()
            size_groups = size_stage.process(
                unique_files,
                stopped_flag=stopped_flag,
                progress_callback=progress_callback
            )
            self._update_stats(stats, Stage.SIZE, time.time() - start_time, size_groups)

            for size_group in size_groups:
                if self._stopped(stopped_flag):
                    break
                self._refine(size_group, 0, pipeline, verify_stage, stats, emit, stopped_flag, progress_callback)

        # Single-threaded, after every worker is gone
        if self.cache is not None:
            self.cache.flush()

        cancelled = self._stopped(stopped_flag)
        stats.total_time = time.time() - total_start_time
        report = DetectionReport(groups=Sorter.sort_groups(emitted), stats=stats, cancelled=cancelled)
        self.last_report = report

        if cancelled:
            logger.info(f"Detection cancelled; returning {len(emitted)} groups found so far")
        logger.debug(f"Found {len(report.groups)} duplicate groups in {stats.total_time:.3f}s")
        return report

    def find_duplicates_in_paths(
            self,
            paths: Iterable[Union[str, os.PathLike]],
            stopped_flag: StoppedFlag = None,
            on_group: GroupCallback = None,
            progress_callback: ProgressCallback = None
    ) -> DetectionReport:
        """
        Convenience entry point for plain paths: blanks are dropped, missing
        files are skipped, the rest are stat-ed now. Several spellings of one
        file (relative, absolute, hard links) count as that file once.
        """
        if paths is None:
            raise ValueError("paths cannot be None")

        seen = set()
        files = []
        for path in paths:
            path = os.fspath(path) if path is not None else ""
            if not path.strip():
                continue
            descriptor = FileDescriptor.from_path(path)
            if descriptor is None or descriptor.identity in seen:
                continue
            seen.add(descriptor.identity)
            files.append(descriptor)

        return self.find_duplicates(
            files,
            stopped_flag=stopped_flag,
            on_group=on_group,
            progress_callback=progress_callback
        )

    def iter_duplicates(
            self,
            files: Iterable[FileDescriptor],
            stopped_flag: StoppedFlag = None,
            progress_callback: ProgressCallback = None
    ) -> Generator[DuplicateGroup, None, DetectionReport]:
        """
        Runs detection on a background thread and yields each group as it is
        confirmed. The generator's return value is the final report.

        Closing the generator early stops the run and waits for the worker
        to finish the file it is on; `last_report` then holds the partial
        report with `cancelled=True`.
        """
        channel: "queue.Queue[object]" = queue.Queue()
        done = object()
        outcome = {}
        closed = threading.Event()

        def stopped() -> bool:
            return closed.is_set() or self._stopped(stopped_flag)

        def run():
            try:
                outcome["report"] = self.find_duplicates(
                    files,
                    stopped_flag=stopped,
                    on_group=channel.put,
                    progress_callback=progress_callback
                )
            except Exception as e:
                outcome["error"] = e
            finally:
                channel.put(done)

        worker = threading.Thread(target=run, name="twinscan-engine", daemon=True)
        worker.start()

        try:
            while True:
                item = channel.get()
                if item is done:
                    break
                yield item
        finally:
            closed.set()
            worker.join()

        if "error" in outcome:
            raise outcome["error"]
        return outcome["report"]

    def _refine(
            self,
            group: CandidateGroup,
            depth: int,
            pipeline: List[Tuple[Stage, HashStage]],
            verify_stage: VerifyStageImpl,
            stats: DetectionStats,
            emit: Callable[[DuplicateGroup], None],
            stopped_flag: StoppedFlag,
            progress_callback: ProgressCallback,
    ) -> None:
        """Pushes one bucket through the remaining stages, depth-first."""
        if self._stopped(stopped_flag):
            return

        if depth == len(pipeline):
            start_time = time.time()
            confirmed = verify_stage.process([group], stopped_flag, progress_callback)
            self._update_stats(stats, Stage.VERIFY, time.time() - start_time, confirmed, len(group.files))
            for duplicate_group in confirmed:
                emit(duplicate_group)
            return

        stage_name, stage = pipeline[depth]
        start_time = time.time()
        refined = stage.process([group], stopped_flag=stopped_flag, progress_callback=progress_callback)
        self._update_stats(stats, stage_name, time.time() - start_time, refined, len(group.files))

        for sub_group in refined:
            self._refine(sub_group, depth + 1, pipeline, verify_stage, stats, emit, stopped_flag, progress_callback)

    def _build_pipeline(self, grouper: FileGrouperImpl) -> List[Tuple[Stage, HashStage]]:
        """Builds the hash stages; the partial stage is optional."""
        pipeline = []
        if self.options.partial_hash_enabled:
            pipeline.append((Stage.PARTIAL, PartialHashStageImpl(grouper)))
        pipeline.append((Stage.FULL, FullHashStageImpl(grouper)))
        return pipeline

    def _ensure_cache_loaded(self) -> None:
        load = getattr(self.cache, "load", None)
        if load is not None and not getattr(self.cache, "loaded", True):
            load()

    @staticmethod
    def _unique(files: Iterable[FileDescriptor]) -> List[FileDescriptor]:
        """Drops repeated files, keeping the first descriptor for each."""
        seen = set()
        unique = []
        for file in files:
            if file.identity in seen:
                logger.debug(f"Skipping {file.path}: same file as an earlier entry")
                continue
            seen.add(file.identity)
            unique.append(file)
        return unique

    @staticmethod
    def _stopped(stopped_flag: StoppedFlag) -> bool:
        return bool(stopped_flag and stopped_flag())

    @staticmethod
    def _update_stats(
            stats: DetectionStats,
            stage: Stage,
            duration: float,
            groups: List[Union[CandidateGroup, DuplicateGroup]],
            files_in: Optional[int] = None,
    ):
        """
        Records groups produced and files consumed by one stage call.
        """
        if files_in is None:
            files_in = sum(len(g.files) for g in groups)
        stats.update_stage(
            stage_name=stage.value,
            groups_found=len(groups),
            files_processed=files_in,
            duration=duration
        )
