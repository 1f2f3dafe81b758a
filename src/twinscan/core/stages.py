"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/stages.py
Pipeline stages of the duplicate detection engine.

CLASS HIERARCHY
---------------
SizeStageImpl          : Initial exact-size bucketing (SizeStage interface)
HashStageBase          : Shared loop for stages that split buckets by a hash
PartialHashStageImpl   : Sampled head/middle/tail fingerprint (optional stage)
FullHashStageImpl      : Complete-content hash, cache-assisted
VerifyStageImpl        : Anchor-based byte verification, emits DuplicateGroups

STAGE CONTRACTS
---------------
Each stage implements a `process()` method that:
  • Accepts candidate buckets from the previous stage
  • Returns refined buckets (never fewer than two members each)
  • Reports progress via callback (stage name, processed count, total count)
  • Respects cancellation via stopped_flag callback

A hash stage may split a bucket but never merge two, so a pair of files
separated at one stage can never meet again. Only the partial hash is
allowed to produce false positives; every later stage removes them.
"""

import logging
from typing import List, Dict

from twinscan.core.interfaces import (
    SizeStage, HashStage, VerifyStage, Verifier, StoppedFlag, ProgressCallback,
)
from twinscan.core.grouper import FileGrouperImpl
from twinscan.core.models import (
    FileDescriptor, CandidateGroup, DuplicateGroup, DetectionOptions, DetectionStats, Stage,
)
from twinscan.core.verifier import FileVerifierImpl, same_file

logger = logging.getLogger(__name__)


# =============================
# Individual Stages
# =============================
class SizeStageImpl(SizeStage):
    def __init__(self, grouper: FileGrouperImpl, min_size_bytes: int = 0):
        self.grouper = grouper
        self.min_size_bytes = min_size_bytes

    def process(
            self,
            files: List[FileDescriptor],
            stopped_flag: StoppedFlag = None,
            progress_callback: ProgressCallback = None
    ) -> List[CandidateGroup]:
        """
        Group by file size, ignoring files below the minimum size.
        Returns buckets with 2+ files of the same size, largest size first.
        """
        if stopped_flag and stopped_flag():
            return []

        eligible = [f for f in files if f.size >= self.min_size_bytes]
        size_groups = self.grouper.group_by_size(eligible)
        groups = [
            CandidateGroup(size=size, files=files_list)
            for size, files_list in sorted(size_groups.items(), key=lambda item: -item[0])
        ]

        if progress_callback:
            total_files = len(files)
            progress_callback(Stage.SIZE.display_name, total_files, total_files)

        return groups


class HashStageBase(HashStage):
    """
    Splits every incoming bucket by a per-file hash.
    Subclasses only decide which hash.
    """

    stage = Stage.FULL

    def __init__(self, grouper: FileGrouperImpl):
        self.grouper = grouper

    def get_stage_name(self) -> str:
        return self.stage.value

    def _group_files(self, files: List[FileDescriptor], stopped_flag: StoppedFlag) -> Dict[str, List[FileDescriptor]]:
        raise NotImplementedError

    def process(
            self,
            groups: List[CandidateGroup],
            stopped_flag: StoppedFlag = None,
            progress_callback: ProgressCallback = None
    ) -> List[CandidateGroup]:
        if stopped_flag and stopped_flag():
            return []

        refined = []
        total_files = sum(len(group.files) for group in groups)
        processed_files = 0

        for group in groups:
            if stopped_flag and stopped_flag():
                break

            hash_groups = self._group_files(group.files, stopped_flag)
            for files_in_group in hash_groups.values():
                refined.append(CandidateGroup(size=group.size, files=files_in_group))

            processed_files += len(group.files)
            if progress_callback:
                progress_callback(self.stage.display_name, processed_files, total_files)

        return refined


class PartialHashStageImpl(HashStageBase):
    stage = Stage.PARTIAL

    def _group_files(self, files, stopped_flag):
        return self.grouper.group_by_partial_hash(files, stopped_flag)


class FullHashStageImpl(HashStageBase):
    stage = Stage.FULL

    def _group_files(self, files, stopped_flag):
        return self.grouper.group_by_full_hash(files, stopped_flag)


class VerifyStageImpl(VerifyStage):
    """
    Turns full-hash buckets into duplicate groups.

    The first member anchors the bucket; each other member joins it if it is
    byte-identical, or if the policy does not require a byte comparison for
    this size. Members rejected by the anchor are anchored again among
    themselves, so two real twins are never lost because a third file
    happened to collide with them.
    """

    def __init__(
            self,
            options: DetectionOptions,
            verifier: Verifier = None,
            stats: DetectionStats = None,
    ):
        self.options = options
        self.verifier = verifier or FileVerifierImpl()
        self.stats = stats

    def process(
            self,
            groups: List[CandidateGroup],
            stopped_flag: StoppedFlag = None,
            progress_callback: ProgressCallback = None
    ) -> List[DuplicateGroup]:
        confirmed = []
        total_files = sum(len(g.files) for g in groups)
        processed_files = 0

        for group in groups:
            if stopped_flag and stopped_flag():
                break

            must_verify = FileVerifierImpl.requires_verification(group.size, self.options)
            remaining = list(group.files)
            while len(remaining) >= 2:
                anchor, candidates = remaining[0], remaining[1:]
                accepted = [anchor]
                rejected = []
                for candidate in candidates:
                    if stopped_flag and stopped_flag():
                        return confirmed
                    if same_file(anchor.path, candidate.path):
                        logger.warning(f"Dropping {candidate.path}: same file as {anchor.path}")
                        continue
                    if not must_verify:
                        accepted.append(candidate)
                        continue
                    same = self.verifier.identical(anchor.path, candidate.path)
                    if self.stats is not None:
                        self.stats.record_verification(same)
                    if same:
                        accepted.append(candidate)
                    else:
                        logger.info(f"Hash match rejected by byte comparison: {anchor.path} vs {candidate.path}")
                        rejected.append(candidate)

                if len(accepted) >= 2:
                    confirmed.append(DuplicateGroup.from_files(accepted))
                remaining = rejected

            processed_files += len(group.files)
            if progress_callback:
                progress_callback(Stage.VERIFY.display_name, processed_files, total_files)

        return confirmed
