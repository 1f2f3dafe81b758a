"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

services/duplicate_service.py
Post-detection operations on duplicate groups: choosing which copy to keep,
summarising the result and narrowing it down.
Nothing here touches the file system except reading modification times.
"""
import logging
import os
from dataclasses import dataclass
from typing import List, Tuple, Optional, Iterable, Dict

from twinscan.core.models import DuplicateGroup, KeepRule
from twinscan.utils.convert_utils import ConvertUtils

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeletionPlan:
    """One group reduced to a single survivor."""
    group: DuplicateGroup
    keep: str
    delete: Tuple[str, ...]
    reason: str

    @property
    def bytes_to_free(self) -> int:
        return self.group.size * len(self.delete)


@dataclass
class DuplicateStatistics:
    """Aggregate numbers over a list of duplicate groups."""
    total_groups: int = 0
    total_duplicates: int = 0
    total_wasted_space: int = 0
    files_to_delete: int = 0
    space_to_recover: int = 0
    average_group_size: float = 0.0
    largest_waste: int = 0

    def summary(self) -> str:
        return "\n".join([
            f"Duplicate groups: {self.total_groups}",
            f"Files in groups: {self.total_duplicates}",
            f"Files to delete: {self.files_to_delete}",
            f"Wasted space: {ConvertUtils.bytes_to_human(self.total_wasted_space)}",
            f"Space to recover: {ConvertUtils.bytes_to_human(self.space_to_recover)}",
            f"Average group size: {self.average_group_size:.2f}",
            f"Largest single waste: {ConvertUtils.bytes_to_human(self.largest_waste)}",
        ])


class DuplicateService:
    @staticmethod
    def remove_paths_from_groups(groups: List[DuplicateGroup], file_paths: Iterable[str]) -> List[DuplicateGroup]:
        """
        Removes the given paths from every group.
        Groups left with fewer than 2 files are discarded.

        Args:
            groups: Duplicate groups to update.
            file_paths: Paths to remove.

        Returns:
            New list of groups; the input groups are not modified.
        """
        removed = set(file_paths)
        updated_groups = []
        for group in groups:
            remaining = tuple(p for p in group.paths if p not in removed)
            if len(remaining) >= 2:
                updated_groups.append(DuplicateGroup(size=group.size, paths=remaining))
        return updated_groups

    @staticmethod
    def choose_keeper(group: DuplicateGroup, rule: KeepRule = KeepRule.FIRST,
                      preferred_folder: Optional[str] = None) -> Tuple[str, str]:
        """
        Picks the surviving path of a group.
        Returns (path, human-readable reason).

        NEWEST and OLDEST stat every member; a member that can no longer be
        stat-ed is never chosen. If no member can be stat-ed the first path
        is kept.
        """
        if rule == KeepRule.FIRST:
            return group.paths[0], "first in group"

        if rule == KeepRule.SHORTEST_PATH:
            keeper = min(group.paths, key=lambda p: (len(p), p))
            return keeper, "shortest path"

        if rule == KeepRule.PREFERRED_FOLDER:
            if not preferred_folder:
                raise ValueError("A preferred folder is required for this keep rule")
            folder = os.path.normcase(os.path.abspath(preferred_folder))
            for path in group.paths:
                candidate = os.path.normcase(os.path.abspath(path))
                if candidate.startswith(folder + os.sep):
                    return path, f"inside {preferred_folder}"
            return group.paths[0], "first in group (none in preferred folder)"

        if rule in (KeepRule.NEWEST, KeepRule.OLDEST):
            mtimes: Dict[str, int] = {}
            for path in group.paths:
                try:
                    mtimes[path] = os.stat(path).st_mtime_ns
                except OSError as e:
                    logger.debug(f"Cannot read modification time of {path}: {e}")
            if not mtimes:
                return group.paths[0], "first in group (no readable timestamps)"
            # Ties keep group order
            order = {p: i for i, p in enumerate(group.paths)}
            if rule == KeepRule.NEWEST:
                keeper = min(mtimes, key=lambda p: (-mtimes[p], order[p]))
                return keeper, f"newest ({ConvertUtils.mtime_ns_to_human(mtimes[keeper])})"
            keeper = min(mtimes, key=lambda p: (mtimes[p], order[p]))
            return keeper, f"oldest ({ConvertUtils.mtime_ns_to_human(mtimes[keeper])})"

        raise ValueError(f"Unknown keep rule: {rule}")

    @staticmethod
    def plan_deletions(groups: List[DuplicateGroup], rule: KeepRule = KeepRule.FIRST,
                       preferred_folder: Optional[str] = None) -> List[DeletionPlan]:
        """Builds one DeletionPlan per group, in group order."""
        plans = []
        for group in groups:
            keep, reason = DuplicateService.choose_keeper(group, rule, preferred_folder)
            delete = tuple(p for p in group.paths if p != keep)
            plans.append(DeletionPlan(group=group, keep=keep, delete=delete, reason=reason))
        return plans

    @staticmethod
    def keep_only_one_file_per_group(
            groups: List[DuplicateGroup],
            rule: KeepRule = KeepRule.FIRST,
            preferred_folder: Optional[str] = None
    ) -> Tuple[List[str], List[DuplicateGroup]]:
        """
        Keeps one file per group and marks the rest for deletion.
        Returns:
            - List of file paths to be deleted
            - Updated list of duplicate groups
        """
        files_to_delete = []
        for plan in DuplicateService.plan_deletions(groups, rule, preferred_folder):
            files_to_delete.extend(plan.delete)

        updated_groups = DuplicateService.remove_paths_from_groups(groups, files_to_delete)
        return files_to_delete, updated_groups

    @staticmethod
    def calculate_statistics(groups: List[DuplicateGroup]) -> DuplicateStatistics:
        if not groups:
            return DuplicateStatistics()

        total_duplicates = sum(g.count for g in groups)
        wasted = [g.wasted_space for g in groups]
        return DuplicateStatistics(
            total_groups=len(groups),
            total_duplicates=total_duplicates,
            total_wasted_space=sum(wasted),
            files_to_delete=total_duplicates - len(groups),
            space_to_recover=sum(wasted),
            average_group_size=total_duplicates / len(groups),
            largest_waste=max(wasted),
        )

    @staticmethod
    def filter_by_size(groups: List[DuplicateGroup], min_size: Optional[int] = None,
                       max_size: Optional[int] = None) -> List[DuplicateGroup]:
        """Keeps groups whose per-file size is within [min_size, max_size]."""
        return [
            g for g in groups
            if (min_size is None or g.size >= min_size) and (max_size is None or g.size <= max_size)
        ]

    @staticmethod
    def filter_by_extension(groups: List[DuplicateGroup], extensions: Iterable[str]) -> List[DuplicateGroup]:
        """
        Keeps groups whose representative file has one of the extensions.
        Extensions are matched case-insensitively, with or without the dot.
        """
        wanted = {
            (ext if ext.startswith(".") else f".{ext}").lower()
            for ext in (e.strip() for e in extensions) if ext
        }
        if not wanted:
            return list(groups)
        return [g for g in groups if os.path.splitext(g.display_name)[1].lower() in wanted]

    @staticmethod
    def filter_by_path(groups: List[DuplicateGroup], fragment: str) -> List[DuplicateGroup]:
        """Keeps groups with at least one member path containing the fragment (case-insensitive)."""
        if not fragment:
            return list(groups)
        needle = fragment.casefold()
        return [g for g in groups if any(needle in p.casefold() for p in g.paths)]
