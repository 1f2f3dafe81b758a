"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/sorter.py
Pure sorting logic for duplicate groups, with zero dependencies outside core.
"""
from typing import Iterable, List
from twinscan.core.models import DuplicateGroup


class Sorter:
    """
    Orders duplicate groups for output.
    Sorting priority (applied lexicographically):
    1. Wasted space, largest first
    2. Display name, case-insensitive, then case-sensitive
    3. Member paths, so equal names still sort the same way every run
    """

    @staticmethod
    def sort_key(group: DuplicateGroup):
        return (-group.wasted_space, group.display_name.casefold(), group.display_name, group.paths)

    @staticmethod
    def sort_groups(groups: Iterable[DuplicateGroup]) -> List[DuplicateGroup]:
        return sorted(groups, key=Sorter.sort_key)
