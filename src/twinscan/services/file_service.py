"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

services/file_service.py
Safe removal of duplicate copies: files go to the system trash, never get erased.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from send2trash import send2trash

from twinscan.core.interfaces import Verifier
from twinscan.core.verifier import FileVerifierImpl, same_file
from twinscan.services.duplicate_service import DeletionPlan

logger = logging.getLogger(__name__)


@dataclass
class TrashOutcome:
    """What actually happened when a set of deletion plans was applied."""
    trashed: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    bytes_freed: int = 0


class FileService:
    @staticmethod
    def move_to_trash(file_path: str):
        """Moves a file to the system trash."""
        path = Path(file_path).resolve()

        if not path.exists():
            raise RuntimeError(f"File not found: {path}")

        try:
            send2trash(str(path))
        except Exception as e:
            raise RuntimeError(f"Failed to move to trash: {e}") from e

    @classmethod
    def move_multiple_to_trash(cls, file_paths: List[str]):
        """Moves multiple files to trash with error aggregation."""
        errors = []
        for path in file_paths:
            try:
                cls.move_to_trash(path)
            except RuntimeError as e:
                errors.append((path, str(e)))

        if errors:
            error_summary = "\n".join(
                f"  • {Path(p).name}: {msg.split(':')[-1].strip()}"
                for p, msg in errors[:5]
            )
            if len(errors) > 5:
                error_summary += f"\n  • ...and {len(errors) - 5} more files"
            raise RuntimeError(
                f"Failed to move {len(errors)} file(s) to trash:\n{error_summary}"
            )

    @classmethod
    def trash_duplicates(cls, plans: List[DeletionPlan], verifier: Optional[Verifier] = None) -> TrashOutcome:
        """
        Applies deletion plans, one file at a time.

        Each victim is compared byte by byte with its group's keeper right
        before it is trashed; if the keeper has gone, the files differ now, or
        the victim is the keeper under another name, the victim is left alone
        and reported as failed.
        """
        verifier = verifier or FileVerifierImpl()
        outcome = TrashOutcome()

        for plan in plans:
            for victim in plan.delete:
                if same_file(plan.keep, victim):
                    reason = "same file as the kept copy"
                    logger.warning(f"Not trashing {victim}: {reason}")
                    outcome.failed.append((victim, reason))
                    continue
                if not verifier.identical(plan.keep, victim):
                    reason = "no longer identical to the kept copy"
                    logger.warning(f"Not trashing {victim}: {reason}")
                    outcome.failed.append((victim, reason))
                    continue
                try:
                    cls.move_to_trash(victim)
                except RuntimeError as e:
                    logger.warning(f"Could not trash {victim}: {e}")
                    outcome.failed.append((victim, str(e)))
                    continue
                outcome.trashed.append(victim)
                outcome.bytes_freed += plan.group.size

        return outcome
