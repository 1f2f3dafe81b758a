from .duplicate_service import DuplicateService, DeletionPlan, DuplicateStatistics
from .file_service import FileService, TrashOutcome

__all__ = ["DuplicateService", "DeletionPlan", "DuplicateStatistics", "FileService", "TrashOutcome"]
