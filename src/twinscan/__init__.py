"""
twinscan: fast duplicate file finder.

Core features:
- Staged detection: size → sampled partial hash → full xxHash64 → optional byte verification
- Persistent cross-run hash cache keyed by path, size and modification time
- Bounded parallel hashing with cooperative cancellation
- Safe deletion to system trash (via send2trash)
- CLI interface for headless usage
"""

from importlib.metadata import version as _version, PackageNotFoundError

try:
    __version__ = _version("twinscan")
except PackageNotFoundError:
    __version__ = "0.0.0"

# Public API
from twinscan.commands import DetectionCommand
from twinscan.core import (
    DuplicateDetectionEngine, HashCache, FileDescriptor, DuplicateGroup,
    DetectionOptions, DetectionParams, DetectionReport, KeepRule)
from twinscan.utils.convert_utils import ConvertUtils
from twinscan.services import DuplicateService, FileService

__all__ = [
    "DetectionCommand",
    "DuplicateDetectionEngine",
    "HashCache",
    "FileDescriptor",
    "DuplicateGroup",
    "DetectionOptions",
    "DetectionParams",
    "DetectionReport",
    "KeepRule",
    "ConvertUtils",
    "DuplicateService",
    "FileService",
    "__version__",
]
