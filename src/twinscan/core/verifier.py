"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/verifier.py
Byte-exact comparison of two files, used before trusting a hash match.
"""

import logging
import os

from twinscan.core.interfaces import Verifier
from twinscan.core.models import DetectionOptions, KB

logger = logging.getLogger(__name__)

COMPARE_BUFFER_SIZE = 256 * KB


def _same_path(path_a: str, path_b: str) -> bool:
    return os.path.normcase(os.path.abspath(path_a)) == os.path.normcase(os.path.abspath(path_b))


def same_file(path_a: str, path_b: str) -> bool:
    """
    True when both paths name one file on disk: the same spelling, another
    spelling, a symlink or a hard link. A path that cannot be stat-ed is
    only the same file as an identical spelling.
    """
    if _same_path(path_a, path_b):
        return True
    try:
        return os.path.samefile(path_a, path_b)
    except OSError:
        return False


class FileVerifierImpl(Verifier):
    """
    Lock-step streaming comparison with a fixed buffer.
    Any read failure counts as "not identical".
    """

    def __init__(self, buffer_size: int = COMPARE_BUFFER_SIZE):
        if buffer_size <= 0:
            raise ValueError("Buffer size must be positive")
        self.buffer_size = buffer_size

    @staticmethod
    def requires_verification(size: int, options: DetectionOptions) -> bool:
        """
        True when a hash match must be confirmed byte by byte: either the
        caller asked for it, or the file is large enough that a collision
        would be too costly.
        """
        return options.verify_byte_by_byte or size >= options.force_verify_above_bytes

    def identical(self, path_a: str, path_b: str) -> bool:
        if _same_path(path_a, path_b):
            return True

        try:
            if os.path.getsize(path_a) != os.path.getsize(path_b):
                return False
        except OSError as e:
            logger.debug(f"Cannot compare {path_a} and {path_b}: {e}")
            return False

        try:
            with open(path_a, "rb") as fa, open(path_b, "rb") as fb:
                while True:
                    chunk_a = fa.read(self.buffer_size)
                    chunk_b = fb.read(self.buffer_size)
                    if len(chunk_a) != len(chunk_b):
                        return False
                    if not chunk_a:
                        return True
                    if chunk_a != chunk_b:
                        return False
        except OSError as e:
            logger.warning(f"Byte comparison failed for {path_a} and {path_b}: {e}")
            return False
