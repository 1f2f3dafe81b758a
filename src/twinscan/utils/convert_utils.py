"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

utils/convert_utils.py
Size strings for the CLI and options, and timestamps for keep-rule reasons.
"""
import re
import time

# Binary multiples, indexed by power of 1024
SIZE_UNITS = ("B", "KB", "MB", "GB", "TB", "PB")
_SIZE_PATTERN = re.compile(r"^(-?\d+(?:\.\d+)?)\s*([KMGTP]?)B?$")


class ConvertUtils:
    @staticmethod
    def bytes_to_human(size_bytes: int) -> str:
        """Formats a byte count with two decimals, e.g. 1.50KB."""
        if size_bytes < 0:
            return "0B"
        value = float(size_bytes)
        for unit in SIZE_UNITS:
            if value < 1024:
                return f"{value:.2f}{unit}"
            value /= 1024
        return f"{value:.2f}EB"

    @staticmethod
    def human_to_bytes(size_str: str) -> int:
        """
        Parses '1.5GB', '2048KB', '1K', '1000' and the like (case-insensitive).
        Raises ValueError for negative sizes or anything else.
        """
        text = size_str.strip().upper()
        match = _SIZE_PATTERN.match(text)
        if match is None:
            raise ValueError(f"Invalid size format: '{text}'. Supported formats: 1.5GB, 2048KB, 1000, 1K, 1M, etc.")

        value = float(match.group(1))
        if value < 0:
            raise ValueError(f"Negative size not allowed: '{text}'")
        power = SIZE_UNITS.index(match.group(2) + "B") if match.group(2) else 0
        return int(value * 1024 ** power)

    @staticmethod
    def mtime_ns_to_human(mtime_ns: int, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
        """Local-time string for a st_mtime_ns value."""
        try:
            return time.strftime(fmt, time.localtime(mtime_ns / 1_000_000_000))
        except (OverflowError, OSError, ValueError):
            return "Invalid timestamp"
