#!/usr/bin/env python3
"""
twinscan CLI: command line interface for duplicate file detection and removal.
All operations are safe: deletion moves files to system trash, never permanent erase.
"""
from __future__ import annotations
import argparse
import signal
import sys
import os
import threading
import time
from pathlib import Path
from typing import List, Optional, NoReturn
import logging

from twinscan.core.models import DetectionOptions, DetectionParams, DetectionReport, DuplicateGroup, KeepRule
from twinscan.commands import DetectionCommand
from twinscan.utils.convert_utils import ConvertUtils
from twinscan.services.file_service import FileService
from twinscan.services.duplicate_service import DuplicateService, DeletionPlan
from twinscan.aliases import KEEP_ALIASES, KEEP_CHOICES, KEEP_HELP_TEXT, VERIFY_HELP_TEXT, EPILOG_TEXT

LOG_FORMAT = "%(levelname)-8s | %(name)-25s | %(message)s"


class CLIApplication:
    """Main CLI application controller."""

    def __init__(self):
        self.start_time: float = time.time()
        self.verbose: bool = False
        self.quiet: bool = False
        self._stop_event = threading.Event()

        # Fix encoding for Windows consoles to prevent UnicodeEncodeError
        for stream in (sys.stdout, sys.stderr):
            if hasattr(stream, "reconfigure"):
                stream.reconfigure(encoding='utf-8')

    @staticmethod
    def parse_args(args=None) -> argparse.Namespace:
        """Parse command-line arguments."""
        parser = argparse.ArgumentParser(
            prog="twinscan",
            description="twinscan: fast duplicate file finder with safe deletion",
            formatter_class=argparse.RawTextHelpFormatter,
            epilog=EPILOG_TEXT
        )

        parser.add_argument(
            "--input", "-i",
            required=True,
            type=str,
            help="Input directory to scan for duplicates"
        )

        # Detection options
        parser.add_argument(
            "--min-size", "-m",
            default="256KB",
            type=str,
            metavar='',
            help="Minimum file size (e.g., 500KB, 1MB). Default: 256KB"
        )
        parser.add_argument(
            "--excluded-dirs", '-e',
            nargs="+",
            default=[],
            type=str,
            metavar='',
            dest="excluded_dirs",
            help="Excluded/ignored directories (space separated)"
        )
        parser.add_argument(
            "--verify",
            action="store_true",
            help=VERIFY_HELP_TEXT
        )
        parser.add_argument(
            "--force-verify-above",
            default="32MB",
            type=str,
            metavar='',
            help="Always compare byte by byte at or above this size. Default: 32MB"
        )
        parser.add_argument(
            "--workers", "-w",
            default=None,
            type=int,
            metavar='',
            help="Number of hashing threads. Default: half of the CPU count"
        )
        parser.add_argument(
            "--no-partial",
            action="store_true",
            help="Skip the sampled partial-hash pre-filter"
        )

        # Cache options
        parser.add_argument(
            "--cache-file",
            default=None,
            type=str,
            metavar='',
            help="Location of the hash cache. Default: per-user cache directory"
        )
        parser.add_argument(
            "--no-cache",
            action="store_true",
            help="Do not read or write the persistent hash cache"
        )

        # Actions
        parser.add_argument(
            "--keep-one",
            action="store_true",
            help="Keep one file per duplicate group and move the rest to trash. "
                 "Always shows preview before deletion for safety."
        )
        parser.add_argument(
            "--keep",
            choices=KEEP_CHOICES,
            default="first",
            type=str,
            help=KEEP_HELP_TEXT
        )
        parser.add_argument(
            "--preferred-folder",
            default=None,
            type=str,
            metavar='',
            help="Folder whose copies are kept with --keep preferred-folder"
        )

        # Output options
        parser.add_argument(
            "--force",
            action="store_true",
            help="Skip confirmation prompt when used with --keep-one (for automation/scripts)"
        )
        parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress non-essential output"
        )
        parser.add_argument(
            "--verbose", "-v",
            action="store_true",
            help="Show detailed statistics, progress and per-file errors"
        )

        return parser.parse_args(args)

    def validate_args(self, args: argparse.Namespace) -> None:
        """Validate command-line arguments before execution."""
        if args.force and not args.keep_one:
            self.error_exit("--force can only be used with --keep-one")

        if args.keep_one and not args.force:
            if not sys.stdin.isatty() or not sys.stdout.isatty():
                self.error_exit(
                    "Cannot request interactive confirmation in non-interactive session.\n"
                    "Use --force flag to proceed without confirmation when piping output or running in scripts."
                )

        root_path = Path(args.input).expanduser().resolve()
        if not root_path.exists():
            self.error_exit(f"Directory not found: {args.input}")
        if not root_path.is_dir():
            self.error_exit(f"Path is not a directory: {args.input}")

        try:
            ConvertUtils.human_to_bytes(args.min_size)
            ConvertUtils.human_to_bytes(args.force_verify_above)
        except ValueError as e:
            self.error_exit(f"Invalid size format: {e}")

        if args.workers is not None and args.workers < 1:
            self.error_exit("--workers must be at least 1")

        if args.no_cache and args.cache_file:
            self.error_exit("--cache-file cannot be combined with --no-cache")

        if args.keep == "preferred-folder":
            if not args.preferred_folder:
                self.error_exit("--keep preferred-folder requires --preferred-folder")
            if not Path(args.preferred_folder).expanduser().is_dir():
                self.warning(f"Preferred folder not found: {args.preferred_folder}")

        for excl_dir in args.excluded_dirs:
            excl_path = Path(excl_dir).expanduser().resolve()
            if not excl_path.exists():
                self.warning(f"Excluded directory not found: {excl_dir}")
            elif not excl_path.is_dir():
                self.warning(f"Excluded path is not a directory: {excl_dir}")

    def create_params(self, args: argparse.Namespace) -> DetectionParams:
        """Create DetectionParams from CLI arguments."""
        try:
            options = DetectionOptions.from_human_readable(
                min_size_str=args.min_size,
                force_verify_above_str=args.force_verify_above,
                verify_byte_by_byte=args.verify,
                max_degree_of_parallelism=args.workers,
                partial_hash_enabled=not args.no_partial,
            )
            excluded_dirs = [str(Path(item.strip()).expanduser().resolve()) for item in args.excluded_dirs]

            return DetectionParams(
                root_dir=str(Path(args.input).expanduser().resolve()),
                options=options,
                excluded_dirs=excluded_dirs,
                cache_path=str(Path(args.cache_file).expanduser()) if args.cache_file else None,
                use_cache=not args.no_cache,
            )
        except ValueError as e:
            self.error_exit(f"Parameter error: {e}")

    def progress_callback(self, stage: str, current: int, total: Optional[int]) -> None:
        """CLI progress callback - shows progress in console."""
        if not self.verbose:
            return

        if total and total > 0:
            percent = (current / total) * 100
            sys.stderr.write(f"\r  [{stage}] {current}/{total} ({percent:.1f}%)")
        else:
            sys.stderr.write(f"\r  [{stage}] {current} files processed...")
        sys.stderr.flush()

    def stopped_flag(self) -> bool:
        """True once Ctrl+C has been pressed."""
        return self._stop_event.is_set()

    def install_signal_handler(self):
        """
        First Ctrl+C asks the engine to stop and keeps the partial result;
        a second one aborts immediately.
        """
        def handler(signum, frame):
            if self._stop_event.is_set():
                raise KeyboardInterrupt
            self._stop_event.set()
            sys.stderr.write("\n⚠️  Stopping... (press Ctrl+C again to abort)\n")

        if threading.current_thread() is threading.main_thread():
            return signal.signal(signal.SIGINT, handler)
        return None

    def run_detection(self, params: DetectionParams) -> DetectionReport:
        """Execute detection workflow."""
        command = DetectionCommand()
        if self.verbose:
            print("Finding duplicates...")

        try:
            report = command.execute(
                params,
                progress_callback=self.progress_callback if self.verbose else None,
                stopped_flag=self.stopped_flag
            )
        except (RuntimeError, ValueError) as e:
            self.error_exit(f"Detection failed: {e}")

        if self.verbose:
            sys.stderr.write("\n")
            print()
            print(report.stats.print_summary())
            if report.errors:
                print("\nErrors:")
                for error in report.errors:
                    print(f"  {error}")

        if report.cancelled:
            self.warning(f"Detection cancelled; showing {len(report.groups)} groups found so far")

        return report

    def output_results(self, groups: List[DuplicateGroup]) -> None:
        """Output duplicate groups as plain text, already sorted by wasted space."""
        if self.quiet:
            return

        if not groups:
            print("No duplicate groups found.")
            return

        stats = DuplicateService.calculate_statistics(groups)
        print(f"\nFound {stats.total_groups} duplicate groups ({stats.total_duplicates} files)")

        for idx, group in enumerate(groups, 1):
            size_str = ConvertUtils.bytes_to_human(group.size)
            wasted_str = ConvertUtils.bytes_to_human(group.wasted_space)
            print(f"\n📁 Group {idx} | {group.display_name} | Size: {size_str} | "
                  f"Files: {group.count} | Wasted: {wasted_str}")
            for path in group.paths:
                print(f"   {path}")

        print(f"\nTotal wasted space: {ConvertUtils.bytes_to_human(stats.total_wasted_space)}")

    def print_plan(self, plans: List[DeletionPlan]) -> None:
        print()
        for idx, plan in enumerate(plans, 1):
            size_str = ConvertUtils.bytes_to_human(plan.group.size)
            print(f"📁 Group {idx} | Size: {size_str} | Files: {plan.group.count}")
            print("-" * 60)
            print(f"   [KEEP] {plan.keep}")
            print(f"          Reason: {plan.reason}")
            for path in plan.delete:
                print(f"   [DEL]  {path}")
            print()

    def execute_keep_one(self, groups: List[DuplicateGroup], rule: KeepRule,
                         preferred_folder: Optional[str] = None, force: bool = False) -> None:
        """Keep one file per group, trash the rest. Always shows preview before deletion."""
        if not groups:
            if not self.quiet:
                print("No duplicate groups found.")
            return

        try:
            plans = DuplicateService.plan_deletions(groups, rule, preferred_folder)
        except ValueError as e:
            self.error_exit(str(e))

        files_to_delete = [path for plan in plans for path in plan.delete]
        space_saved_str = ConvertUtils.bytes_to_human(sum(plan.bytes_to_free for plan in plans))

        self.print_plan(plans)
        print("=" * 60)
        print(f"Summary: Keep 1 file per group ({len(plans)} files preserved, "
              f"{len(files_to_delete)} files deleted)")
        print(f"Total space saved: {space_saved_str}")
        print()

        if force:
            print("⚠️  WARNING: --force flag skips confirmation. Proceeding with deletion...")
        else:
            if not sys.stdin.isatty() or not sys.stdout.isatty():
                self.error_exit(
                    "Lost interactive terminal during operation. "
                    "Use --force to proceed in non-interactive environments."
                )
            response = input(f"Are you sure you want to move {len(files_to_delete)} files to trash? [y/N]: ")
            if response.strip().lower() not in ("y", "yes"):
                print("Deletion cancelled by user.")
                return

        print(f"\nMoving {len(files_to_delete)} files to trash...")
        outcome = FileService.trash_duplicates(plans)

        if outcome.failed:
            print(f"\n⚠️  Partial success: {len(outcome.trashed)}/{len(files_to_delete)} files moved to trash.")
            print(f"Failed to delete {len(outcome.failed)} file(s):")
            for path, error in outcome.failed[:5]:
                print(f"  • {os.path.basename(path)}: {error.split(':')[-1].strip()}")
            if len(outcome.failed) > 5:
                print(f"  ...and {len(outcome.failed) - 5} more files")
        else:
            print(f"✅ Successfully moved {len(outcome.trashed)} files to trash.")
        print(f"Space freed: {ConvertUtils.bytes_to_human(outcome.bytes_freed)}")

    def warning(self, message: str) -> None:
        """Print a warning message to stderr."""
        if not self.quiet:
            print(f"⚠️  {message}", file=sys.stderr)

    @staticmethod
    def error_exit(message: str, code: int = 1) -> NoReturn:
        """Print error and exit."""
        print(f"❌ Error: {message}", file=sys.stderr)
        sys.exit(code)

    def run(self, argv=None) -> None:
        """Main entry point with conditional output behavior."""
        args = self.parse_args(argv)
        self.verbose = args.verbose
        self.quiet = args.quiet

        logging.basicConfig(
            level=logging.DEBUG if self.verbose else logging.ERROR,
            format=LOG_FORMAT
        )

        self.validate_args(args)
        params = self.create_params(args)
        if not self.quiet:
            print(f"Scanning directory: {params.root_dir}")

        previous_handler = self.install_signal_handler()
        try:
            report = self.run_detection(params)
        finally:
            if previous_handler is not None:
                signal.signal(signal.SIGINT, previous_handler)

        if args.keep_one and not report.cancelled:
            self.execute_keep_one(
                report.groups,
                rule=KEEP_ALIASES[args.keep],
                preferred_folder=str(Path(args.preferred_folder).expanduser()) if args.preferred_folder else None,
                force=args.force
            )
        else:
            if args.keep_one:
                self.warning("Skipping deletion because detection did not finish")
            self.output_results(report.groups)

        elapsed = time.time() - self.start_time
        if self.verbose:
            print(f"\n✅ Completed in {elapsed:.2f} seconds")


def main() -> None:
    """Application entry point."""
    app = CLIApplication()
    try:
        app.run()
    except KeyboardInterrupt:
        print("\n⚠️  Operation cancelled by user (Ctrl+C)")
        sys.exit(130)
    except Exception as e:
        if os.environ.get("DEBUG"):
            raise
        print(f"❌ Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
