from twinscan.core.models import KeepRule

KEEP_ALIASES = {
    "first": KeepRule.FIRST,
    "newest": KeepRule.NEWEST,
    "oldest": KeepRule.OLDEST,
    "shortest-path": KeepRule.SHORTEST_PATH,
    "preferred-folder": KeepRule.PREFERRED_FOLDER,
}

KEEP_CHOICES = list(KEEP_ALIASES.keys())

KEEP_HELP_TEXT = (
    "Which file survives in each group when using --keep-one:\n"
    + "".join(f"  {name:<17}: {rule.description}\n" for name, rule in KEEP_ALIASES.items())
    + "Example          : %(prog)s -i ~/Downloads --keep-one --keep preferred-folder "
      "--preferred-folder ~/Downloads/keep\n"
)

VERIFY_HELP_TEXT = (
    "Compare every hash match byte by byte before reporting it.\n"
    "Without this flag only files at or above --force-verify-above are compared."
)

EPILOG_TEXT = """
Examples:
  Basic usage - find duplicates in Downloads folder
  %(prog)s -i ~/Downloads

  Include smaller files and confirm every match byte by byte
  %(prog)s -i ~/Downloads -m 1K --verify

  Keep the newest copy of each file, move the rest to trash (with confirmation prompt)
  %(prog)s -i ~/Downloads --keep-one --keep newest

  Same as above but without confirmation and with output to a file (for scripts)
  %(prog)s -i ~/Downloads --keep-one --keep newest --force > ~/Downloads/report.txt

  One-off scan that neither reads nor writes the hash cache
  %(prog)s -i /mnt/backup --no-cache --workers 8
"""
