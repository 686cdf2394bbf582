"""Utility functions for Kiln.

Small, replaceable helpers the build core treats as black boxes.

Key functions:
    match_pattern: Match a glob pattern against a site-relative path.
    parse_date: Parse a front matter date string.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import re
import shutil
from datetime import datetime, timezone
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath

DATE_FORMATS = ("%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M:%SZ")
DATE_SHAPE = re.compile(
    r"[0-9]{4}-[0-9]{2}-[0-9]{2}(T[0-9]{2}:[0-9]{2}:[0-9]{2}Z?)?"
)


def match_pattern(pattern: str, path: str) -> bool:
    """Match a glob pattern against a site-relative path.

    Paths are posix strings starting with ``/``. A pattern with a leading
    ``/`` is anchored: the whole path must match and wildcards stay within
    one segment. Any other pattern matches at any depth of the hierarchy,
    and ``*`` may cross ``/``.

    Args:
        pattern: Glob pattern (``*``, ``?`` and character classes).
        path: Site-relative path such as ``/posts/hello.md``.

    Returns:
        True if the path matches.

    Examples:
        >>> match_pattern("/index.md", "/docs/index.md")
        False

        >>> match_pattern("index.md", "/docs/index.md")
        True
    """
    if pattern.startswith("/"):
        return PurePosixPath(path).match(pattern)
    return fnmatchcase(path, f"*/{pattern}")


def parse_date(value: str) -> datetime | None:
    """Parse a front matter date into a UTC datetime.

    Accepts ``YYYY-MM-DD``, ``YYYY-MM-DDTHH:MM:SS`` and the same with a
    trailing ``Z``.

    Args:
        value: Date string from the front matter.

    Returns:
        Timezone-aware datetime in UTC, or None if the value doesn't parse.

    Examples:
        >>> parse_date("2024-01-15")
        datetime.datetime(2024, 1, 15, 0, 0, tzinfo=datetime.timezone.utc)

        >>> parse_date("15/01/2024")
        None
    """
    # strptime alone accepts unpadded fields such as 2024-1-5.
    if not DATE_SHAPE.fullmatch(value):
        return None
    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=timezone.utc)
    return None


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.

    Raises:
        OSError: If the directory can't be removed or created.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)
