"""Source file index for Kiln.

The index is built once at the start of a build. It records every regular
file below the source directory together with the SHA-256 digest of its
contents, keyed by the file's site-relative URL path (``/css/site.css``).
Workers share the index read-only: nothing mutates it after ``build``.

Key classes:
- FileIndex: Immutable listing of source files and their content hashes.
- MatchingFiles: Re-iterable view of the files matching a pattern.
"""

from __future__ import annotations

import hashlib
import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from types import MappingProxyType

from .utils import match_pattern

HASH_CHUNK_SIZE = 64 * 1024


def hash_file(path: Path) -> str:
    """Return the hex SHA-256 digest of a file's contents.

    The file is streamed in chunks so large assets don't need to fit in
    memory.

    Args:
        path: File to hash.

    Returns:
        Hex-encoded digest.

    Raises:
        OSError: If the file can't be read.
    """
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _raise(error: OSError) -> None:
    raise error


@dataclass(frozen=True)
class FileIndex:
    """Listing of every regular file in the source directory.

    Attributes:
        source: Root of the source tree.
        output: Root of the output tree.
        files: Paths of all regular files below ``source``, sorted.
        hashes: Mapping of URL path (``/`` + relative path) to hex digest.
    """

    source: Path
    output: Path
    files: tuple[Path, ...] = ()
    hashes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "files", tuple(self.files))
        object.__setattr__(self, "hashes", MappingProxyType(dict(self.hashes)))

    @classmethod
    def build(cls, source: Path, output: Path) -> FileIndex:
        """Walk the source tree and hash every regular file.

        Files below ``output`` are skipped when the output directory lives
        inside the source directory.

        Args:
            source: Root of the source tree.
            output: Root of the output tree.

        Returns:
            The populated index.

        Raises:
            OSError: On the first traversal or read failure. No partial
                index is returned.
        """
        source = Path(source)
        output = Path(output)
        skip = output.resolve()
        files: list[Path] = []
        hashes: dict[str, str] = {}

        for root, dirs, names in os.walk(source, onerror=_raise):
            root_path = Path(root)
            dirs[:] = sorted(d for d in dirs if (root_path / d).resolve() != skip)
            for name in sorted(names):
                path = root_path / name
                if not path.is_file():
                    continue
                rel = path.relative_to(source).as_posix()
                hashes[f"/{rel}"] = hash_file(path)
                files.append(path)

        return cls(source=source, output=output, files=files, hashes=hashes)

    def relative(self, path: Path) -> PurePosixPath:
        """Return a file's path relative to the source directory."""
        return PurePosixPath(Path(path).relative_to(self.source).as_posix())

    def url_path(self, path: Path) -> str:
        """Return a file's site-relative URL path, such as ``/css/a.css``."""
        return f"/{self.relative(path)}"

    def matching(self, pattern: str) -> MatchingFiles:
        """Return the files whose URL path matches a glob pattern.

        Args:
            pattern: Glob pattern. A leading ``/`` anchors it to the source
                root; otherwise it matches at any depth.

        Returns:
            A lazy, re-iterable view over the matching files.
        """
        return MatchingFiles(self, pattern)

    def hash(self, url_path: str) -> str | None:
        """Look up the content hash for a URL path.

        Args:
            url_path: Path such as ``/css/site.css``.

        Returns:
            The hex digest, or None if the path wasn't indexed.
        """
        return self.hashes.get(url_path)


class MatchingFiles:
    """Files of an index matching a pattern.

    Iterating evaluates the pattern again each time, so the view can be
    consumed any number of times without affecting the index.
    """

    def __init__(self, index: FileIndex, pattern: str):
        self.index = index
        self.pattern = pattern

    def __iter__(self) -> Iterator[Path]:
        for path in self.index.files:
            if match_pattern(self.pattern, self.index.url_path(path)):
                yield path

    def __repr__(self) -> str:
        return f"MatchingFiles(pattern={self.pattern!r})"
