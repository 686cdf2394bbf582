"""URL and output path helpers for Kiln.

Functions:
    file_url: Derive the public URL of a source document.
    relative_to_absolute: Resolve a relative URL against a page URL.
    page_output_path: Map a source document to its output file.
"""

from __future__ import annotations

import posixpath
from pathlib import Path, PurePosixPath

INDEX_NAME = "index.md"


def file_url(source: Path, path: Path) -> str:
    """Derive the URL of a source document.

    The source prefix is stripped and the extension dropped. Index documents
    map to their directory. URLs always end with a slash.

    Args:
        source: Root of the source tree.
        path: Path of the document below ``source``.

    Returns:
        URL path for the document.

    Examples:
        >>> file_url(Path("src"), Path("src/index.md"))
        '/'

        >>> file_url(Path("src"), Path("src/docs/index.md"))
        '/docs/'

        >>> file_url(Path("src"), Path("src/docs/setup.md"))
        '/docs/setup/'
    """
    rel = PurePosixPath(Path(path).relative_to(source).as_posix())
    if str(rel) == INDEX_NAME:
        return "/"
    if rel.name == INDEX_NAME:
        return f"/{rel.parent.with_suffix('')}/"
    return f"/{rel.with_suffix('')}/"


def relative_to_absolute(base: str, url: str) -> str:
    """Resolve a relative URL against the URL of the page containing it.

    The base is treated as a file, so its last segment is dropped before
    joining. For ``/docs/setup/`` that segment is empty and the directory is
    ``/docs/setup/`` itself.

    Args:
        base: Absolute URL path of the current page.
        url: Relative URL found in the page.

    Returns:
        Absolute URL path.

    Examples:
        >>> relative_to_absolute("/foo/bar/", "../../style.css")
        '/style.css'

        >>> relative_to_absolute("/foo/bar.html", "img/a.png")
        '/foo/img/a.png'
    """
    directory = base[: base.rfind("/") + 1] or "/"
    resolved = posixpath.normpath(posixpath.join(directory, url))
    if not resolved.startswith("/"):
        resolved = f"/{resolved}"
    return resolved


def page_output_path(rel: PurePosixPath, index: bool = True) -> PurePosixPath:
    """Map a Markdown source path to the HTML file it's written to.

    Args:
        rel: Path of the document relative to the source root.
        index: Whether non-index documents get their own directory with an
            ``index.html`` (``foo.md`` -> ``foo/index.html``) rather than a
            sibling HTML file (``foo.md`` -> ``foo.html``).

    Returns:
        Output path relative to the output root.
    """
    rel = PurePosixPath(rel)
    if rel.name == INDEX_NAME or not index:
        return rel.with_suffix(".html")
    return rel.with_suffix("") / "index.html"
