"""Source documents for Kiln.

A source document is a JSON front matter block followed by a Markdown body:

    ---
    { "title": "Hello", "date": "2024-01-15" }
    ---
    Body text.

Key classes:
- FrontMatter: Validated metadata from the header block.
- Page: A parsed document handed to page builders.
- FrontMatterError, PageError: Parse failures.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .renderers import Heading, MarkdownRenderer
from .urls import file_url
from .utils import parse_date

DELIMITER = "---"


class FrontMatterError(Exception):
    """Error raised when a front matter block is invalid.

    Attributes:
        kind: ``"invalid_json"`` or ``"invalid_key"``.
        key: Name of the offending key for ``invalid_key`` errors.
    """

    INVALID_JSON = "invalid_json"
    INVALID_KEY = "invalid_key"

    def __init__(self, kind: str, key: str | None = None, detail: str = ""):
        self.kind = kind
        self.key = key
        if kind == self.INVALID_KEY:
            message = f"the front matter key '{key}' is missing or invalid"
        else:
            message = "the front matter isn't a valid JSON object"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

    @classmethod
    def invalid_json(cls, detail: str = "") -> FrontMatterError:
        return cls(cls.INVALID_JSON, detail=detail)

    @classmethod
    def invalid_key(cls, key: str) -> FrontMatterError:
        return cls(cls.INVALID_KEY, key=key)


@dataclass
class FrontMatter:
    """Metadata from a document's header block.

    Attributes:
        title: Title of the document.
        date: Publication date in UTC. Defaults to the parse time when the
            header has no usable date.
    """

    title: str
    date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_json(cls, text: str) -> FrontMatter:
        """Parse and validate a JSON header block.

        Args:
            text: Raw header text between the delimiters.

        Returns:
            The validated front matter.

        Raises:
            FrontMatterError: If the text isn't a JSON object, or ``title``
                is missing, empty or not a string.
        """
        try:
            data = json.loads(text) if text.strip() else {}
        except (ValueError, RecursionError) as exc:
            # JSONDecodeError, oversized integers and runaway nesting.
            raise FrontMatterError.invalid_json(str(exc)) from exc
        if not isinstance(data, dict):
            raise FrontMatterError.invalid_json()
        return cls.from_mapping(data)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> FrontMatter:
        """Build front matter from already decoded data."""
        title = data.get("title")
        if not isinstance(title, str) or not title:
            raise FrontMatterError.invalid_key("title")

        raw_date = data.get("date")
        date = parse_date(raw_date) if isinstance(raw_date, str) else None
        if date is None:
            return cls(title=title)
        return cls(title=title, date=date)


def split_front_matter(text: str) -> tuple[str, str]:
    """Split a document into its header block and body.

    The header is the text between an opening ``---`` line, which must be
    the first line, and the next ``---`` line.

    Args:
        text: Full document text.

    Returns:
        Tuple of (header, body). The header is empty when the document has
        no header block.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip("\r\n") != DELIMITER:
        return "", text
    for number, line in enumerate(lines[1:], start=1):
        if line.rstrip("\r\n") == DELIMITER:
            header = "".join(lines[1:number])
            body = "".join(lines[number + 1 :])
            return header, body
    return "", text


class PageError(Exception):
    """Base error for documents that can't be turned into a Page.

    Attributes:
        path: Path of the source document.
    """

    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        super().__init__(message)


class PageIoError(PageError):
    """The document couldn't be read."""

    def __init__(self, path: Path, error: OSError):
        self.error = error
        reason = error.strerror or str(error)
        super().__init__(path, f"failed to read {path}: {reason}")


class PageFrontMatterError(PageError):
    """The document's front matter is invalid."""

    def __init__(self, path: Path, error: FrontMatterError):
        self.error = error
        super().__init__(path, f"{path}: {error}")


class PageMarkdownError(PageError):
    """The document's Markdown body couldn't be parsed."""

    def __init__(self, path: Path, detail: str):
        super().__init__(path, f"{path}: invalid Markdown: {detail}")


@dataclass
class Page:
    """A parsed source document.

    Attributes:
        front_matter: Validated header block.
        url: Public URL of the page, ending with a slash.
        source_path: Path of the source document.
        body: Markdown source following the header block.
        content: Body rendered to HTML.
        toc: Headings of the body in document order.
    """

    front_matter: FrontMatter
    url: str
    source_path: Path
    body: str
    content: str
    toc: list[Heading] = field(default_factory=list)

    @property
    def title(self) -> str:
        return self.front_matter.title

    @property
    def date(self) -> datetime:
        return self.front_matter.date

    @classmethod
    def parse(cls, source: Path, path: Path) -> Page:
        """Read and parse a source document.

        Args:
            source: Root of the source tree, used to derive the URL.
            path: Path of the document.

        Returns:
            The parsed page.

        Raises:
            PageIoError: If the file can't be read.
            PageFrontMatterError: If the header block is invalid.
            PageMarkdownError: If the body can't be decoded or rendered.
        """
        try:
            raw = Path(path).read_bytes()
        except OSError as exc:
            raise PageIoError(path, exc) from exc

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise PageMarkdownError(path, str(exc)) from exc

        header, body = split_front_matter(text)
        try:
            front_matter = FrontMatter.from_json(header)
        except FrontMatterError as exc:
            raise PageFrontMatterError(path, exc) from exc

        try:
            content, toc = MarkdownRenderer().render(body)
        except Exception as exc:
            raise PageMarkdownError(path, str(exc)) from exc

        return cls(
            front_matter=front_matter,
            url=file_url(source, path),
            source_path=Path(path),
            body=body,
            content=content,
            toc=toc,
        )
