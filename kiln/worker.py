"""Build jobs for Kiln.

Each job performs exactly one task (copy a file, run a generator, or render
a page) and returns exactly one Status. Jobs only read the shared FileIndex
and turn every failure into a failed Status. The dispatcher always
receives one message per job, even when a job raises anyway.

Key classes:
- Status: Terminal result of a job.
- BuilderError: Error raised by site-supplied builders.
- Job: Interface shared by the job kinds.
- CopyJob, GenerateJob, PageJob: The three job kinds.
"""

from __future__ import annotations

import shutil
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from bs4 import BeautifulSoup

from .content import Page, PageError
from .files import FileIndex
from .links import AssetLinkRewriter, parse_html
from .urls import page_output_path

GenerateBuilder = Callable[[FileIndex], str]
PageBuilder = Callable[[FileIndex, Page], "BeautifulSoup | str"]
PageBuilderFactory = Callable[[], PageBuilder]


class BuilderError(Exception):
    """Error raised by a generate or page builder.

    The message is reported as-is in the build report.
    """


@dataclass(frozen=True)
class Status:
    """Result of one job.

    Attributes:
        path: Output path the failure relates to, None on success.
        message: Failure message, None on success.
    """

    path: Path | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.message is None

    @classmethod
    def success(cls) -> Status:
        return cls()

    @classmethod
    def failure(cls, path: Path, message: str) -> Status:
        return cls(path=path, message=message)


def format_error_message(exc: BaseException) -> str:
    """Format an exception raised during a job for the build report.

    Args:
        exc: The exception to format.

    Returns:
        The message of errors meant for users, otherwise the exception type
        followed by its message.
    """
    if isinstance(exc, (BuilderError, PageError)):
        return str(exc)
    if isinstance(exc, OSError):
        reason = exc.strerror or str(exc)
        if exc.filename is not None:
            return f"{reason}: {exc.filename}"
        return reason
    return f"{type(exc).__name__}: {exc}"


class Job(Protocol):
    """A unit of work run by a worker thread.

    Attributes:
        target: Output path the job writes, reported when it fails.
    """

    target: Path

    def __call__(self) -> Status: ...


def write_output(path: Path, content: str) -> None:
    """Write text to an output file, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


class CopyJob:
    """Copies one source file to the same relative path under the output."""

    def __init__(self, index: FileIndex, path: Path):
        self.index = index
        self.path = path
        self.target = index.output / index.relative(path)

    def __call__(self) -> Status:
        try:
            self.target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(self.path, self.target)
        except Exception as exc:
            return Status.failure(self.target, format_error_message(exc))
        return Status.success()


class GenerateJob:
    """Runs a builder once and writes its text to an output path."""

    def __init__(self, index: FileIndex, path: str, builder: GenerateBuilder):
        self.index = index
        self.path = path
        self.target = index.output / path.lstrip("/")
        self.builder = builder

    def __call__(self) -> Status:
        output = self.index.output.resolve()
        target = self.target.resolve()
        if target == output or not target.is_relative_to(output):
            return Status.failure(
                self.target,
                f"the output path {self.path} is outside the output directory",
            )

        try:
            content = self.builder(self.index)
        except Exception as exc:
            return Status.failure(self.target, format_error_message(exc))

        try:
            write_output(self.target, content)
        except Exception as exc:
            return Status.failure(self.target, format_error_message(exc))
        return Status.success()


class PageJob:
    """Parses a Markdown document, renders it and writes the HTML.

    Attributes:
        index: Shared file index.
        path: Source document.
        builder_factory: Returns the render callable for this job.
        target: Output file, following the page path mapping.
    """

    def __init__(
        self,
        index: FileIndex,
        path: Path,
        builder_factory: PageBuilderFactory,
        with_index: bool = True,
    ):
        self.index = index
        self.path = path
        self.builder_factory = builder_factory
        self.target = index.output / page_output_path(
            index.relative(path), index=with_index
        )

    def __call__(self) -> Status:
        try:
            page = Page.parse(self.index.source, self.path)
        except PageError as exc:
            return Status.failure(self.target, format_error_message(exc))

        try:
            builder = self.builder_factory()
            document = builder(self.index, page)
            if isinstance(document, str):
                document = parse_html(document)
            if not isinstance(document, BeautifulSoup):
                raise BuilderError(
                    f"the page builder returned {type(document).__name__}, "
                    "expected an HTML document"
                )
            AssetLinkRewriter(self.index, page.url).run(document)
            html = str(document)
        except Exception as exc:
            return Status.failure(self.target, format_error_message(exc))

        try:
            write_output(self.target, html)
        except Exception as exc:
            return Status.failure(self.target, format_error_message(exc))
        return Status.success()
