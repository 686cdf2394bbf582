"""Job dispatching for Kiln.

A Site turns rule registrations into concurrent jobs and collects their
results. Each registration matches files against a pattern and dispatches
one job per match to a thread pool. Jobs report a single Status through a
bounded channel; ``wait`` drains one message per dispatched job and raises
BuildFailed when any job failed.

The pending counter belongs to the dispatching thread. It is incremented
before a job is submitted and decremented while draining, and workers never
touch it, so it needs no lock. The channel is the only shared, synchronized
object between workers and the dispatcher.

Key classes:
- Site: Rule registration and aggregate wait.
- JobError: One failed job in a build report.
- BuildFailed: Raised by ``wait`` with every failure of the build.
"""

from __future__ import annotations

import os
import queue
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from .files import FileIndex
from .worker import (
    CopyJob,
    GenerateBuilder,
    GenerateJob,
    Job,
    PageBuilderFactory,
    PageJob,
    Status,
    format_error_message,
)

DEFAULT_CHANNEL_CAPACITY = 16


def default_workers() -> int:
    """Return the default thread pool size."""
    return min(32, (os.cpu_count() or 1) + 4)


@dataclass(frozen=True)
class JobError:
    """A failed job.

    Attributes:
        path: Output path the failure relates to.
        message: Human-readable error message.
    """

    path: Path
    message: str


class BuildFailed(Exception):
    """One or more jobs failed.

    Attributes:
        errors: Failed jobs in the order their results arrived.
    """

    def __init__(self, errors: list[JobError]):
        self.errors = list(errors)
        count = len(self.errors)
        noun = "job" if count == 1 else "jobs"
        super().__init__(f"{count} {noun} failed")


class Site:
    """Dispatches build jobs and waits for their results.

    Attributes:
        index: File index shared read-only with every job.
        pending: Jobs dispatched but not yet received by ``wait``.
        dispatched: Total number of jobs dispatched.
    """

    def __init__(
        self,
        index: FileIndex,
        workers: int | None = None,
        channel_capacity: int = DEFAULT_CHANNEL_CAPACITY,
    ):
        """Initialize the site.

        Args:
            index: File index of the source tree.
            workers: Thread pool size, defaults to ``default_workers()``.
            channel_capacity: Maximum number of unreceived statuses before
                workers block.
        """
        self.index = index
        self.pending = 0
        self.dispatched = 0
        self._channel: queue.Queue[Status] = queue.Queue(maxsize=channel_capacity)
        self._executor = ThreadPoolExecutor(
            max_workers=workers or default_workers(),
            thread_name_prefix="kiln-worker",
        )
        self._closed = False

    @property
    def source(self) -> Path:
        return self.index.source

    @property
    def output(self) -> Path:
        return self.index.output

    def copy(self, pattern: str) -> None:
        """Copy every matching file verbatim to the output directory.

        Args:
            pattern: Glob pattern selecting source files.
        """
        for path in self.index.matching(pattern):
            self._dispatch(CopyJob(self.index, path))

    def generate(self, path: str, builder: GenerateBuilder) -> None:
        """Write the text produced by a builder to an output path.

        Args:
            path: Output path relative to the output directory.
            builder: Called once with the file index, returns the content.
        """
        self._dispatch(GenerateJob(self.index, path, builder))

    def page(self, pattern: str, builder_factory: PageBuilderFactory) -> None:
        """Render every matching Markdown file to ``<name>/index.html``.

        Args:
            pattern: Glob pattern selecting ``.md`` files.
            builder_factory: Called once per page to obtain a render callable
                taking ``(index, page)`` and returning an HTML document.
        """
        self._register_pages(pattern, builder_factory, with_index=True)

    def page_without_index(
        self, pattern: str, builder_factory: PageBuilderFactory
    ) -> None:
        """Render every matching Markdown file to ``<name>.html``.

        Index documents still map to ``index.html`` in their directory.

        Args:
            pattern: Glob pattern selecting ``.md`` files.
            builder_factory: Same as for ``page``.
        """
        self._register_pages(pattern, builder_factory, with_index=False)

    def _register_pages(
        self,
        pattern: str,
        builder_factory: PageBuilderFactory,
        with_index: bool,
    ) -> None:
        for path in self.index.matching(pattern):
            if path.suffix != ".md":
                continue
            self._dispatch(PageJob(self.index, path, builder_factory, with_index))

    def _dispatch(self, job: Job) -> None:
        if self._closed:
            raise RuntimeError("Can't register jobs after the site was waited on")
        # Counted before submitting so a fast job can't be missed by wait().
        self.pending += 1
        self.dispatched += 1
        self._executor.submit(self._run, job)

    def _run(self, job: Job) -> None:
        status = Status.failure(job.target, "the job stopped without a result")
        try:
            status = job()
        except Exception as exc:
            status = Status.failure(job.target, format_error_message(exc))
        finally:
            # Exactly one status per job.
            self._channel.put(status)

    def _drain(self) -> list[JobError]:
        errors: list[JobError] = []
        while self.pending > 0:
            status = self._channel.get()
            self.pending -= 1
            if not status.ok:
                errors.append(JobError(status.path, status.message))
        return errors

    def wait(self) -> None:
        """Block until every dispatched job has reported.

        Raises:
            BuildFailed: If any job failed, with every failure in arrival
                order.
        """
        errors = self._drain()
        self.close()
        if errors:
            raise BuildFailed(errors)

    def close(self) -> None:
        """Wait for outstanding jobs, discarding their results, and stop."""
        self._closed = True
        self._drain()
        self._executor.shutdown(wait=True)

    def __enter__(self) -> Site:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
