"""Site building for Kiln.

This module drives one build: it prepares the output directory, indexes the
source tree, hands a Site to the site definition's ``setup`` callable and
waits for every job registered there.

Key functions:
- build_site: Run a complete build.
- load_definition: Import the ``setup`` callable from a site definition file.
"""

from __future__ import annotations

import importlib.util
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .config import BuildConfig, ConfigError
from .files import FileIndex
from .site import Site
from .utils import ensure_clean_dir

SetupFunc = Callable[[Site], None]

DEFINITION_MODULE = "kiln_site_definition"


@dataclass
class BuildResult:
    """Result of a successful build.

    Attributes:
        output_dir: Directory the site was written to.
        jobs: Number of jobs that ran.
    """

    output_dir: Path
    jobs: int


def load_definition(path: Path) -> SetupFunc:
    """Import a site definition file and return its ``setup`` callable.

    Args:
        path: Python file defining ``setup(site)``.

    Returns:
        The ``setup`` callable.

    Raises:
        ConfigError: If the file doesn't exist or defines no ``setup``.
    """
    if not path.is_file():
        raise ConfigError(f"Site definition not found: {path}")
    spec = importlib.util.spec_from_file_location(DEFINITION_MODULE, path)
    if spec is None or spec.loader is None:
        raise ConfigError(f"Can't load site definition: {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    setup = getattr(module, "setup", None)
    if not callable(setup):
        raise ConfigError(f"{path} doesn't define a setup(site) function")
    return setup


def _check_directories(config: BuildConfig) -> None:
    source = config.source.resolve()
    output = config.output.resolve()
    if output == source or output in source.parents:
        raise ConfigError(
            f"The output directory {config.output} would contain the source "
            f"directory {config.source}"
        )


def build_site(config: BuildConfig, setup: SetupFunc) -> BuildResult:
    """Build the site.

    Args:
        config: Build settings.
        setup: Registers the site's rules on the Site it's given.

    Returns:
        BuildResult with the output directory and number of jobs.

    Raises:
        ConfigError: If the output directory would contain the source.
        OSError: If the output can't be prepared or the source can't be
            indexed.
        BuildFailed: If any job failed.
    """
    _check_directories(config)
    if config.clean:
        ensure_clean_dir(config.output)
    else:
        config.output.mkdir(parents=True, exist_ok=True)

    index = FileIndex.build(config.source, config.output)
    site = Site(
        index,
        workers=config.workers,
        channel_capacity=config.channel_capacity,
    )
    try:
        setup(site)
    except BaseException:
        site.close()
        raise
    site.wait()
    return BuildResult(output_dir=config.output, jobs=site.dispatched)
