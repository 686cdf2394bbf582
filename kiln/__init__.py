"""Kiln static site build pipeline.

Kiln scans a source directory once, lets a site definition register rules
(copy, generate, page) and runs every resulting job concurrently. Rendered
pages get their asset links rewritten with content hashes for cache busting,
and all job failures are collected into a single report.

The main entry points are the CLI module and ``kiln.site.Site`` for
programmatic use.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
