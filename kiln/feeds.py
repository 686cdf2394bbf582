"""Feed generation for Kiln.

Feed builders are callables for ``Site.generate``: they receive the file
index, parse the pages matching a pattern and return the feed as text::

    site.generate("feed.xml", RSSFeed("/posts/*.md", "https://example.com", "Blog"))
    site.generate("sitemap.xml", Sitemap("*.md", "https://example.com"))

A page that fails to parse fails the feed job with that page's error.

Classes:
    FeedBuilder: Base class collecting the pages of a feed.
    RSSFeed: Builds an RSS 2.0 feed.
    Sitemap: Builds a sitemaps.org sitemap.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from xml.sax.saxutils import escape

from .content import Page
from .files import FileIndex

RFC822_FORMAT = "%a, %d %b %Y %H:%M:%S +0000"


class FeedBuilder(ABC):
    """Base class for feed builders.

    Attributes:
        pattern: Glob pattern selecting the Markdown pages of the feed.
        base_url: Absolute site URL prefixed to page URLs.
    """

    def __init__(self, pattern: str, base_url: str):
        if not base_url:
            raise ValueError("Feeds need an absolute base URL")
        self.pattern = pattern
        self.base_url = base_url.rstrip("/")

    def pages(self, index: FileIndex) -> list[Page]:
        """Parse every Markdown file matching the pattern.

        Raises:
            PageError: If any page fails to parse.
        """
        return [
            Page.parse(index.source, path)
            for path in index.matching(self.pattern)
            if path.suffix == ".md"
        ]

    def link(self, page: Page) -> str:
        return f"{self.base_url}{page.url}"

    @abstractmethod
    def generate(self, pages: list[Page]) -> str:
        """Render the feed for the given pages."""
        ...

    def __call__(self, index: FileIndex) -> str:
        return self.generate(self.pages(index))


class RSSFeed(FeedBuilder):
    """RSS 2.0 feed with the newest pages first.

    Attributes:
        title: Channel title.
        limit: Maximum number of items, None for all.
    """

    def __init__(
        self,
        pattern: str,
        base_url: str,
        title: str,
        limit: int | None = None,
    ):
        super().__init__(pattern, base_url)
        if limit is not None and limit < 1:
            raise ValueError("The feed limit must be at least 1")
        self.title = title
        self.limit = limit

    def generate(self, pages: list[Page]) -> str:
        ordered = sorted(pages, key=lambda p: p.date, reverse=True)
        if self.limit is not None:
            ordered = ordered[: self.limit]

        build_date = datetime.now(timezone.utc).strftime(RFC822_FORMAT)
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{escape(self.title)}</title>",
            f"<link>{escape(self.base_url)}/</link>",
            f"<lastBuildDate>{build_date}</lastBuildDate>",
        ]
        for page in ordered:
            link = escape(self.link(page))
            lines.append(
                f"<item><title>{escape(page.title)}</title><link>{link}</link>"
                f"<guid>{link}</guid>"
                f"<pubDate>{page.date.strftime(RFC822_FORMAT)}</pubDate></item>"
            )
        lines.append("</channel></rss>")
        return "\n".join(lines)


class Sitemap(FeedBuilder):
    """Sitemap listing every page with its date as last modification."""

    def generate(self, pages: list[Page]) -> str:
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for page in sorted(pages, key=lambda p: p.url):
            lastmod = page.date.strftime("%Y-%m-%d")
            lines.append(
                f"  <url><loc>{escape(self.link(page))}</loc>"
                f"<lastmod>{lastmod}</lastmod></url>"
            )
        lines.append("</urlset>")
        return "\n".join(lines)
