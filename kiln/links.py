"""Asset link rewriting for Kiln.

Rendered pages reference stylesheets, icons, scripts and images. To let
browsers cache those assets indefinitely, every reference to an indexed
file gets a ``?hash=<digest>`` query derived from the file's contents, so
the URL changes whenever the file does. Files on disk are never renamed.

Key classes:
- AssetLinkRewriter: Rewrites asset attributes of a parsed HTML document.
"""

from __future__ import annotations

from bs4 import BeautifulSoup, Tag

from .files import FileIndex
from .urls import relative_to_absolute

LINK_RELS = frozenset({"stylesheet", "icon", "preload"})
SRC_TAGS = frozenset({"img", "script"})


def parse_html(html: str) -> BeautifulSoup:
    """Parse an HTML string into a document."""
    return BeautifulSoup(html, "html.parser")


class AssetLinkRewriter:
    """Appends content hashes to asset URLs in a document.

    Attributes:
        index: File index providing the hash table.
        page_url: URL of the page being rewritten, used to resolve relative
            references.
    """

    def __init__(self, index: FileIndex, page_url: str):
        self.index = index
        self.page_url = page_url

    def run(self, document: BeautifulSoup) -> None:
        """Rewrite asset references in place.

        Every element is visited exactly once, using an explicit stack so
        deeply nested documents don't hit the recursion limit.

        Args:
            document: Parsed HTML document.
        """
        stack: list[Tag] = [document]
        while stack:
            node = stack.pop()
            self._rewrite_element(node)
            stack.extend(child for child in node.children if isinstance(child, Tag))

    def _rewrite_element(self, element: Tag) -> None:
        if element.name == "link":
            if self._rel_tokens(element) & LINK_RELS:
                self._rewrite_attribute(element, "href")
        elif element.name in SRC_TAGS:
            self._rewrite_attribute(element, "src")

    @staticmethod
    def _rel_tokens(element: Tag) -> set[str]:
        rel = element.get("rel")
        if rel is None:
            return set()
        if isinstance(rel, str):
            rel = rel.split()
        return {token.lower() for token in rel}

    def _rewrite_attribute(self, element: Tag, attribute: str) -> None:
        url = element.get(attribute)
        if not isinstance(url, str) or not url:
            return
        rewritten = self.rewrite(url)
        if rewritten != url:
            element[attribute] = rewritten

    def rewrite(self, url: str) -> str:
        """Return a URL with its content hash appended.

        Args:
            url: Absolute or page-relative URL.

        Returns:
            ``url?hash=<digest>`` when the target is indexed, else ``url``.
        """
        if url.startswith("/"):
            key = url
        else:
            key = relative_to_absolute(self.page_url, url)
        digest = self.index.hash(key)
        if digest is None:
            return url
        return f"{url}?hash={digest}"
