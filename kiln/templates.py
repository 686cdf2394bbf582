"""Jinja2 page builders for Kiln.

Kiln doesn't ship a templating engine of its own: page builders are plain
callables. This module adapts Jinja2 templates to that interface so a site
definition can write::

    engine = TemplateEngine(Path("templates"), data={"title": "My site"})
    site.page("/posts/*.md", engine.page_builder("post.html"))

Key classes:
- TemplateEngine: Jinja2 environment producing page builder factories.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup, escape

from .content import Page
from .files import FileIndex
from .links import parse_html
from .renderers import Heading, pygments_css
from .worker import PageBuilder, PageBuilderFactory


def render_toc(page: Page) -> Markup:
    """Render a page's headings as nested HTML lists.

    Args:
        page: Page whose ``toc`` is rendered.

    Returns:
        Markup of nested ``<ul>`` elements, empty when there are no
        headings.
    """
    return _render_headings(page.toc)


def _render_headings(headings: list[Heading]) -> Markup:
    if not headings:
        return Markup("")

    parts: list[str] = []
    levels: list[int] = []
    for heading in headings:
        while levels and levels[-1] > heading.level:
            levels.pop()
            parts.append("</li></ul>")
        if levels and levels[-1] == heading.level:
            parts.append("</li>")
        else:
            parts.append("<ul>")
            levels.append(heading.level)
        # Heading text is rendered inline HTML from the Markdown body.
        parts.append(f'<li><a href="#{escape(heading.id)}">{heading.text}</a>')

    parts.extend("</li></ul>" for _ in levels)
    return Markup("".join(parts))


class TemplateEngine:
    """Renders pages through Jinja2 templates.

    The environment is shared by every page job. Jinja2 templates are safe
    to render from several threads at once.

    Attributes:
        templates_dir: Directory the templates are loaded from.
        data: Global data available to templates as ``data``.
        env: Jinja2 environment.
    """

    def __init__(self, templates_dir: Path, data: dict[str, Any] | None = None):
        self.templates_dir = templates_dir
        self.data = data or {}
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self.env.globals["data"] = self.data
        self.env.globals["render_toc"] = render_toc
        self.env.globals["pygments_css"] = pygments_css

    def render(self, template_name: str, index: FileIndex, page: Page) -> str:
        """Render one page with a template.

        The template receives ``page``, ``index``, ``data`` and
        ``content`` (the page body as markup).

        Args:
            template_name: Template path relative to ``templates_dir``.
            index: File index of the build.
            page: Page to render.

        Returns:
            Rendered HTML.
        """
        template = self.env.get_template(template_name)
        return template.render(
            page=page,
            index=index,
            content=Markup(page.content),
        )

    def page_builder(self, template_name: str) -> PageBuilderFactory:
        """Return a builder factory for ``Site.page`` using a template.

        Args:
            template_name: Template path relative to ``templates_dir``.

        Returns:
            Factory returning a render callable that produces a parsed
            HTML document.
        """

        def factory() -> PageBuilder:
            def builder(index: FileIndex, page: Page):
                return parse_html(self.render(template_name, index, page))

            return builder

        return factory
