"""Template rendering engine for Folio.

This module uses Jinja2 to render page templates and wrap documents in
layouts. Templates are loaded from the source directory, so layouts live at
``layouts/<name>.html.jinja`` and partials can be included by their path.

Key class:
- TemplateEngine: Renders resources with their resolved layout.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Any

from jinja2 import Environment, FileSystemLoader, Template, TemplateNotFound, select_autoescape
from markupsafe import Markup

from .collections import ArticleCollection
from .config import SiteConfig
from .content import Resource
from .renderers import CodeHighlighter

LAYOUT_SUFFIXES = (".html.jinja", ".jinja", ".html")


class LayoutNotFoundError(LookupError):
    """Raised when a document names a layout that has no template.

    Attributes:
        layout: The requested layout name.
        searched: Template names that were tried.
    """

    def __init__(self, layout: str, searched: list[str]):
        self.layout = layout
        self.searched = searched
        super().__init__(f"Layout '{layout}' not found. Searched: {', '.join(searched)}")


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        config: Site configuration.
        articles: All post resources, newest first.
        highlighter: Highlighter whose stylesheet is exposed to templates.
        env: Jinja2 environment.
    """

    def __init__(
        self,
        config: SiteConfig,
        articles: ArticleCollection | None = None,
        highlighter: CodeHighlighter | None = None,
    ):
        self.config = config
        self.articles = articles if articles is not None else ArticleCollection([])
        self.highlighter = highlighter
        self.env = Environment(
            loader=FileSystemLoader(str(config.source_path)),
            autoescape=select_autoescape(["html", "xml", "html.jinja", "xml.jinja"]),
            keep_trailing_newline=True,
        )
        self._layouts_prefix = PurePosixPath(config.layouts_dir).as_posix()
        self._install_globals()

    def _install_globals(self) -> None:
        """Install global variables and functions in the Jinja environment."""
        self.env.globals["site"] = self.config.site
        self.env.globals["articles"] = self.articles
        self.env.globals["url_for"] = self._url_for
        self.env.globals["syntax_css"] = self._syntax_css

    def _syntax_css(self) -> Markup:
        if self.highlighter is None:
            return Markup("")
        return Markup(self.highlighter.stylesheet())

    @staticmethod
    def _url_for(target: Any) -> str:
        """Return the URL for a resource or a path.

        Args:
            target: A Resource, a listing page, or a path string.

        Returns:
            Root-relative URL, or the input when it is already absolute.
        """
        url = getattr(target, "url", target)
        if url is None:
            return ""
        url = str(url)
        if url.startswith(("http://", "https://", "//", "#", "mailto:")):
            return url
        return url if url.startswith("/") else f"/{url}"

    def render(self, resource: Resource, layout: str | None) -> str:
        """Render a resource, wrapped in a layout when one is given.

        Args:
            resource: The page, post or listing to render.
            layout: Layout name, or None for no layout.

        Returns:
            Rendered document.

        Raises:
            LayoutNotFoundError: If the layout has no template.
        """
        context = self._context(resource)
        body = self._render_body(resource, context)
        if layout is None:
            return body
        template = self._resolve_layout_template(layout)
        return template.render(page_content=Markup(body), **context)

    def _context(self, resource: Resource) -> dict[str, Any]:
        return {
            "current_page": resource,
            "frontmatter": resource.frontmatter,
            "article": resource.post,
            "paginator": resource.paginator,
            "page_articles": resource.paginator.articles if resource.paginator else None,
        }

    def _render_body(self, resource: Resource, context: dict[str, Any]) -> str:
        if resource.kind == "post" and resource.post is not None:
            return resource.post.content
        if resource.source_type == "jinja":
            template = self.env.from_string(resource.body)
            return template.render(**context)
        return resource.body

    def _resolve_layout_template(self, layout: str) -> Template:
        searched = [f"{self._layouts_prefix}/{layout}{suffix}" for suffix in LAYOUT_SUFFIXES]
        for name in searched:
            try:
                return self.env.get_template(name)
            except TemplateNotFound:
                continue
        raise LayoutNotFoundError(layout, searched)
