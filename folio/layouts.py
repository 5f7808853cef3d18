"""Layout resolution for Folio.

A document's layout is chosen by rule precedence:

1. ``layout`` in the document's front matter (``false`` means none).
2. Glob page rules such as ``/*.xml``.
3. Exact route rules such as ``/``.
4. The default for the document kind (posts use the blog layout).
5. The global default layout.

Resolution is a pure function of the route, the front matter and the
configured rules.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from fnmatch import fnmatchcase
from typing import Any

from .config import PageRule, SiteConfig

_UNSET = object()


def resolve_layout(
    route: str,
    frontmatter: Mapping[str, Any],
    rules: Sequence[PageRule],
    default: str | None,
    kind_default: Any = _UNSET,
) -> str | None:
    """Choose the layout for a document.

    Args:
        route: Public route of the document, e.g. ``/feed.xml``.
        frontmatter: The document's front matter.
        rules: Configured page rules, in declaration order.
        default: Global default layout.
        kind_default: Default for the document's kind, if it has one.

    Returns:
        Layout name, or None to render without a layout.
    """
    if "layout" in frontmatter:
        value = frontmatter["layout"]
        return None if value is False or value is None else str(value)

    for rule in rules:
        if rule.is_pattern and fnmatchcase(route, rule.path):
            return rule.layout
    for rule in rules:
        if not rule.is_pattern and _same_route(route, rule.path):
            return rule.layout

    if kind_default is not _UNSET:
        return kind_default
    return default


def _same_route(route: str, path: str) -> bool:
    """Compare routes ignoring a trailing ``index.html`` or slash."""
    return _normalize(route) == _normalize(path)


def _normalize(route: str) -> str:
    route = "/" + route.lstrip("/")
    if route.endswith("/index.html"):
        route = route[: -len("index.html")]
    if len(route) > 1:
        route = route.rstrip("/")
    return route


class LayoutResolver:
    """Resolves layouts for resources using the site's configured rules.

    Attributes:
        rules: Page rules.
        default: Global default layout.
        kind_defaults: Default layout per resource kind.
    """

    def __init__(
        self,
        rules: Sequence[PageRule],
        default: str | None,
        kind_defaults: Mapping[str, str | None] | None = None,
    ):
        self.rules = tuple(rules)
        self.default = default
        self.kind_defaults = dict(kind_defaults or {})

    @classmethod
    def from_config(cls, config: SiteConfig) -> LayoutResolver:
        kind_defaults = {}
        if config.blog is not None:
            kind_defaults["post"] = config.blog.layout
        return cls(config.pages, config.default_layout, kind_defaults)

    def resolve(self, route: str, frontmatter: Mapping[str, Any], kind: str = "page") -> str | None:
        """Resolve the layout for a document.

        Static files never get a layout.
        """
        if kind == "static":
            return None
        return resolve_layout(
            route,
            frontmatter,
            self.rules,
            self.default,
            self.kind_defaults.get(kind, _UNSET),
        )
