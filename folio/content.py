"""Content loading for Folio.

This module discovers source files and turns them into Resources, the
unit the builder renders and writes. Blog posts are loaded by PostLoader,
which enforces the ``YEAR-MONTH-DAY-title`` naming convention. Everything
else under the source directory is loaded by SourceLoader.

Key classes:
- Post: A blog post parsed from a dated Markdown file.
- Resource: One document in the output tree.
- PostLoader: Loads posts matching the configured source pattern.
- SourceLoader: Loads pages and static files.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any

from .config import BlogSettings, ConfigError, SiteConfig
from .errors import BuildError
from .frontmatter import FrontMatterError, parse_frontmatter
from .renderers import MarkdownRenderer
from .utils import (
    is_internal_path,
    route_for,
    slugify,
    strip_template_extension,
    titleize,
)

if TYPE_CHECKING:
    from .collections import PaginationPage

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")
_SOURCE_PLACEHOLDERS = {
    "year": r"\d{4}",
    "month": r"\d{2}",
    "day": r"\d{2}",
    "title": r"[^/]+",
}


@dataclass(frozen=True)
class Post:
    """A blog post.

    Attributes:
        title: Title from front matter.
        slug: URL slug derived from the filename title segment.
        date: Publication date.
        path: Source file.
        frontmatter: Parsed front matter.
        body: Markdown source without front matter.
        content: Rendered HTML.
        permalink: Permalink pattern with placeholders substituted.
    """

    title: str
    slug: str
    date: date
    path: Path
    frontmatter: dict[str, Any]
    body: str
    content: str
    permalink: str


@dataclass(eq=False)
class Resource:
    """One document in the output tree.

    Attributes:
        destination: Output path relative to the site root, POSIX style.
        kind: "page", "post", "listing" or "static".
        source_path: Source file, when the resource has one.
        source_type: "markdown", "jinja" or "static".
        frontmatter: Front matter of the source document.
        body: Rendered HTML for Markdown, template source for Jinja.
        title: Document title.
        post: The post behind a "post" resource.
        paginator: The listing page behind a "listing" resource.
    """

    destination: str
    kind: str
    source_path: Path | None = None
    source_type: str = "static"
    frontmatter: dict[str, Any] = field(default_factory=dict)
    body: str = ""
    title: str = ""
    post: Post | None = None
    paginator: PaginationPage | None = None

    @property
    def route(self) -> str:
        return route_for(self.destination)

    @property
    def url(self) -> str:
        return self.route

    @property
    def date(self) -> date | None:
        return self.post.date if self.post else None

    @property
    def is_static(self) -> bool:
        return self.kind == "static"

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Resource({self.kind} {self.route})"


def compile_source_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a post source pattern such as ``posts/{year}-{month}-{day}-{title}.html.md``.

    Raises:
        ConfigError: If the pattern uses an unknown placeholder.
    """
    parts: list[str] = []
    pos = 0
    for match in _PLACEHOLDER_RE.finditer(pattern):
        name = match.group(1)
        if name not in _SOURCE_PLACEHOLDERS:
            raise ConfigError(f"Unknown placeholder {{{name}}} in blog.sources")
        parts.append(re.escape(pattern[pos : match.start()]))
        parts.append(f"(?P<{name}>{_SOURCE_PLACEHOLDERS[name]})")
        pos = match.end()
    parts.append(re.escape(pattern[pos:]))
    return re.compile("^" + "".join(parts) + "$")


def format_permalink(pattern: str, post_date: date, slug: str) -> str:
    """Substitute a post's date and slug into a permalink pattern.

    Args:
        pattern: Pattern such as ``post/{title}``.
        post_date: Publication date.
        slug: Post slug.

    Returns:
        Permalink path without leading or trailing slashes.

    Examples:
        >>> format_permalink("post/{title}", date(2016, 3, 1), "hello-world")
        'post/hello-world'
    """
    return pattern.format(
        year=f"{post_date.year:04d}",
        month=f"{post_date.month:02d}",
        day=f"{post_date.day:02d}",
        title=slug,
    ).strip("/")


def permalink_destination(permalink: str) -> str:
    """Return the output file for a permalink, adding ``.html`` when it has no extension."""
    if PurePosixPath(permalink).suffix:
        return permalink
    return f"{permalink}.html"


class PostLoader:
    """Loads blog posts from the source directory.

    Every file under the posts directory must match the source pattern.
    A file that does not match fails the build instead of being skipped or
    mis-dated.

    Attributes:
        source_dir: Site source directory.
        settings: Blog settings.
        renderer: Markdown renderer for post bodies.
        pattern: Compiled source pattern.
        posts_dir: Directory holding the posts.
    """

    def __init__(self, source_dir: Path, settings: BlogSettings, renderer: MarkdownRenderer):
        self.source_dir = source_dir
        self.settings = settings
        self.renderer = renderer
        self.source_pattern = settings.sources + settings.default_extension
        self.pattern = compile_source_pattern(self.source_pattern)
        prefix = settings.sources.split("{", 1)[0].rpartition("/")[0]
        self.posts_dir = source_dir / prefix if prefix else source_dir
        self._strict = bool(prefix)

    def iter_files(self) -> list[Path]:
        """Return candidate post files in a stable order."""
        if not self.posts_dir.exists():
            return []
        files: list[Path] = []
        for path in sorted(self.posts_dir.rglob("*")):
            if path.is_dir() or is_internal_path(path.relative_to(self.posts_dir)):
                continue
            files.append(path)
        return files

    def load(self) -> list[Post]:
        """Load all posts.

        Returns:
            Posts in filename order.

        Raises:
            BuildError: If a post file is malformed.
        """
        posts: list[Post] = []
        for path in self.iter_files():
            post = self.build(path)
            if post is not None:
                posts.append(post)
        return posts

    def build(self, path: Path) -> Post | None:
        """Build a Post from a source file.

        Args:
            path: Path to the post source.

        Returns:
            The post, or None when the posts directory is the source root and
            the file is not a post.

        Raises:
            BuildError: If the filename, date or front matter is invalid.
        """
        rel = path.relative_to(self.source_dir).as_posix()
        match = self.pattern.match(rel)
        if match is None:
            if not self._strict:
                return None
            raise BuildError(
                path, f"Post filename does not match '{self.source_pattern}'"
            )

        try:
            frontmatter, body = parse_frontmatter(path.read_text(encoding="utf-8"))
        except FrontMatterError as exc:
            raise BuildError(path, str(exc), exc) from exc
        if frontmatter is None:
            raise BuildError(path, "Missing front matter")
        title = frontmatter.get("title")
        if title is None or not str(title).strip():
            raise BuildError(path, "Front matter is missing 'title'")

        slug = slugify(match.group("title"))
        if not slug:
            raise BuildError(path, f"Cannot derive a slug from '{match.group('title')}'")
        post_date = self._post_date(path, match, frontmatter)
        try:
            permalink = format_permalink(self.settings.permalink, post_date, slug)
        except (KeyError, IndexError) as exc:
            raise BuildError(
                path, f"Unknown placeholder {exc} in blog.permalink", exc
            ) from exc

        return Post(
            title=str(title),
            slug=slug,
            date=post_date,
            path=path,
            frontmatter=frontmatter,
            body=body,
            content=self.renderer.render(body),
            permalink=permalink,
        )

    def _post_date(self, path: Path, match: re.Match[str], frontmatter: dict[str, Any]) -> date:
        """Return the filename date, overridden by a front matter ``date``."""
        groups = match.groupdict()
        filename_date = None
        if all(groups.get(key) for key in ("year", "month", "day")):
            try:
                filename_date = date(int(groups["year"]), int(groups["month"]), int(groups["day"]))
            except ValueError as exc:
                raise BuildError(path, f"Invalid date in filename: {exc}", exc) from exc

        value = frontmatter.get("date")
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value.strip())
            except ValueError as exc:
                raise BuildError(path, f"Invalid front matter date '{value}'", exc) from exc
        if value is not None:
            raise BuildError(path, "Front matter date must be YYYY-MM-DD")
        if filename_date is None:
            raise BuildError(path, "Post has no date in its filename or front matter")
        return filename_date


class SourceLoader:
    """Loads pages and static files from the source directory.

    Templates (``.jinja``) and Markdown files become pages; every other file
    is copied verbatim. Internal paths, the layouts directory and ignored
    directories are skipped.

    Attributes:
        config: Site configuration.
        renderer: Markdown renderer for Markdown pages.
        ignored: Directories claimed by extensions.
    """

    def __init__(
        self,
        config: SiteConfig,
        renderer: MarkdownRenderer,
        ignored: Iterable[Path] = (),
    ):
        self.config = config
        self.source_dir = config.source_path
        self.renderer = renderer
        self.ignored = [config.layouts_path, *ignored]

    def iter_files(self) -> list[Path]:
        files: list[Path] = []
        for path in sorted(self.source_dir.rglob("*")):
            if path.is_dir():
                continue
            if is_internal_path(path.relative_to(self.source_dir)):
                continue
            if any(path.is_relative_to(ignored) for ignored in self.ignored):
                continue
            files.append(path)
        return files

    def load(self) -> list[Resource]:
        """Load all pages and static files.

        Raises:
            BuildError: If the source directory is missing or a page has
                invalid front matter.
        """
        if not self.source_dir.is_dir():
            raise BuildError(self.source_dir, "Source directory not found")
        return [self.build(path) for path in self.iter_files()]

    def build(self, path: Path) -> Resource:
        rel = path.relative_to(self.source_dir)
        output_name, source_type = strip_template_extension(path.name)
        destination = (PurePosixPath(rel.parent.as_posix()) / output_name).as_posix()
        if source_type == "static":
            return Resource(destination=destination, kind="static", source_path=path)

        try:
            frontmatter, body = parse_frontmatter(path.read_text(encoding="utf-8"))
        except FrontMatterError as exc:
            raise BuildError(path, str(exc), exc) from exc
        frontmatter = frontmatter or {}
        if source_type == "markdown":
            body = self.renderer.render(body)
        return Resource(
            destination=destination,
            kind="page",
            source_path=path,
            source_type=source_type,
            frontmatter=frontmatter,
            body=body,
            title=str(frontmatter.get("title") or titleize(output_name)),
        )
