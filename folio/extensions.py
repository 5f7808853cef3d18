"""Build extensions for Folio.

Each capability of the build is a discrete object configured from its own
settings section and registered on the Builder explicitly.

Key classes:
- BuildContext: State shared by extensions during one build.
- BaseExtension: No-op implementation of every hook.
- BlogExtension: Loads posts, assigns permalinks and paginates listings.
- DirectoryIndexes: Publishes ``foo.html`` as ``foo/index.html``.
- SyntaxHighlighting: Enables Pygments highlighting of fenced code.

The external asset pipeline extension lives in ``folio.external``.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from .collections import ArticleCollection, paginate
from .config import BlogSettings, SiteConfig, SyntaxSettings
from .content import PostLoader, Resource, permalink_destination
from .renderers import CodeHighlighter, MarkdownOptions, MarkdownRenderer


@dataclass
class BuildContext:
    """State shared by extensions during one build.

    Attributes:
        config: Site configuration.
        staging_dir: Directory the build writes to before publishing.
        markdown: Markdown renderer, available from ``before_build`` on.
        articles: Post resources, newest first, set by the blog extension.
        ignored_dirs: Source directories the page loader must skip.
        written: Destinations written to the staging directory.
        logs: Captured output of external commands, by name.
    """

    config: SiteConfig
    staging_dir: Path
    markdown: MarkdownRenderer | None = None
    articles: ArticleCollection = field(default_factory=lambda: ArticleCollection([]))
    ignored_dirs: list[Path] = field(default_factory=list)
    written: set[str] = field(default_factory=set)
    logs: dict[str, str] = field(default_factory=dict)

    def ignore(self, path: Path) -> None:
        self.ignored_dirs.append(path)


class BaseExtension:
    """Extension with no-op hooks; subclasses override what they need."""

    name = "extension"

    def configure_markdown(self, options: MarkdownOptions) -> None:
        pass

    def before_build(self, context: BuildContext) -> None:
        pass

    def manipulate_resources(
        self, resources: list[Resource], context: BuildContext
    ) -> list[Resource]:
        return resources

    def after_build(self, context: BuildContext) -> None:
        pass

    def abort(self, context: BuildContext) -> None:
        pass


class BlogExtension(BaseExtension):
    """Turns dated Markdown files into posts and paginates listing pages.

    Pages opt into pagination with ``pageable: true`` in their front matter.
    The first listing page keeps the page's own route; later pages are
    published under ``page_link`` relative to it.

    Attributes:
        settings: Blog settings.
    """

    name = "blog"

    def __init__(self, settings: BlogSettings):
        self.settings = settings
        self._loader: PostLoader | None = None

    def before_build(self, context: BuildContext) -> None:
        self._loader = PostLoader(context.config.source_path, self.settings, context.markdown)
        if self._loader.posts_dir != context.config.source_path:
            context.ignore(self._loader.posts_dir)

    def manipulate_resources(
        self, resources: list[Resource], context: BuildContext
    ) -> list[Resource]:
        articles = [self._article(post) for post in self._loader.load()]
        if self._loader.posts_dir == context.config.source_path:
            claimed = {article.source_path for article in articles}
            resources = [r for r in resources if r.source_path not in claimed]
        context.articles = ArticleCollection(articles).sorted()

        result: list[Resource] = []
        for resource in resources:
            if resource.kind == "page" and resource.frontmatter.get("pageable"):
                result.extend(self._listings(resource, context.articles))
            else:
                result.append(resource)
        result.extend(context.articles)
        return result

    @staticmethod
    def _article(post) -> Resource:
        return Resource(
            destination=permalink_destination(post.permalink),
            kind="post",
            source_path=post.path,
            source_type="markdown",
            frontmatter=post.frontmatter,
            body=post.content,
            title=post.title,
            post=post,
        )

    def _listings(self, page: Resource, articles: ArticleCollection) -> list[Resource]:
        if self.settings.paginate:
            per_page = self.settings.per_page
        else:
            per_page = max(len(articles), 1)
        base = _listing_base(page.destination)

        listings: list[Resource] = []
        for listing_page in paginate(articles, per_page):
            if listing_page.number == 1:
                destination = page.destination
            else:
                link = self.settings.page_link.format(num=listing_page.number).strip("/")
                destination = f"{base}{link}/index.html"
            listing = dataclasses.replace(
                page, destination=destination, kind="listing", paginator=listing_page
            )
            listing_page.resource = listing
            listings.append(listing)
        return listings


def _listing_base(destination: str) -> str:
    """Return the directory later listing pages are published under."""
    path = PurePosixPath(destination)
    base = path.parent if path.name == "index.html" else path.parent / path.stem
    return "" if base.as_posix() == "." else f"{base.as_posix()}/"


class DirectoryIndexes(BaseExtension):
    """Publishes ``foo.html`` as ``foo/index.html`` so it is served at ``/foo/``.

    A document can opt out with ``directory_index: false`` in its front matter.
    """

    name = "directory_indexes"

    def manipulate_resources(
        self, resources: list[Resource], context: BuildContext
    ) -> list[Resource]:
        for resource in resources:
            if resource.frontmatter.get("directory_index") is False:
                continue
            path = PurePosixPath(resource.destination)
            if path.suffix == ".html" and path.name != "index.html":
                resource.destination = (path.parent / path.stem / "index.html").as_posix()
        return resources


class SyntaxHighlighting(BaseExtension):
    """Highlights fenced code blocks with Pygments."""

    name = "syntax"

    def __init__(self, settings: SyntaxSettings):
        self.settings = settings

    def configure_markdown(self, options: MarkdownOptions) -> None:
        options.highlighter = CodeHighlighter(
            self.settings.lexer_options, css_class=self.settings.css_class
        )
