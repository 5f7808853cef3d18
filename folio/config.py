"""Site configuration for Folio.

This module loads ``folio.yaml`` from the project root and turns it into a
SiteConfig object that is passed explicitly to every build component.
Missing keys fall back to defaults that describe a blog with paginated
posts, a landing page and a gulp-driven asset pipeline.

Key classes:
- SiteConfig: Top-level configuration object.
- BlogSettings, MarkdownSettings, SyntaxSettings: Per-capability settings.
- ExternalPipelineSettings: One external asset command.
- AssetSettings, VendorCopyRule: Settings for the bundled asset pipeline.
- PageRule: Route or glob mapped to a layout.

Key functions:
- load_config: Load and validate folio.yaml.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "folio.yaml"

_GLOB_CHARS = ("*", "?", "[")


class ConfigError(Exception):
    """Raised when folio.yaml is malformed."""


@dataclass(frozen=True)
class PageRule:
    """Maps a route, or a glob over routes, to a layout.

    Attributes:
        path: Route such as ``/`` or glob such as ``/*.xml``.
        layout: Layout name, or None to render without a layout.
    """

    path: str
    layout: str | None

    def __post_init__(self) -> None:
        # YAML spells "no layout" as false
        if self.layout is False:
            object.__setattr__(self, "layout", None)

    @property
    def is_pattern(self) -> bool:
        return any(char in self.path for char in _GLOB_CHARS)


@dataclass(frozen=True)
class MarkdownSettings:
    fenced_code_blocks: bool = True
    smartypants: bool = True


@dataclass(frozen=True)
class BlogSettings:
    """Settings for the blog extension.

    Attributes:
        sources: Source pattern for posts, relative to the source directory.
        default_extension: Template extension appended to ``sources``.
        permalink: Output pattern for posts.
        layout: Layout used for posts.
        paginate: Whether pageable pages are split into listing pages.
        per_page: Number of posts per listing page.
        page_link: Pattern for listing pages after the first.
    """

    sources: str = "posts/{year}-{month}-{day}-{title}.html"
    default_extension: str = ".md"
    permalink: str = "post/{title}"
    layout: str = "post"
    paginate: bool = True
    per_page: int = 5
    page_link: str = "page/{num}"

    def __post_init__(self) -> None:
        if isinstance(self.per_page, bool) or not isinstance(self.per_page, int) or self.per_page < 1:
            raise ConfigError(f"blog.per_page must be a positive integer, got {self.per_page!r}")
        if "{title}" not in self.sources:
            raise ConfigError("blog.sources must contain a {title} placeholder")
        if "{num}" not in self.page_link:
            raise ConfigError("blog.page_link must contain a {num} placeholder")


@dataclass(frozen=True)
class ExternalPipelineSettings:
    """An external command that produces files merged into the build.

    Attributes:
        name: Label used in messages.
        command: Command line, split with shell rules.
        source: Directory the command writes to, relative to the project root.
    """

    name: str
    command: str
    source: str


@dataclass(frozen=True)
class SyntaxSettings:
    lexer_options: dict[str, Any] = field(default_factory=lambda: {"startinline": True})
    css_class: str = "highlight"


@dataclass(frozen=True)
class VendorCopyRule:
    """Copy ``source`` (file or directory) to ``dest`` verbatim."""

    source: str
    dest: str


DEFAULT_VENDOR = (
    VendorCopyRule(
        "node_modules/jquery/dist/jquery.min.js",
        "javascripts/vendor/jquery.min.js",
    ),
    VendorCopyRule(
        "node_modules/bootstrap-sass/assets/javascripts/bootstrap.min.js",
        "javascripts/vendor/bootstrap.min.js",
    ),
    VendorCopyRule("node_modules/font-awesome/fonts", "fonts/vendor"),
)


@dataclass(frozen=True)
class AssetSettings:
    """Settings for the bundled JavaScript asset pipeline.

    Attributes:
        entry: Entry module, relative to the project root.
        bundle: Bundle destination, relative to ``output_dir``.
        output_dir: Directory the pipeline writes to.
        minify: Whether to minify the bundle.
        vendor: Files and directories copied verbatim.
    """

    entry: str = "source/javascripts/_app.js"
    bundle: str = "javascripts/app.js"
    output_dir: str = ".tmp/dist"
    minify: bool = False
    vendor: tuple[VendorCopyRule, ...] = DEFAULT_VENDOR


DEFAULT_PAGE_RULES = (
    PageRule("/*.xml", None),
    PageRule("/*.json", None),
    PageRule("/*.txt", None),
    PageRule("/", "landing"),
)

DEFAULT_EXTERNAL_PIPELINES = (
    ExternalPipelineSettings(name="gulp", command="gulp", source=".tmp/dist"),
)


@dataclass(frozen=True)
class SiteConfig:
    """Configuration for one site build.

    Attributes:
        project_root: Directory holding folio.yaml.
        source_dir: Source tree, relative to the project root.
        output_dir: Build output, relative to the project root.
        layouts_dir: Layout templates, relative to the source tree.
        default_layout: Layout used when no rule applies.
        site: Free-form data exposed to templates as ``site``.
        pages: Layout rules for routes and route globs.
        markdown: Markdown rendering options.
        blog: Blog settings, or None to disable the blog.
        directory_indexes: Whether ``foo.html`` is published as ``foo/index.html``.
        external_pipelines: External commands run alongside the build.
        syntax: Syntax highlighting settings, or None to disable it.
        assets: Settings for ``folio assets``.
    """

    project_root: Path
    source_dir: str = "source"
    output_dir: str = "build"
    layouts_dir: str = "layouts"
    default_layout: str = "layout"
    site: dict[str, Any] = field(default_factory=dict)
    pages: tuple[PageRule, ...] = DEFAULT_PAGE_RULES
    markdown: MarkdownSettings = field(default_factory=MarkdownSettings)
    blog: BlogSettings | None = field(default_factory=BlogSettings)
    directory_indexes: bool = True
    external_pipelines: tuple[ExternalPipelineSettings, ...] = DEFAULT_EXTERNAL_PIPELINES
    syntax: SyntaxSettings | None = field(default_factory=SyntaxSettings)
    assets: AssetSettings = field(default_factory=AssetSettings)

    def __post_init__(self) -> None:
        for key in ("source_dir", "output_dir"):
            if not isinstance(getattr(self, key), str):
                raise ConfigError(f"'{key}' must be a string")
        if not isinstance(self.assets.output_dir, str):
            raise ConfigError("'assets.output_dir' must be a string")
        _check_output_dir(self.project_root, self.source_dir, self.output_dir, "output_dir")
        _check_output_dir(
            self.project_root, self.source_dir, self.assets.output_dir, "assets.output_dir"
        )

    @property
    def source_path(self) -> Path:
        return self.project_root / self.source_dir

    @property
    def output_path(self) -> Path:
        return self.project_root / self.output_dir

    @property
    def layouts_path(self) -> Path:
        return self.source_path / self.layouts_dir


def load_config(project_root: Path) -> SiteConfig:
    """Load site configuration from folio.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        SiteConfig with defaults applied for missing keys.

    Raises:
        ConfigError: If the file is not valid YAML or a section is malformed.
    """
    config_path = project_root / CONFIG_FILENAME
    raw: Any = {}
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            try:
                raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"{config_path}: invalid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")
    return config_from_dict(project_root, raw)


def config_from_dict(project_root: Path, raw: dict[str, Any]) -> SiteConfig:
    """Build a SiteConfig from an already-parsed mapping."""
    values = dict(raw)
    _reject_unknown(values, SiteConfig, "folio.yaml", exclude={"project_root"})

    if "site" in values and not isinstance(values["site"], dict):
        raise ConfigError("'site' must be a mapping")
    if "pages" in values:
        values["pages"] = tuple(
            _build(PageRule, item, "pages") for item in _as_list(values["pages"], "pages")
        )
    if "markdown" in values:
        values["markdown"] = _build(MarkdownSettings, values["markdown"], "markdown")
    if "blog" in values:
        values["blog"] = _optional(BlogSettings, values["blog"], "blog")
    if "syntax" in values:
        values["syntax"] = _optional(SyntaxSettings, values["syntax"], "syntax")
    if "external_pipelines" in values:
        values["external_pipelines"] = tuple(
            _build(ExternalPipelineSettings, item, "external_pipelines")
            for item in _as_list(values["external_pipelines"], "external_pipelines")
        )
    if "assets" in values:
        assets = values["assets"]
        if not isinstance(assets, dict):
            raise ConfigError("'assets' must be a mapping")
        assets = dict(assets)
        if "vendor" in assets:
            assets["vendor"] = tuple(
                _build(VendorCopyRule, item, "assets.vendor")
                for item in _as_list(assets["vendor"], "assets.vendor")
            )
        values["assets"] = _build(AssetSettings, assets, "assets")
    return SiteConfig(project_root=project_root, **values)


def _as_list(value: Any, section: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"'{section}' must be a list")
    return value


def _optional(cls: type, value: Any, section: str) -> Any:
    """Build a settings section that can be switched off with ``false``."""
    if value is False or value is None:
        return None
    if value is True:
        return cls()
    return _build(cls, value, section)


def _build(cls: type, value: Any, section: str) -> Any:
    if not isinstance(value, dict):
        raise ConfigError(f"'{section}' entries must be mappings")
    _reject_unknown(value, cls, section)
    try:
        return cls(**value)
    except TypeError as exc:
        raise ConfigError(f"'{section}': {exc}") from exc


def _reject_unknown(
    value: dict[str, Any], cls: type, section: str, exclude: set[str] | None = None
) -> None:
    allowed = {f.name for f in fields(cls)} - (exclude or set())
    unknown = sorted(set(value) - allowed)
    if unknown:
        raise ConfigError(f"Unknown keys in '{section}': {', '.join(unknown)}")


def _check_output_dir(project_root: Path, source_dir: str, output_dir: str, key: str) -> None:
    """Refuse output directories whose cleanup would delete project files.

    Outputs are wiped and replaced on every build, so they must not be the
    project root, contain it, or overlap the source tree.
    """
    root = project_root.resolve()
    source = (project_root / source_dir).resolve()
    output = (project_root / output_dir).resolve()
    if root.is_relative_to(output):
        raise ConfigError(f"'{key}' must not be or contain the project root: {output_dir!r}")
    if source.is_relative_to(output) or output.is_relative_to(source):
        raise ConfigError(
            f"'{key}' must not overlap the source directory {source_dir!r}: {output_dir!r}"
        )
