"""Site building functionality for Folio.

This module contains the Builder, which composes the registered extensions
into one build: it loads the source tree, lets extensions add and rewrite
resources, renders every resource with its layout into a staging
directory, waits for external pipelines, and only then publishes the
staging directory as the output directory.

Key functions:
- build_site: Load config, register the default extensions and build.
- default_extensions: The extensions a SiteConfig asks for.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path

from jinja2 import TemplateSyntaxError

from .config import SiteConfig, load_config
from .content import Resource, SourceLoader
from .errors import BuildError
from .extensions import (
    BlogExtension,
    BuildContext,
    DirectoryIndexes,
    SyntaxHighlighting,
)
from .external import ExternalPipeline
from .layouts import LayoutResolver
from .protocols import Extension
from .renderers import MarkdownOptions, MarkdownRenderer
from .templates import LayoutNotFoundError, TemplateEngine
from .utils import is_contained

__all__ = ["BuildError", "BuildResult", "Builder", "build_site", "default_extensions"]


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        resources: Every resource written to the output directory.
        output_dir: Directory where the site was built.
        logs: Captured stdout of external pipelines, by name.
    """

    resources: list[Resource]
    output_dir: Path
    logs: dict[str, str] = field(default_factory=dict)

    @property
    def posts(self) -> list[Resource]:
        return [r for r in self.resources if r.kind == "post"]


def default_extensions(config: SiteConfig, include_external: bool = True) -> list[Extension]:
    """Create the extensions a configuration asks for.

    Args:
        config: Site configuration.
        include_external: Whether to run external pipelines.

    Returns:
        Extensions in registration order.
    """
    extensions: list[Extension] = []
    if config.syntax is not None:
        extensions.append(SyntaxHighlighting(config.syntax))
    if config.blog is not None:
        extensions.append(BlogExtension(config.blog))
    if config.directory_indexes:
        extensions.append(DirectoryIndexes())
    if include_external:
        for settings in config.external_pipelines:
            extensions.append(ExternalPipeline(settings, config.project_root))
    return extensions


class Builder:
    """Builds a site from a configuration and a set of extensions.

    Attributes:
        config: Site configuration.
        extensions: Registered extensions, in hook order.
    """

    def __init__(self, config: SiteConfig, extensions: list[Extension] | None = None):
        self.config = config
        self.extensions: list[Extension] = []
        for extension in extensions or []:
            self.register(extension)

    def register(self, extension: Extension) -> None:
        """Register an extension.

        Raises:
            TypeError: If the object does not implement the Extension protocol.
        """
        if not isinstance(extension, Extension):
            raise TypeError(f"{extension!r} does not implement the Extension protocol")
        self.extensions.append(extension)

    def build(self) -> BuildResult:
        """Build the site.

        Returns:
            BuildResult for the published output.

        Raises:
            BuildError: If any step fails. The previous output is left in place.
        """
        output_dir = self.config.output_path
        staging_dir = output_dir.parent / f".{output_dir.name}.staging"
        if staging_dir.exists():
            shutil.rmtree(staging_dir)
        staging_dir.mkdir(parents=True)

        options = MarkdownOptions(
            fenced_code_blocks=self.config.markdown.fenced_code_blocks,
            smartypants=self.config.markdown.smartypants,
        )
        for extension in self.extensions:
            extension.configure_markdown(options)
        context = BuildContext(
            config=self.config,
            staging_dir=staging_dir,
            markdown=MarkdownRenderer(options),
        )

        started: list[Extension] = []
        try:
            for extension in self.extensions:
                started.append(extension)
                extension.before_build(context)

            loader = SourceLoader(self.config, context.markdown, context.ignored_dirs)
            resources = loader.load()
            for extension in self.extensions:
                resources = extension.manipulate_resources(resources, context)
            self._check_destinations(resources)

            engine = TemplateEngine(self.config, context.articles, options.highlighter)
            resolver = LayoutResolver.from_config(self.config)
            for resource in resources:
                self._write(resource, engine, resolver, context)

            for extension in self.extensions:
                extension.after_build(context)
        except BaseException:
            for extension in started:
                extension.abort(context)
            shutil.rmtree(staging_dir, ignore_errors=True)
            raise

        _publish(staging_dir, output_dir)
        return BuildResult(resources=resources, output_dir=output_dir, logs=context.logs)

    def _check_destinations(self, resources: list[Resource]) -> None:
        seen: dict[str, Resource] = {}
        for resource in resources:
            source = resource.source_path or self.config.source_path
            if not is_contained(resource.destination):
                raise BuildError(source, f"Output path '{resource.destination}' escapes the build directory")
            other = seen.get(resource.destination)
            if other is not None:
                raise BuildError(
                    source,
                    f"Output path '{resource.destination}' is also produced by {other.source_path}",
                )
            seen[resource.destination] = resource

    def _write(
        self,
        resource: Resource,
        engine: TemplateEngine,
        resolver: LayoutResolver,
        context: BuildContext,
    ) -> None:
        target = context.staging_dir / resource.destination
        target.parent.mkdir(parents=True, exist_ok=True)
        context.written.add(resource.destination)
        if resource.is_static:
            shutil.copy2(resource.source_path, target)
            return

        source = resource.source_path or self.config.source_path
        layout = resolver.resolve(resource.route, resource.frontmatter, resource.kind)
        try:
            rendered = engine.render(resource, layout)
        except LayoutNotFoundError as exc:
            raise BuildError(source, f"Undefined layout '{exc.layout}'", exc) from exc
        except TemplateSyntaxError as exc:
            raise BuildError(
                source,
                f"Template syntax error on line {exc.lineno}: {exc.message}",
                exc,
            ) from exc
        except Exception as exc:
            raise BuildError(source, _format_error_message(exc), exc) from exc
        with open(target, "w", encoding="utf-8", newline="\n") as f:
            f.write(rendered)


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message."""
    error_type = type(exc).__name__
    if error_type == "UndefinedError":
        return f"Undefined variable: {exc}"
    if error_type == "TemplateNotFound":
        return f"Template not found: {exc}"
    return f"{error_type}: {exc}"


def _publish(staging_dir: Path, output_dir: Path) -> None:
    """Replace the output directory with the staging directory."""
    backup = output_dir.parent / f".{output_dir.name}.previous"
    if backup.exists():
        shutil.rmtree(backup)
    if output_dir.exists():
        output_dir.rename(backup)
    staging_dir.rename(output_dir)
    if backup.exists():
        shutil.rmtree(backup)


def build_site(project_root: Path, include_external: bool = True) -> BuildResult:
    """Build the site in a project directory.

    Args:
        project_root: Directory holding folio.yaml.
        include_external: Whether to run external pipelines.

    Returns:
        BuildResult for the published output.
    """
    config = load_config(project_root)
    builder = Builder(config, default_extensions(config, include_external=include_external))
    return builder.build()
