"""Command-line interface for Folio.

This module defines the CLI commands using the Click framework.

Commands:
- build: Build the site into the output directory.
- assets: Bundle scripts and copy vendor files (the asset pipeline).
- article: Create a new blog post.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .config import ConfigError, load_config
from .content import compile_source_pattern
from .errors import AssetError, BuildError
from .utils import slugify


@click.group()
@click.version_option(version=__version__, prog_name="folio")
def cli():
    """Folio static blog builder."""


@cli.command()
@click.option("--verbose", is_flag=True, help="Show output of external pipelines")
@click.option("--no-external", is_flag=True, help="Skip external asset pipelines")
def build(verbose: bool, no_external: bool):
    """Build the site into the output directory."""
    project_root = Path.cwd()
    from .build import build_site

    try:
        result = build_site(project_root, include_external=not no_external)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from None
    except BuildError as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  File: {_display(exc.source_path, project_root)}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None

    if verbose:
        for name, output in result.logs.items():
            click.echo(click.style(f"[{name}]", fg="cyan"))
            if output.strip():
                click.echo(output.rstrip())
    click.echo(
        f"Built {len(result.resources)} files ({len(result.posts)} posts) into {result.output_dir}"
    )


@cli.command()
def assets():
    """Bundle scripts and copy vendor files."""
    project_root = Path.cwd()
    from .assets import AssetPipeline

    try:
        config = load_config(project_root)
        result = AssetPipeline(project_root, config.assets).run()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from None
    except AssetError as exc:
        click.echo(click.style("Asset build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  Path: {_display(exc.path, project_root)}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None

    click.echo(
        f"Bundled {len(result.modules)} modules into {_display(result.bundle, project_root)}"
    )
    for dest in result.copied:
        click.echo(f"Copied {_display(dest, project_root)}")


@cli.command()
@click.argument("title", required=False)
@click.option(
    "--date",
    "date_str",
    help="Publication date (YYYY-MM-DD); defaults to today",
)
def article(title: str | None, date_str: str | None):
    """Create a new blog post."""
    project_root = Path.cwd()
    try:
        config = load_config(project_root)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from None
    if config.blog is None:
        raise click.ClickException("The blog is disabled in folio.yaml.")

    if title is None:
        title = questionary.text(
            "Title:",
            validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
            style=_questionary_style(),
        ).ask()
        if title is None:
            raise click.Abort()
    title = title.strip()

    slug = slugify(title)
    if not slug:
        raise click.ClickException(f"Cannot derive a slug from '{title}'")
    post_date = _parse_date(date_str) if date_str else date.today()

    settings = config.blog
    rel = settings.sources.format(
        year=f"{post_date.year:04d}",
        month=f"{post_date.month:02d}",
        day=f"{post_date.day:02d}",
        title=slug,
    ) + settings.default_extension
    target = config.source_path / rel

    existing = _existing_slugs(config.source_path, settings.sources + settings.default_extension)
    if slug in existing:
        raise click.ClickException(f"A post with slug '{slug}' already exists: {existing[slug]}")

    target.parent.mkdir(parents=True, exist_ok=True)
    frontmatter = yaml.safe_dump({"title": title, "date": post_date}, sort_keys=False)
    target.write_text(f"---\n{frontmatter}---\n\n", encoding="utf-8")
    click.echo(f"Created {_display(target, project_root)}")


def _parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise click.BadParameter(f"'{value}' is not a YYYY-MM-DD date", param_hint="--date") from None


def _existing_slugs(source_dir: Path, pattern: str) -> dict[str, str]:
    """Map slugs of existing posts to their filenames."""
    regex = compile_source_pattern(pattern)
    slugs: dict[str, str] = {}
    if not source_dir.exists():
        return slugs
    for path in source_dir.rglob("*"):
        if not path.is_file():
            continue
        match = regex.match(path.relative_to(source_dir).as_posix())
        if match:
            slugs[slugify(match.group("title"))] = path.name
    return slugs


def _display(path: Path, root: Path) -> str:
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()
