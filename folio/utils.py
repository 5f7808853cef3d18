"""Utility functions for Folio.

String and path helpers shared by the content loaders, the blog extension
and the asset pipeline.

Key functions:
    slugify: Convert a title or filename segment to a URL slug.
    titleize: Convert a filename to a human-readable title.
    route_for: Derive the public route of an output file.
    strip_template_extension: Split a source filename into output name and type.
    ensure_clean_dir: Ensure a directory exists and is empty.
    escape_html: Escape special HTML characters.
"""

from __future__ import annotations

import re
import shutil
import unicodedata
from pathlib import Path, PurePosixPath

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")

# Extensions that mark a source file as a template, mapped to their source type
TEMPLATE_EXTENSIONS = {
    ".jinja": "jinja",
    ".md": "markdown",
}


def slugify(text: str) -> str:
    """Convert text to a URL slug.

    Unicode is folded to ASCII, the result is lowercased and every run of
    characters outside ``[a-z0-9]`` becomes a single hyphen.

    Args:
        text: Title or filename segment.

    Returns:
        URL-friendly slug, possibly empty.

    Examples:
        >>> slugify("Hello World")
        'hello-world'

        >>> slugify("Café: déjà vu!")
        'cafe-deja-vu'
    """
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode()
    return _NON_SLUG_RE.sub("-", folded.lower()).strip("-")


def titleize(name: str) -> str:
    """Convert a filename segment to a human-readable title.

    Args:
        name: Filename or slug, with or without extension.

    Returns:
        Title-cased words, or "Untitled" when nothing is left.

    Examples:
        >>> titleize("getting-started")
        'Getting Started'
    """
    base = name.split(".", 1)[0]
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def strip_template_extension(filename: str) -> tuple[str, str]:
    """Split a source filename into its output filename and source type.

    Template extensions are stripped. Output names left without an
    extension get ``.html``.

    Args:
        filename: Source filename such as ``feed.xml.jinja``.

    Returns:
        Tuple of (output filename, source type). The source type is
        "jinja", "markdown" or "static".

    Examples:
        >>> strip_template_extension("feed.xml.jinja")
        ('feed.xml', 'jinja')

        >>> strip_template_extension("about.md")
        ('about.html', 'markdown')
    """
    suffix = Path(filename).suffix.lower()
    source_type = TEMPLATE_EXTENSIONS.get(suffix)
    if source_type is None:
        return filename, "static"
    output = filename[: -len(suffix)]
    if not Path(output).suffix:
        output = f"{output}.html"
    return output, source_type


def route_for(destination: str) -> str:
    """Return the public route of an output file.

    ``index.html`` files are served from their directory.

    Args:
        destination: Output path relative to the site root, POSIX style.

    Returns:
        Route beginning with a slash.

    Examples:
        >>> route_for("post/hello/index.html")
        '/post/hello/'

        >>> route_for("feed.xml")
        '/feed.xml'
    """
    path = PurePosixPath(destination)
    if path.name == "index.html":
        parent = path.parent.as_posix()
        return "/" if parent == "." else f"/{parent}/"
    return f"/{path.as_posix()}"


def is_internal_path(path: Path) -> bool:
    """Check if a path is internal (a component starts with ``_`` or ``.``).

    Internal paths hold partials, script sources and editor droppings.
    They are never published.

    Args:
        path: Relative path to check.

    Returns:
        True if any path component starts with an underscore or dot.
    """
    return any(part.startswith(("_", ".")) for part in path.parts)


def is_contained(destination: str) -> bool:
    """Check that a relative output path stays inside the output root."""
    path = PurePosixPath(destination)
    return not path.is_absolute() and ".." not in path.parts and bool(path.parts)


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


def escape_html(text: str) -> str:
    """Escape special HTML characters in a string.

    Args:
        text: The string to escape.

    Returns:
        The escaped string, safe for inclusion in HTML.

    Examples:
        >>> escape_html('<a href="x">Tom & Jerry</a>')
        '&lt;a href=&quot;x&quot;&gt;Tom &amp; Jerry&lt;/a&gt;'
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )
