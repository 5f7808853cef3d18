"""Front matter parsing for Folio.

Source documents may start with a YAML block between ``---`` markers.
Posts require one; pages and listing templates may omit it.
"""

from __future__ import annotations

import re
from typing import Any

import yaml

FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)


class FrontMatterError(ValueError):
    """Raised when a front matter block is present but unusable."""


def parse_frontmatter(text: str) -> tuple[dict[str, Any] | None, str]:
    """Split a document into its front matter and body.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (front matter mapping or None when there is no block, body).

    Raises:
        FrontMatterError: If the block is not valid YAML or not a mapping.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return None, text
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        raise FrontMatterError(f"Invalid front matter: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterError("Front matter must be a mapping")
    return data, text[match.end() :]
