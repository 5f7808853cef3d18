"""Markdown rendering for Folio.

This module converts Markdown post and page bodies to HTML with mistune.
Fenced code blocks keep their language hint and are highlighted with
Pygments when a highlighter is configured; smart punctuation is applied to
the rendered HTML with smartypants.

Key classes:
- MarkdownOptions: Options collected from config and extensions.
- CodeHighlighter: Pygments wrapper producing inline-highlighted code.
- MarkdownRenderer: Renders Markdown text to HTML.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import mistune
import smartypants
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .utils import escape_html

# Quotes, backticks, dashes and ellipses, plus the &quot; entities mistune emits
SMARTYPANTS_ATTRS = smartypants.Attr.set1 | smartypants.Attr.w

MARKDOWN_PLUGINS = ["strikethrough", "footnotes", "table", "url"]


class CodeHighlighter:
    """Highlights code samples with Pygments.

    Attributes:
        lexer_options: Options passed to every lexer (e.g. ``startinline``).
        css_class: Class added to the ``<pre>`` element of highlighted blocks.
    """

    def __init__(self, lexer_options: dict[str, Any] | None = None, css_class: str = "highlight"):
        self.lexer_options = dict(lexer_options or {})
        self.css_class = css_class
        self._formatter = HtmlFormatter(nowrap=True)

    def highlight(self, code: str, language: str) -> str | None:
        """Highlight code for a language.

        Args:
            code: Source code sample.
            language: Pygments lexer alias such as ``php`` or ``python``.

        Returns:
            Highlighted HTML without a wrapper, or None for unknown languages.
        """
        try:
            lexer = get_lexer_by_name(language, **self.lexer_options)
        except ClassNotFound:
            return None
        return highlight(code, lexer, self._formatter)

    def stylesheet(self) -> str:
        """Return Pygments CSS rules scoped to the highlight class."""
        return HtmlFormatter().get_style_defs(f".{self.css_class}")


@dataclass
class MarkdownOptions:
    """Options for MarkdownRenderer.

    Extensions adjust these in their ``configure_markdown`` hook before the
    renderer is created.
    """

    fenced_code_blocks: bool = True
    smartypants: bool = True
    highlighter: CodeHighlighter | None = None
    plugins: list[str] = field(default_factory=lambda: list(MARKDOWN_PLUGINS))


class _BlogHTMLRenderer(mistune.HTMLRenderer):
    """HTML renderer that emits language-tagged, highlighted code blocks."""

    def __init__(self, highlighter: CodeHighlighter | None):
        super().__init__(escape=False)
        self.highlighter = highlighter

    def block_code(self, code: str, info: str | None = None) -> str:
        language = info.split()[0] if info and info.strip() else ""
        if not language:
            return f"<pre><code>{escape_html(code)}</code></pre>\n"

        language = escape_html(language)
        body = None
        if self.highlighter is not None:
            body = self.highlighter.highlight(code, language)
        if body is None:
            body = escape_html(code)
        pre_class = ""
        if self.highlighter is not None:
            pre_class = f' class="{self.highlighter.css_class} {language}"'
        return f'<pre{pre_class}><code class="language-{language}">{body}</code></pre>\n'


class MarkdownRenderer:
    """Renders Markdown content to HTML."""

    source_type = "markdown"

    def __init__(self, options: MarkdownOptions | None = None):
        self.options = options or MarkdownOptions()

    def render(self, text: str) -> str:
        """Render Markdown text to HTML.

        Args:
            text: Markdown source, without front matter.

        Returns:
            Rendered HTML.
        """
        renderer = _BlogHTMLRenderer(self.options.highlighter)
        markdown = mistune.create_markdown(renderer=renderer, plugins=self.options.plugins)
        if not self.options.fenced_code_blocks:
            block = markdown.block
            for rules in (block.rules, block.block_quote_rules, block.list_rules):
                if "fenced_code" in rules:
                    rules.remove("fenced_code")
        html = markdown(text)
        if self.options.smartypants:
            html = smartypants.smartypants(html, SMARTYPANTS_ATTRS)
        return html
