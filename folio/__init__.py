"""Folio static blog builder.

This package turns a source tree of Markdown posts, Jinja2 pages and static
files into a publishable site, and ships a small JavaScript asset pipeline
that can run alongside the build as an external process.

The main entry point is the CLI module, which provides commands for building
the site, running the asset pipeline and creating new articles.

Architecture:
- Configuration is loaded once into a SiteConfig and passed explicitly.
- Blog, directory indexes, syntax highlighting and external pipelines are
  extension objects registered on the Builder.
- The asset bundler and vendor copier live in their own modules so they can
  run as a separate process.
"""

__all__ = ["__version__"]
__version__ = "0.3.0"
