"""Scribe static blog generator.

Scribe turns a directory of Markdown posts and pages with YAML front matter
into a static site using Jinja2 layouts. Posts are listed newest first on a
paginated home page and on one page per category; RSS and sitemap feeds are
generated alongside.

The main entry point is the CLI module, which provides commands for
scaffolding new projects, building sites, creating posts and running the
development server with live reload.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
