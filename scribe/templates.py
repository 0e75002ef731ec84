"""Template rendering engine for Scribe.

This module uses Jinja2 to render layouts. Layouts are looked up strictly:
a missing layout or include aborts the build with TemplateNotFoundError
rather than silently falling back to the raw body.

Key class:
- TemplateEngine: Handles template lookup and provides context to templates.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    Template,
    TemplateNotFound,
    TemplateSyntaxError,
    select_autoescape,
)
from markupsafe import Markup, escape

from .collections import DocumentCollection
from .content import Document
from .errors import BuildError, TemplateNotFoundError
from .renderers import Heading, pygments_css
from .utils import join_root_url

TEMPLATE_SUFFIXES = (".html.jinja", ".jinja", ".html")


def render_toc(headings: Iterable[Heading]) -> Markup:
    """Render a table of contents as nested HTML lists.

    Args:
        headings: Headings in document order.

    Returns:
        Markup-safe HTML, or empty Markup if there are no headings.
    """
    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level

        # Close nested lists if going to a shallower level
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        elif not level_stack or level > level_stack[-1]:  # pragma: no branch
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(f'<li><a href="#{escape(heading.id)}">{escape(heading.text)}</a>')

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


def _format_error_message(exc: Exception) -> str:
    """Format an exception raised inside a template into a readable message."""
    error_type = type(exc).__name__
    error_msg = str(exc)
    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"
    return f"{error_type}: {error_msg}"


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Templates are searched in ``_layouts``, then ``_partials``, then the site
    directory itself.

    Attributes:
        site_dir: Directory containing templates.
        data: Global site data.
        config: Build configuration.
        root_url: Base URL prefixed by ``url_for``.
        env: Jinja2 environment.
    """

    def __init__(
        self,
        site_dir: Path,
        data: dict[str, Any],
        config: dict[str, Any] | None = None,
        root_url: str | None = None,
    ):
        self.site_dir = site_dir
        self.data = data
        self.config = config or {}
        self.root_url = root_url if root_url is not None else self.config.get("root_url", "")
        self.env = Environment(
            loader=FileSystemLoader(
                [
                    site_dir / "_layouts",
                    site_dir / "_partials",
                    site_dir,
                ]
            ),
            autoescape=select_autoescape(["html", "xml", "html.jinja"]),
            enable_async=False,
        )
        self._install_globals()

    def _install_globals(self) -> None:
        self.env.globals["site"] = self.data
        self.env.globals["config"] = self.config
        self.env.globals["url_for"] = self.url_for
        self.env.globals["render_toc"] = render_toc
        self.env.globals["pygments_css"] = pygments_css
        self.env.globals["posts"] = DocumentCollection([])
        self.env.globals["categories"] = DocumentCollection([]).categories()

    def update_collections(self, documents: Iterable[Document]) -> None:
        """Expose the complete document set to templates.

        Args:
            documents: Every loaded document.
        """
        collection = DocumentCollection(documents)
        self.env.globals["posts"] = collection.sorted()
        self.env.globals["categories"] = collection.categories()

    def set_permalink_resolver(self, resolver: Callable[[Document], str]) -> None:
        """Install the ``permalink(document)`` template function."""
        self.env.globals["permalink"] = resolver

    def url_for(self, path: str) -> str:
        """Generate a URL for a path, applying root_url if configured.

        Args:
            path: Path to generate URL for.

        Returns:
            Full URL with root_url prefix if configured.
        """
        if path.startswith(("http://", "https://", "//")):
            return path
        if self.root_url:
            return join_root_url(self.root_url, path)
        return path if path.startswith("/") else f"/{path}"

    def resolve(self, name: str, source_path: Path | None = None) -> Template:
        """Find the layout template called ``name``.

        Args:
            name: Layout name such as "post" or "index".
            source_path: Document being rendered, for error reporting.

        Returns:
            Jinja2 Template object.

        Raises:
            TemplateNotFoundError: If no candidate file exists.
            BuildError: If the template has a syntax error.
        """
        candidates = [f"{name}{suffix}" for suffix in TEMPLATE_SUFFIXES]
        for candidate in candidates:
            try:
                return self.env.get_template(candidate)
            except TemplateNotFound:
                continue
            except TemplateSyntaxError as exc:
                raise BuildError(
                    Path(exc.filename) if exc.filename else source_path,
                    f"Template syntax error on line {exc.lineno}: {exc.message}",
                    exc,
                ) from exc
        raise TemplateNotFoundError(source_path, name, candidates)

    def render(
        self, name: str, context: dict[str, Any], source_path: Path | None = None
    ) -> str:
        """Render the layout ``name`` with ``context``.

        Args:
            name: Layout name.
            context: Variables available to the template.
            source_path: Document being rendered, for error reporting.

        Returns:
            Rendered text.

        Raises:
            TemplateNotFoundError: If the layout or an include is missing.
            BuildError: For any other template failure.
        """
        template = self.resolve(name, source_path)
        try:
            return template.render(**context)
        except TemplateNotFound as exc:
            raise TemplateNotFoundError(source_path, exc.name or str(exc)) from exc
        except TemplateSyntaxError as exc:
            raise BuildError(
                source_path,
                f"Template syntax error on line {exc.lineno}: {exc.message}",
                exc,
            ) from exc
        except Exception as exc:
            raise BuildError(source_path, _format_error_message(exc), exc) from exc
