"""Exceptions raised by Scribe.

Every build error carries the source file that caused it so the CLI can
point the author at the offending document before aborting the run.

Hierarchy:
- ScribeError: base class for everything Scribe raises.
- ConfigError: invalid scribe.yaml values.
- BuildError: a build-time failure tied to a source file.
    - MalformedFrontMatterError
    - MissingRequiredFieldError
    - TemplateNotFoundError
    - DuplicatePathError
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path


class ScribeError(Exception):
    """Base class for Scribe errors."""


class ConfigError(ScribeError):
    """Raised when scribe.yaml contains an invalid value."""


class BuildError(ScribeError):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error, if any.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path | None,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        if source_path is None:
            super().__init__(message)
        else:
            super().__init__(f"{source_path}: {message}")


class MalformedFrontMatterError(BuildError):
    """The front matter block is missing, unterminated or holds invalid values."""


class MissingRequiredFieldError(BuildError):
    """A document lacks a field its layout requires.

    Attributes:
        field: Name of the missing front matter key.
    """

    def __init__(self, source_path: Path | None, field: str, layout: str = "post"):
        self.field = field
        super().__init__(
            source_path, f"'{field}' is required for layout '{layout}'"
        )


class TemplateNotFoundError(BuildError):
    """A layout or include referenced during rendering does not exist.

    Attributes:
        template: Name of the missing template.
        searched: Template file names that were tried.
    """

    def __init__(
        self,
        source_path: Path | None,
        template: str,
        searched: Sequence[str] = (),
    ):
        self.template = template
        self.searched = list(searched)
        message = f"Template '{template}' not found"
        if self.searched:
            message += f" (tried: {', '.join(self.searched)})"
        super().__init__(source_path, message)


class DuplicatePathError(BuildError):
    """Two outputs resolve to the same file in the output directory.

    Attributes:
        url: The contested URL.
        paths: Sources competing for it (aggregate pages appear by URL).
    """

    def __init__(self, url: str, first: str, second: str, source_path: Path | None = None):
        self.url = url
        self.paths = (first, second)
        super().__init__(
            source_path, f"URL {url} is produced by both {first} and {second}"
        )
