"""Front matter parsing and validation.

Every content file starts with a YAML block between two ``---`` lines.
The block is validated against a schema chosen by its ``layout`` key, so a
malformed post fails while loading instead of half-way through rendering.

Key classes:
- PostFrontMatter: Validated metadata of a ``layout: post`` document.
- PageFrontMatter: Validated metadata of a ``layout: page`` document.

Key functions:
- split_front_matter: Separate the metadata block from the body.
- parse_front_matter: Validate a metadata mapping into one of the schemas.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, ClassVar, Union

import yaml

from .errors import MalformedFrontMatterError, MissingRequiredFieldError
from .utils import normalize_url

LAYOUTS = ("post", "page")
DELIMITER = "---"

_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M %z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
)
_CATEGORY_SPLIT_RE = re.compile(r"[\s,]+")


@dataclass(frozen=True)
class PostFrontMatter:
    """Metadata of a post. Title and date are mandatory."""

    layout: ClassVar[str] = "post"

    title: str
    date: datetime
    categories: tuple[str, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PageFrontMatter:
    """Metadata of a standalone page.

    ``title`` may be missing, in which case the loader derives one from the
    file name. ``permalink`` overrides the output URL.
    """

    layout: ClassVar[str] = "page"

    title: str | None = None
    permalink: str | None = None
    categories: tuple[str, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict)


FrontMatter = Union[PostFrontMatter, PageFrontMatter]


def split_front_matter(text: str, path: Path) -> tuple[dict[str, Any], str]:
    """Split raw file content into the front matter mapping and the body.

    Args:
        text: Raw file content.
        path: Source path, used in error messages.

    Returns:
        Tuple of (front matter dict, body text).

    Raises:
        MalformedFrontMatterError: If either delimiter is missing, the YAML
            is invalid, or the block is not a mapping.
    """
    lines = text.lstrip("\ufeff").splitlines(keepends=True)
    if not lines or lines[0].strip() != DELIMITER:
        raise MalformedFrontMatterError(path, "missing opening '---' delimiter")

    for index in range(1, len(lines)):
        if lines[index].strip() == DELIMITER:
            block = "".join(lines[1:index])
            body = "".join(lines[index + 1 :])
            break
    else:
        raise MalformedFrontMatterError(path, "missing closing '---' delimiter")

    try:
        data = yaml.safe_load(block)
    except (yaml.YAMLError, ValueError) as exc:
        # PyYAML raises ValueError for impossible dates such as 2024-13-45
        raise MalformedFrontMatterError(path, f"invalid YAML: {exc}", exc) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedFrontMatterError(
            path, f"front matter must be a mapping, got {type(data).__name__}"
        )
    return data, body


def parse_date(value: Any, path: Path) -> datetime:
    """Parse a front matter date into a naive datetime.

    Values carrying a UTC offset are converted to UTC.

    Args:
        value: A YAML date/datetime or a string such as "2024-01-15 09:30".
        path: Source path, used in error messages.

    Returns:
        Parsed datetime without tzinfo.

    Raises:
        MalformedFrontMatterError: If the value is not a recognised date.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        parsed = _parse_date_string(value.strip())
        if parsed is None:
            raise MalformedFrontMatterError(
                path, f"invalid date {value!r}, expected YYYY-MM-DD HH:MM"
            )
    else:
        raise MalformedFrontMatterError(path, f"invalid date {value!r}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _parse_date_string(text: str) -> datetime | None:
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def normalize_categories(value: Any, path: Path) -> tuple[str, ...]:
    """Normalize a categories value into unique lowercase tokens.

    Accepts "solidity security", "solidity, security", a YAML list or a bare
    number such as 2024.

    Raises:
        MalformedFrontMatterError: If the value is empty or not a string,
            number or list.
    """
    if isinstance(value, str):
        raw = [value]
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        raw = [str(value)]
    elif isinstance(value, (list, tuple)):
        raw = []
        for item in value:
            if isinstance(item, (dict, list)):
                raise MalformedFrontMatterError(
                    path, f"categories must be plain tokens, got {item!r}"
                )
            if item is not None:
                raw.append(str(item))
    elif value is None:
        raw = []
    else:
        raise MalformedFrontMatterError(path, f"invalid categories {value!r}")

    tokens: list[str] = []
    for chunk in raw:
        for token in _CATEGORY_SPLIT_RE.split(chunk):
            token = token.strip().lower()
            if token and token not in tokens:
                tokens.append(token)
    if not tokens:
        raise MalformedFrontMatterError(path, "categories must not be empty")
    return tuple(tokens)


def _text_field(mapping: dict[str, Any], key: str, path: Path) -> str | None:
    value = mapping.get(key)
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise MalformedFrontMatterError(path, f"'{key}' must be a string")
    return str(value).strip()


def parse_front_matter(
    mapping: dict[str, Any], path: Path, default_layout: str = "page"
) -> FrontMatter:
    """Validate a front matter mapping against the schema of its layout.

    Args:
        mapping: Parsed YAML mapping.
        path: Source path, used in error messages.
        default_layout: Layout assumed when the mapping has none.

    Returns:
        PostFrontMatter or PageFrontMatter.

    Raises:
        MalformedFrontMatterError: Unknown layout, bad date, bad categories,
            or a permalink where none is allowed.
        MissingRequiredFieldError: A post without title or date.
    """
    layout = mapping.get("layout", default_layout)
    if layout not in LAYOUTS:
        raise MalformedFrontMatterError(
            path, f"unknown layout {layout!r}, expected one of {', '.join(LAYOUTS)}"
        )

    categories: tuple[str, ...] = ()
    for key in ("categories", "category"):
        if key in mapping:
            categories += tuple(
                c for c in normalize_categories(mapping[key], path) if c not in categories
            )

    title = _text_field(mapping, "title", path)

    if layout == "post":
        if not title:
            raise MissingRequiredFieldError(path, "title", layout)
        if mapping.get("date") is None:
            raise MissingRequiredFieldError(path, "date", layout)
        if "permalink" in mapping:
            raise MalformedFrontMatterError(
                path, "'permalink' is only supported on pages"
            )
        used = {"layout", "title", "date", "categories", "category"}
        return PostFrontMatter(
            title=title,
            date=parse_date(mapping["date"], path),
            categories=categories,
            extra={k: v for k, v in mapping.items() if k not in used},
        )

    permalink = _text_field(mapping, "permalink", path)
    if permalink is not None:
        if not permalink:
            raise MalformedFrontMatterError(path, "'permalink' must not be empty")
        try:
            permalink = normalize_url(permalink)
        except ValueError as exc:
            raise MalformedFrontMatterError(path, str(exc), exc) from exc
    used = {"layout", "title", "permalink", "categories", "category"}
    return PageFrontMatter(
        title=title or None,
        permalink=permalink,
        categories=categories,
        extra={k: v for k, v in mapping.items() if k not in used},
    )
