"""Site building functionality for Scribe.

This module contains the core logic for building a static site from source
files: it loads configuration and data, loads every document, renders all
pages in memory, and only then publishes them in one step.

Key functions:
- build_site: Main function to build the entire site.
- load_config: Loads build configuration from scribe.yaml.
- load_data: Loads site data from YAML files in the data directory.
"""

from __future__ import annotations

import os
import re
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

import yaml

from .assets import AssetPipeline, StaticFile
from .content import Document, load_all
from .errors import ConfigError, DuplicatePathError
from .feeds import create_default_feed_registry
from .site import DEFAULT_POST_PERMALINK, OutputPage, SiteRenderer
from .templates import TemplateEngine
from .utils import ensure_clean_dir

CONFIG_FILE = "scribe.yaml"
SITE_DIR = "site"
DATA_DIR = "data"

DEFAULT_CONFIG = {
    "output_dir": "output",
    "port": 4000,
    "root_url": "",
    "paginate": 10,
    "post_permalink": DEFAULT_POST_PERMALINK,
    "workers": 1,
}

Output = Union[OutputPage, StaticFile]


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        documents: Every loaded document.
        pages: Every rendered page, listing and feed.
        output_dir: Directory where the site was built.
        data: Global site data dictionary.
    """

    documents: list[Document]
    pages: list[OutputPage]
    output_dir: Path
    data: dict[str, Any]


def load_config(project_root: Path) -> dict[str, Any]:
    """Load build configuration from scribe.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        ConfigError: If the file is not a YAML mapping or holds invalid values.
    """
    config_path = project_root / CONFIG_FILE
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            try:
                loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"{config_path}: invalid YAML: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(f"{config_path}: expected a mapping of settings")
        config.update(loaded)
    _validate_config(config)
    return config


def _validate_config(config: dict[str, Any]) -> None:
    for key, minimum in (("paginate", 0), ("workers", 1), ("port", 1)):
        value = config.get(key)
        if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
            raise ConfigError(f"'{key}' must be an integer >= {minimum}, got {value!r}")
    pattern = config.get("post_permalink")
    if not isinstance(pattern, str) or not pattern.startswith("/"):
        raise ConfigError(f"'post_permalink' must start with '/', got {pattern!r}")
    if re.search(r"(^|/)\.\.?(/|$)", pattern):
        raise ConfigError("'post_permalink' may not contain relative segments")
    if not isinstance(config.get("output_dir"), str) or not config["output_dir"].strip():
        raise ConfigError("'output_dir' must be a non-empty path")


def load_data(project_root: Path) -> dict[str, Any]:
    """Load site data from YAML files in the data directory.

    ``site.yaml`` is merged at the top level; every other file is exposed
    under its stem.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing merged data from all YAML files.
    """
    data_dir = project_root / DATA_DIR
    data: dict[str, Any] = {}
    if not data_dir.exists():
        return data
    for path in sorted(data_dir.glob("*.yaml")):
        with open(path, encoding="utf-8") as f:
            try:
                payload = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ConfigError(f"{path}: invalid YAML: {exc}") from exc
        if path.name == "site.yaml":
            if isinstance(payload, dict):
                data.update(payload)
        elif payload is not None:
            data[path.stem] = payload
    return data


def staging_dir_for(output_dir: Path) -> Path:
    """Directory the next build is written to before it replaces ``output_dir``."""
    return output_dir.with_name(output_dir.name + ".staging")


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    root_url: str | None = None,
    output_dir_override: Path | None = None,
) -> BuildResult:
    """Build the entire static site.

    Nothing is written until every page has rendered and every output path
    has been checked, so a failing build leaves the previous output intact.

    Args:
        project_root: Root directory of the project.
        include_drafts: Whether to include draft documents.
        root_url: Optional base URL for ``url_for``, overriding scribe.yaml.
        output_dir_override: Optional path to write the build output instead of config output_dir.

    Returns:
        BuildResult containing documents, pages, output directory and site data.

    Raises:
        BuildError: Any content, template or output path error.
        ConfigError: Invalid configuration.
    """
    config = load_config(project_root)
    if root_url is not None:
        config["root_url"] = root_url
    output_dir = output_dir_override or (project_root / config["output_dir"])
    _check_output_dir(project_root, output_dir)

    data = load_data(project_root)
    resolved_root = str(config.get("root_url") or "")
    if resolved_root:
        data.setdefault("root_url", resolved_root)

    site_dir = project_root / SITE_DIR
    if not site_dir.is_dir():
        raise ConfigError(f"Expected site directory at {site_dir}")
    workers = config["workers"]
    documents = load_all(site_dir, include_drafts=include_drafts, workers=workers)

    engine = TemplateEngine(site_dir, data, config, root_url=resolved_root)
    engine.update_collections(documents)
    renderer = SiteRenderer(engine, config)
    pages = renderer.render_all(documents, workers=workers)
    pages.extend(renderer.build_index(documents))
    pages.extend(create_default_feed_registry().build_all(pages, documents, data))

    assets = AssetPipeline(project_root).collect()
    check_unique_outputs([*pages, *assets])

    _publish(output_dir, pages, assets)
    return BuildResult(documents=documents, pages=pages, output_dir=output_dir, data=data)


def _check_output_dir(project_root: Path, output_dir: Path) -> None:
    root = project_root.resolve()
    target = output_dir.resolve()
    if target == root or target in root.parents or root / SITE_DIR in (target, *target.parents):
        raise ConfigError(f"Refusing to build into {output_dir}: it would overwrite sources")


def check_unique_outputs(outputs: Sequence[Output]) -> None:
    """Ensure no two outputs are written to the same file.

    Raises:
        DuplicatePathError: Naming both competing sources.
    """
    seen: dict[str, Output] = {}
    for output in outputs:
        key = output.output_path.as_posix()
        if key in seen:
            raise DuplicatePathError(
                output.url,
                seen[key].origin,
                output.origin,
                source_path=getattr(output, "source", None),
            )
        seen[key] = output


def _publish(output_dir: Path, pages: list[OutputPage], assets: list[StaticFile]) -> None:
    """Write all outputs to a staging directory and swap it into place."""
    output_dir.parent.mkdir(parents=True, exist_ok=True)
    staging = staging_dir_for(output_dir)
    ensure_clean_dir(staging)
    try:
        for page in pages:
            target = staging / page.output_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(page.content.encode("utf-8"))
        AssetPipeline.copy(assets, staging)
    except OSError:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    if output_dir.exists():
        retired = output_dir.with_name(output_dir.name + ".old")
        if retired.exists():
            shutil.rmtree(retired)
        os.replace(output_dir, retired)
        os.replace(staging, output_dir)
        shutil.rmtree(retired)
    else:
        os.replace(staging, output_dir)
