"""Static asset handling for Scribe.

Files under ``assets/`` are published verbatim below ``/assets/``. They
are collected first and copied later so the build can check them for
clashes with rendered pages before anything is written.

Key classes:
- StaticFile: One asset and the URL it is published at.
- AssetPipeline: Collects and copies assets.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

ASSETS_DIR = "assets"


@dataclass(frozen=True)
class StaticFile:
    """An asset copied without modification.

    Attributes:
        url: Site-relative URL, e.g. "/assets/css/main.css".
        source: Absolute path of the file.
    """

    url: str
    source: Path

    @property
    def output_path(self) -> PurePosixPath:
        return PurePosixPath(self.url.lstrip("/"))

    @property
    def origin(self) -> str:
        return str(self.source)


class AssetPipeline:
    """Collects and copies the static assets of a project.

    Attributes:
        project_root: Root directory of the project.
        assets_dir: Directory containing source assets.
    """

    def __init__(self, project_root: Path):
        self.project_root = project_root
        self.assets_dir = project_root / ASSETS_DIR

    def collect(self) -> list[StaticFile]:
        """List every asset file, sorted by URL.

        Hidden files (dot-prefixed) are skipped.
        """
        if not self.assets_dir.exists():
            return []
        files = []
        for item in self.assets_dir.rglob("*"):
            if item.is_dir():
                continue
            rel = item.relative_to(self.assets_dir)
            if any(part.startswith(".") for part in rel.parts):
                continue
            files.append(StaticFile(url=f"/{ASSETS_DIR}/{rel.as_posix()}", source=item))
        return sorted(files, key=lambda f: f.url)

    @staticmethod
    def copy(files: list[StaticFile], output_dir: Path) -> None:
        """Copy collected assets into ``output_dir``."""
        for static in files:
            dest = output_dir / static.output_path
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(static.source, dest)
