"""Command-line interface for Scribe.

This module defines the CLI commands using the Click framework.

Commands:
- new: Scaffold a new Scribe project.
- build: Build the site into the output directory.
- serve: Run development server with live reload.
- post: Create a new post interactively.
"""

from __future__ import annotations

import shutil
from datetime import datetime
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .errors import BuildError, ConfigError
from .utils import slug_from_filename, slugify

# Path to the files copied by `scribe new`
_SCAFFOLD_DIR = Path(__file__).parent / "scaffold"


@click.group()
@click.version_option(version=__version__, prog_name="scribe")
def cli():
    """Scribe static blog generator."""


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new Scribe project."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New Scribe site created at {target}")


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
def build(drafts: bool):
    """Build the site into the output directory."""
    project_root = Path.cwd()
    from .build import build_site

    try:
        result = build_site(project_root, include_drafts=drafts)
    except BuildError as exc:
        _report_build_error(exc, project_root)
        raise SystemExit(1) from None
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(
        click.style(
            f"Built {len(result.pages)} pages from {len(result.documents)} documents "
            f"into {result.output_dir}",
            fg="green",
        )
    )


@cli.command()
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides scribe.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides scribe.yaml ws_port)",
)
def serve(drafts: bool, port: int | None, ws_port: int | None):
    """Run dev server with live reload."""
    project_root = Path.cwd()
    from .server import DevServer

    try:
        server = DevServer(project_root, http_port=port, ws_port=ws_port)
        server.start(include_drafts=drafts)
    except BuildError as exc:
        _report_build_error(exc, project_root)
        raise SystemExit(1) from None
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command()
def post():
    """Create a new post interactively."""
    project_root = Path.cwd()
    site_dir = project_root / "site"

    if not site_dir.exists():
        raise click.ClickException(
            "No site/ directory found. Run this command from a Scribe project root."
        )

    title = questionary.text(
        "Title:",
        validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
        style=_questionary_style(),
    ).ask()
    if title is None:
        raise click.Abort()
    title = title.strip()

    categories = questionary.text(
        "Categories (space separated, optional):",
        style=_questionary_style(),
    ).ask()
    if categories is None:
        raise click.Abort()

    slug = slugify(title)
    if not slug:
        raise click.ClickException(f"Cannot derive a file name from title {title!r}")

    posts_dir = site_dir / "_posts"
    existing = _get_existing_slugs(posts_dir)
    if slug in existing:
        raise click.ClickException(
            f"A post with slug '{slug}' already exists: {existing[slug]}"
        )

    now = datetime.now()
    target_path = posts_dir / f"{now:%Y-%m-%d}-{slug}.md"
    front_matter = {"layout": "post", "title": title, "date": f"{now:%Y-%m-%d %H:%M}"}
    tokens = categories.lower().split()
    if tokens:
        front_matter["categories"] = " ".join(tokens)

    posts_dir.mkdir(parents=True, exist_ok=True)
    header = yaml.safe_dump(front_matter, sort_keys=False, allow_unicode=True)
    target_path.write_text(f"---\n{header}---\n\n", encoding="utf-8")

    click.echo(f"Created {target_path.relative_to(project_root)}")


def _report_build_error(exc: BuildError, project_root: Path) -> None:
    """Print a build error with the offending file relative to the project."""
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    if exc.source_path is not None:
        try:
            shown = exc.source_path.relative_to(project_root)
        except ValueError:
            shown = exc.source_path
        click.echo(click.style(f"  File: {shown}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)


def _get_existing_slugs(folder: Path) -> dict[str, str]:
    """Map slugs of existing posts in a folder to their file names."""
    slugs: dict[str, str] = {}
    if folder.exists():
        for f in sorted(folder.iterdir()):
            if f.is_file() and f.suffix in (".md", ".markdown"):
                slugs.setdefault(slug_from_filename(f.stem), f.name)
    return slugs


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Copy the default project files into ``root``."""
    for src_path in _SCAFFOLD_DIR.rglob("*"):
        if src_path.is_dir() or src_path.name == "__pycache__":
            continue
        rel_path = src_path.relative_to(_SCAFFOLD_DIR)
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)
