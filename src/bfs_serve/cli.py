"""Command line entry point for bulkfs."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import typer
import yaml
from rich.console import Console

import bfs

app = typer.Typer(
    name="bfs",
    help="bulkfs - sandboxed bulk search, copy, move and patch.",
    no_args_is_help=True,
    add_completion=False,
)

_console = Console(highlight=False)
_stderr_console = Console(stderr=True, highlight=False)


def version_callback(name: str, version: str) -> Callable[[bool | None], None]:
    """Build a --version callback printing ``name version``."""

    def callback(value: bool | None) -> None:
        if value:
            _console.print(f"{name} {version}")
            raise typer.Exit()

    return callback


def _emit(result: str) -> None:
    """Print a tool result; failures go to stderr with exit code 1."""
    from bfs_tools.file import is_error

    if is_error(result):
        _stderr_console.print(result, style="red", markup=False, soft_wrap=True)
        raise typer.Exit(1)
    _console.print(result, markup=False, soft_wrap=True)


@app.callback()
def main(
    _version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback("bfs", bfs.__version__),
        is_eager=True,
        help="Show version and exit.",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to bfs.yaml configuration file.",
        exists=True,
        readable=True,
    ),
    allow: list[str] | None = typer.Option(
        None,
        "--allow",
        "-a",
        help="Allowed directory (repeatable). Replaces sandbox.allowed_dirs.",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Override log_level (DEBUG, INFO, WARNING, ERROR).",
    ),
) -> None:
    """Run sandboxed bulk filesystem operations.

    Examples:
        bfs --allow . search --content TODO --type py
        bfs copy src backup/src --include "*.py"
        bfs move old new --merge
        bfs patch app.py edits.yaml --backup
    """
    from bfs.config import load_config, set_config
    from bfs.logging import configure_logging

    try:
        cfg = load_config(config)
    except (FileNotFoundError, ValueError) as e:
        _stderr_console.print(f"Error: {e}", style="red", markup=False)
        raise typer.Exit(1) from e

    if allow:
        cfg.sandbox.allowed_dirs = list(allow)
    set_config(cfg)
    configure_logging(log_level or cfg.log_level, cfg.get_log_dir_path())


@app.command()
def search(
    directory: str | None = typer.Argument(None, help="Directory to search."),
    pattern: str | None = typer.Option(None, "--pattern", "-p", help="Name glob."),
    content: str | None = typer.Option(None, "--content", "-q", help="Text, glob or /regex/flags."),
    file_type: str | None = typer.Option(None, "--type", "-t", help="Extension filter."),
    max_depth: int | None = typer.Option(None, "--max-depth", help="Maximum depth."),
    max_results: int | None = typer.Option(None, "--max-results", help="Maximum results."),
    case_sensitive: bool = typer.Option(False, "--case-sensitive", "-s"),
    include_hidden: bool = typer.Option(False, "--hidden", help="Include dot-entries."),
    show_context: bool = typer.Option(True, "--context/--no-context"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
) -> None:
    """Search files by name, extension and content."""
    from bfs_tools.file import search_files

    _emit(
        search_files(
            directory=directory,
            pattern=pattern,
            content=content,
            file_type=file_type,
            max_depth=max_depth,
            max_results=max_results,
            case_sensitive=case_sensitive,
            include_hidden=include_hidden,
            show_context=show_context,
            output_format="json" if as_json else "text",
        )
    )


@app.command()
def copy(
    source: str = typer.Argument(..., help="Source directory."),
    destination: str = typer.Argument(..., help="Destination directory."),
    recursive: bool = typer.Option(True, "--recursive/--no-recursive"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace existing files."),
    include: list[str] | None = typer.Option(None, "--include", "-i", help="Include glob (repeatable)."),
    exclude: list[str] | None = typer.Option(None, "--exclude", "-x", help="Exclude glob (repeatable)."),
    preserve_timestamps: bool = typer.Option(True, "--preserve-timestamps/--no-preserve-timestamps"),
    max_depth: int | None = typer.Option(None, "--max-depth"),
    as_json: bool = typer.Option(False, "--json", help="Print the statistics as JSON."),
) -> None:
    """Copy a directory tree."""
    from bfs_tools.file import copy_directory

    _emit(
        copy_directory(
            source=source,
            destination=destination,
            recursive=recursive,
            overwrite=overwrite,
            include_patterns=include or [],
            exclude_patterns=exclude or [],
            preserve_timestamps=preserve_timestamps,
            max_depth=max_depth,
            output_format="json" if as_json else "text",
        )
    )


@app.command()
def move(
    source: str = typer.Argument(..., help="Source directory."),
    destination: str = typer.Argument(..., help="Destination directory."),
    merge: bool = typer.Option(False, "--merge", help="Merge into an existing destination."),
    overwrite_files: bool = typer.Option(False, "--overwrite-files", help="Replace files while merging."),
    as_json: bool = typer.Option(False, "--json", help="Print the move report as JSON."),
) -> None:
    """Move or rename a directory, merging when asked to."""
    from bfs_tools.file import move_directory

    _emit(
        move_directory(
            source=source,
            destination=destination,
            merge_existing=merge,
            overwrite_files=overwrite_files,
            output_format="json" if as_json else "text",
        )
    )


def _load_edits(edits_file: Path) -> list[dict[str, Any]]:
    """Read edits from a YAML or JSON file (a list, or a mapping with ``edits``)."""
    try:
        data = yaml.safe_load(edits_file.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ValueError(f"Cannot read edits from {edits_file}: {e}") from e
    if isinstance(data, dict):
        data = data.get("edits")
    if not isinstance(data, list):
        raise ValueError(f"{edits_file} must contain a list of edits")
    return data


@app.command()
def patch(
    path: str = typer.Argument(..., help="File to patch."),
    edits_file: Path = typer.Argument(..., help="YAML/JSON file with the edits.", exists=True, readable=True),
    validate_content: bool = typer.Option(True, "--validate/--no-validate"),
    backup: bool = typer.Option(False, "--backup", help="Keep a timestamped .bak copy."),
    as_json: bool = typer.Option(False, "--json", help="Print the patch report as JSON."),
) -> None:
    """Apply line edits to a file atomically."""
    from bfs_tools.file import patch_file

    try:
        edits = _load_edits(edits_file)
    except ValueError as e:
        _stderr_console.print(f"Error: {e}", style="red", markup=False)
        raise typer.Exit(1) from e

    _emit(
        patch_file(
            path=path,
            edits=edits,
            validate_content=validate_content,
            create_backup=backup,
            output_format="json" if as_json else "text",
        )
    )


@app.command("config")
def show_config() -> None:
    """Print the effective configuration."""
    from bfs.config import get_config

    cfg = get_config()
    data = cfg.model_dump(by_alias=True)
    data["sandbox"]["resolved_dirs"] = [str(p) for p in cfg.get_allowed_dirs()]
    _console.print(
        yaml.safe_dump(data, default_flow_style=False, sort_keys=False).rstrip(),
        markup=False,
        soft_wrap=True,
    )


def cli() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    cli()
