"""Click CLI entry point for moldgen."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from moldgen import __version__
from moldgen.errors import MoldgenError
from moldgen.exporter import DEFAULT_SOLID_NAME, write_mesh
from moldgen.inspection import inspect_grid, render_text
from moldgen.logging_config import setup_logging
from moldgen.manifest import build_manifest
from moldgen.models import GRID_TYPES, default_grid_settings
from moldgen.parser import dump_settings, parse_settings
from moldgen.tessellation import merge_meshes
from moldgen.tiling import tile
from moldgen.warning_policy import WarningPolicy, describe_codes

logger = logging.getLogger(__name__)

_SETTINGS_SUFFIXES = [".mold.yaml", ".mold.yml", ".yaml", ".yml"]


def _build_warning_policy(
    warn_as_error: str | None, suppress_warning: str | None
) -> WarningPolicy | None:
    """Parse CLI warning options into a WarningPolicy, or None if unset."""
    try:
        return WarningPolicy.from_options(warn_as_error, suppress_warning)
    except ValueError as e:
        raise click.ClickException(str(e)) from e


def _default_output(input_file: Path, fmt: str) -> Path:
    stem = input_file.name
    for suffix in _SETTINGS_SUFFIXES:
        if stem.endswith(suffix):
            stem = stem[: -len(suffix)]
            break
    return input_file.parent / f"{stem}.{fmt}"


_warn_as_error_option = click.option(
    "--warn-as-error",
    "warn_as_error",
    type=str,
    default=None,
    help=f"Comma-separated codes to treat as errors, or 'all' ({describe_codes()}).",
)
_suppress_warning_option = click.option(
    "--suppress-warning",
    "suppress_warning",
    type=str,
    default=None,
    help=f"Comma-separated codes to suppress, or 'all' ({describe_codes()}).",
)


@click.group()
@click.version_option(version=__version__, prog_name="moldgen")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write log records to this file.",
)
def main(verbose: bool = False, log_file: str | None = None) -> None:
    """Moldgen: mold cavity meshes displaced by implicit surfaces."""
    setup_logging(logging.DEBUG if verbose else logging.WARNING, log_file=log_file)


@main.command()
@click.option(
    "--type",
    "grid_type",
    type=click.Choice(list(GRID_TYPES)),
    default="single",
    show_default=True,
    help="Grid variant to write default settings for.",
)
@click.option(
    "-o",
    "--output",
    type=str,
    default="-",
    show_default=True,
    help="Settings file to write, or '-' for stdout.",
)
def init(grid_type: str, output: str = "-") -> None:
    """Write default settings for a grid variant as YAML."""
    text = dump_settings(default_grid_settings(grid_type))
    if output == "-":
        click.echo(text, nl=False)
        return

    output_path = Path(output)
    try:
        output_path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise click.ClickException(f"Cannot write settings to {output_path}: {e}") from e
    click.echo(f"Wrote: {output_path}")


@main.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    default=None,
    help="Output mesh path. Defaults to the input name with the format's extension.",
)
@click.option(
    "--format",
    "export_format",
    type=click.Choice(["obj", "stl"]),
    default=None,
    help="Output format. Defaults to the output suffix, or stl.",
)
@click.option(
    "--tilt",
    "tilted",
    is_flag=True,
    default=False,
    help="Rotate each cell so its draft angle lies flat.",
)
@click.option(
    "--supports",
    is_flag=True,
    default=False,
    help="Add internal support struts regardless of the settings file.",
)
@click.option(
    "--name",
    "solid_name",
    type=str,
    default=DEFAULT_SOLID_NAME,
    show_default=True,
    help="Solid name written into STL headers.",
)
@click.option(
    "--emit-manifest",
    "emit_manifest",
    type=click.Path(path_type=Path),
    default=None,
    help="Write a JSON build manifest to this path after a successful export.",
)
@_warn_as_error_option
@_suppress_warning_option
def generate(
    input_file: Path,
    output: Path | None = None,
    export_format: str | None = None,
    tilted: bool = False,
    supports: bool = False,
    solid_name: str = DEFAULT_SOLID_NAME,
    emit_manifest: Path | None = None,
    warn_as_error: str | None = None,
    suppress_warning: str | None = None,
) -> None:
    """Generate a mold mesh from a settings file and export it as OBJ or STL."""
    warning_policy = _build_warning_policy(warn_as_error, suppress_warning)

    if export_format is None:
        suffix = output.suffix.lstrip(".").lower() if output is not None else ""
        export_format = suffix if suffix in {"obj", "stl"} else "stl"
    if output is None:
        output = _default_output(input_file, export_format)

    try:
        grid = parse_settings(input_file)
        if supports:
            grid = grid.model_copy(update={"with_supports": True})

        meshes = tile(grid, tilted=tilted, warning_policy=warning_policy)
        logger.info("Generated %d cell mesh(es) from %s", len(meshes), input_file)
        write_mesh(merge_meshes(meshes), output, export_format, name=solid_name)

        if emit_manifest is not None:
            manifest = build_manifest(
                input_path=input_file,
                output_path=output,
                export_format=export_format,
                meshes=meshes,
                tilted=tilted,
                command_args=sys.argv[1:],
            )
            emit_manifest.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
        click.echo(f"Generated: {output}")
    except MoldgenError as e:
        raise click.ClickException(str(e))


@main.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Inspection output format.",
)
@click.option(
    "--layout-only",
    is_flag=True,
    default=False,
    help="Resolve the cell layout without building meshes.",
)
@_warn_as_error_option
@_suppress_warning_option
def inspect(
    input_file: Path,
    output_format: str = "text",
    layout_only: bool = False,
    warn_as_error: str | None = None,
    suppress_warning: str | None = None,
) -> None:
    """Inspect the cell layout and mesh statistics of a settings file."""
    warning_policy = _build_warning_policy(warn_as_error, suppress_warning)

    try:
        grid = parse_settings(input_file)
        payload = inspect_grid(
            grid, build_meshes=not layout_only, warning_policy=warning_policy
        )
    except MoldgenError as e:
        raise click.ClickException(str(e))

    if output_format == "json":
        click.echo(json.dumps(payload, indent=2))
    else:
        click.echo(render_text(payload), nl=False)
