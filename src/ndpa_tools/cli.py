from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Tuple

import click

from .config_loader import (apply_overrides, load_config_with_presets,
                            parse_assignment)
from .domain import ConversionResult
from .exceptions import NdpaError
from .geojson_io import GeoJsonError, load_geojson, save_geojson
from .parameter_models import NdpaConfig
from .session import NdpaSession
from .slide import OpenSlideSource
from .utils.logger import configure_logging

project_dir = Path(__file__).resolve().parents[2]
DEFAULT_CFG = project_dir / "configs" / "ndpa.yaml"


def _load_config(config: Path | None, presets: Tuple[Path, ...],
                 assignments: Tuple[str, ...] = ()) -> NdpaConfig:
    try:
        overrides: Dict[str, Any] = dict(
            parse_assignment(a) for a in assignments)
        base = config or (DEFAULT_CFG if DEFAULT_CFG.exists() else None)
        if base is None:
            if presets:
                raise click.UsageError("--preset requires --config")
            return apply_overrides(NdpaConfig(), overrides)
        return load_config_with_presets(base, presets, overrides=overrides)
    except ValueError as e:
        raise click.UsageError(str(e)) from e


def _report(result: ConversionResult, show_summary: bool) -> None:
    for issue in result.issues:
        click.echo(str(issue), err=True)
    if show_summary:
        click.echo(json.dumps(result.summary(), indent=2))
    if not result.success:
        click.get_current_context().exit(1)


slide_argument = click.argument("slide",
                                type=click.Path(exists=True,
                                                dir_okay=False,
                                                path_type=Path))
config_option = click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Base YAML config (defaults to configs/ndpa.yaml when present).")
preset_option = click.option(
    "--preset",
    "presets",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML preset applied over the base config; repeatable, later wins.")
set_option = click.option(
    "--set",
    "assignments",
    multiple=True,
    metavar="KEY=VALUE",
    help="Override one config value, e.g. geometry.min_area=100; repeatable.")
summary_option = click.option(
    "--no-summary",
    is_flag=True,
    help="Do not print the JSON result summary.")


@click.group()
@click.option("--verbose", is_flag=True, help="Log debug output.")
@click.option("--quiet", is_flag=True, help="Only log errors.")
def main(verbose: bool, quiet: bool):
    """Read and write Hamamatsu NDPA annotation files."""
    level = logging.ERROR if quiet else logging.INFO
    configure_logging(level=level, debug=verbose)


@main.command("import")
@slide_argument
@click.option("--classification",
              default=None,
              help="Class name assigned to every imported annotation.")
@click.option("--output",
              type=click.Path(dir_okay=False, path_type=Path),
              default=None,
              help="GeoJSON file to write (default: <slide>.geojson).")
@config_option
@preset_option
@set_option
@summary_option
def import_cmd(slide: Path, classification: str | None, output: Path | None,
               config: Path | None, presets: Tuple[Path, ...],
               assignments: Tuple[str, ...], no_summary: bool):
    """Convert SLIDE's companion .ndpa file to GeoJSON."""
    cfg = _load_config(config, presets, assignments)
    session = NdpaSession(OpenSlideSource(slide), config=cfg)
    result = session.import_ndpa(classification)
    if result.success:
        output = output or slide.with_name(slide.name + ".geojson")
        save_geojson(output, session.annotations)
        if not no_summary:
            click.echo(f"Wrote {len(session.annotations)} annotations to {output}")
    _report(result, not no_summary)


@main.command("export")
@slide_argument
@click.option("--annotations",
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              required=True,
              help="GeoJSON FeatureCollection with pixel-space annotations.")
@config_option
@preset_option
@set_option
@summary_option
def export_cmd(slide: Path, annotations: Path, config: Path | None,
               presets: Tuple[Path, ...], assignments: Tuple[str, ...],
               no_summary: bool):
    """Write annotations to SLIDE's companion .ndpa file."""
    cfg = _load_config(config, presets, assignments)
    try:
        shapes = load_geojson(annotations)
    except GeoJsonError as e:
        click.echo(f"Could not read {annotations}: {e}", err=True)
        raise click.Abort()
    session = NdpaSession(OpenSlideSource(slide), shapes, config=cfg)
    result = session.export_ndpa()
    if result.success and not no_summary:
        click.echo(f"Source: {annotations}")
        click.echo(f"Output: {result.path}")
        if result.backup_path:
            click.echo(f"Backup: {result.backup_path}")
    _report(result, not no_summary)


@main.command("info")
@slide_argument
@config_option
@set_option
def info_cmd(slide: Path, config: Path | None, assignments: Tuple[str, ...]):
    """Show calibration, offset and companion file for SLIDE."""
    cfg = _load_config(config, (), assignments)
    session = NdpaSession(OpenSlideSource(slide), config=cfg)
    try:
        info = session.info()
    except NdpaError as e:
        click.echo(f"Error: {e}", err=True)
        raise click.Abort()
    click.echo(json.dumps(info, indent=2))


if __name__ == "__main__":
    main()
