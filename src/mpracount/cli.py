"""Command-line interface for the mpracount pipeline."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Optional

import click

from .config import PipelineConfig, dump_config, load_config
from .config_validator import validate_run_inputs
from .exceptions import MPRACountError
from .logging_config import setup_logging
from .pipeline import run_experiment
from .utils import RUN_ARTIFACTS


def _load(config_path: Optional[Path], output_dir: Optional[Path], workers: Optional[int]) -> PipelineConfig:
    if config_path is None:
        config = PipelineConfig()
    else:
        if not config_path.exists():
            raise click.ClickException(f"Configuration file not found: {config_path}")
        try:
            config = load_config(config_path)
        except MPRACountError as exc:
            raise click.ClickException(f"Failed to load configuration {config_path}: {exc}") from exc
    if output_dir is not None:
        config = replace(config, output_directory=str(output_dir))
    if workers is not None:
        config = replace(config, n_workers=workers)
    return config


@click.group()
@click.option("--log-level", default="INFO", show_default=True, help="Logging level.")
@click.pass_context
def main(ctx: click.Context, log_level: str) -> None:
    """mpracount: barcode counts and insert activity tables for MPRA experiments."""
    ctx.obj = {"log_level": log_level}


@main.command("count")
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(path_type=Path),
    help="YAML run configuration.",
)
@click.option("--out-dir", type=click.Path(path_type=Path), help="Override the output directory.")
@click.option("--workers", type=int, help="Number of worker processes for the count chains.")
@click.pass_obj
def count_command(obj: dict, config_path: Path, out_dir: Optional[Path], workers: Optional[int]) -> None:
    """Count barcodes and build per-condition tables."""
    config = _load(config_path, out_dir, workers)
    setup_logging(
        level=obj["log_level"],
        log_file=config.output_path / RUN_ARTIFACTS["log"],
    )
    try:
        result = run_experiment(config)
    except MPRACountError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"Wrote {len(result.outputs)} tables to {config.output_path}")
    if not result.succeeded:
        failed = {**result.units, **result.cond_reps, **result.conditions}
        for key, status in sorted(failed.items()):
            if status != "ok":
                click.echo(f"  {key}: {status}", err=True)
        raise SystemExit(1)


@main.command("validate")
@click.option("--config", "config_path", required=True, type=click.Path(path_type=Path))
@click.pass_obj
def validate_command(obj: dict, config_path: Path) -> None:
    """Check a configuration and its input files without running."""
    config = _load(config_path, None, None)
    setup_logging(level=obj["log_level"])
    try:
        validate_run_inputs(config)
    except MPRACountError as exc:
        details = exc.details.get("errors")
        message = str(exc) if not details else f"{exc}: {'; '.join(details)}"
        raise click.ClickException(message) from exc
    click.echo("Configuration is valid")


@main.command("init-config")
@click.argument("path", type=click.Path(path_type=Path))
def init_config_command(path: Path) -> None:
    """Write a configuration file with default settings."""
    if path.exists():
        raise click.ClickException(f"Refusing to overwrite {path}")
    dump_config(PipelineConfig(), path)
    click.echo(f"Wrote default configuration to {path}")


if __name__ == "__main__":
    main()
