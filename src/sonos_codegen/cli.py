"""CLI entry point for sonos-codegen."""

import logging
from pathlib import Path

import click

from sonos_codegen.config import load_config
from sonos_codegen.errors import CodegenError
from sonos_codegen.generator.emitter import CodeEmitter
from sonos_codegen.generator.writer import write_artifact
from sonos_codegen.parser.loader import load_schema


@click.command()
@click.option("--data-dir", type=click.Path(file_okay=False, path_type=Path), envvar="SONOS_CODEGEN_DATA_DIR", help="Directory holding documentation.json and devices/.")
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), envvar="SONOS_CODEGEN_OUTPUT", help="Generated module path.")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), help="YAML config file (default: ./codegen.yaml if present).")
@click.option("--check", is_flag=True, help="Do not write; fail if the output is missing or out of date.")
@click.option("-v", "--verbose", is_flag=True, help="Log merge and lookup details.")
def main(data_dir: Path | None, output: Path | None, config_path: Path | None, check: bool, verbose: bool):
    """Generate typed Sonos service definitions from the published device descriptions."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")

    try:
        config = load_config(config_path)
        overrides = {k: v for k, v in (("data_dir", data_dir), ("output", output)) if v is not None}
        config = config.model_copy(update=overrides)

        click.echo(f"Loading {config.data_dir}...")
        index = load_schema(config.data_dir, config.index_name, config.devices_dir)
        action_count = sum(len(s.actions) for s in index.services.values())
        click.echo(
            f"Found {len(index.services)} services, {action_count} actions and "
            f"{len(index.types)} types from {len(index.models)} device models."
        )

        source = CodeEmitter(type_overrides=config.type_overrides, filename=config.output.name).emit(index)
    except CodegenError as e:
        raise click.ClickException(str(e)) from e

    if check:
        current = config.output.read_text(encoding="utf-8") if config.output.is_file() else None
        if current != source:
            raise click.ClickException(f"{config.output} is out of date; run sonos-codegen to regenerate it")
        click.echo(f"{config.output} is up to date.")
        return

    try:
        write_artifact(config.output, source)
    except OSError as e:
        raise click.ClickException(f"cannot write {config.output}: {e.strerror or e}") from e
    click.echo(f"Wrote {config.output}")
