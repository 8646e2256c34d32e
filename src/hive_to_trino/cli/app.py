"""Typer-based command line interface for hive_to_trino."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from ..config import Config, load_config
from ..domain.serde import load_plan
from ..errors import TranspilerError
from ..functions import FunctionResolver, StaticFunctionRegistry
from ..rewrite import RelToTrinoConverter

app = typer.Typer(help="Translate Hive relational plans to Trino SQL.")


def _load(config: Optional[Path]) -> Config:
    return load_config(config) if config is not None else Config()


def _resolver(config_obj: Config) -> FunctionResolver:
    registry = StaticFunctionRegistry.default(extra_catalogs=[str(path) for path in config_obj.function_catalogs])
    return FunctionResolver(
        registry,
        registry.operators,
        datetime_arithmetic=config_obj.resolver.datetime_arithmetic,
    )


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log catalog loading and rule selection."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command()
def convert(
    plan: Path = typer.Option(..., "--plan", "-p", help="Path to a YAML-serialised algebra tree."),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to a YAML configuration file."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the SQL here instead of stdout."),
) -> None:
    """Render a plan file as Trino SQL."""

    try:
        config_obj = _load(config)
        rel = load_plan(plan, _resolver(config_obj))
        sql = RelToTrinoConverter(options=config_obj.render).convert(rel)
    except (TranspilerError, ValueError, FileNotFoundError) as e:
        typer.secho(f"ERROR: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    if output is None:
        typer.echo(sql)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(sql + "\n", encoding="utf-8")
    typer.secho(f"✓ SQL written: {output}", fg=typer.colors.GREEN)


@app.command("functions")
def list_functions(
    pattern: Optional[str] = typer.Option(None, "--pattern", help="Only list names containing this text."),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to a YAML configuration file."),
) -> None:
    """Display the function names known to the registry."""

    try:
        config_obj = _load(config)
        resolver = _resolver(config_obj)
    except (TranspilerError, ValueError, FileNotFoundError) as e:
        typer.secho(f"ERROR: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    names = sorted(resolver.registry.names())
    if pattern:
        names = [name for name in names if pattern.lower() in name.lower()]
    if not names:
        typer.echo("No functions matched.")
        raise typer.Exit()

    for name in names:
        descriptors = resolver.resolve(name, case_sensitive=True) or resolver.resolve(name)
        targets = ", ".join(str(descriptor.operator) for descriptor in descriptors)
        typer.echo(f"{name} -> {targets}")


if __name__ == "__main__":
    app()
