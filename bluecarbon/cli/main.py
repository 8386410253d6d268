# -*- coding: utf-8 -*-
"""
Blue Carbon Registry CLI
========================

Command line entry point ``bluecarbon``: serve the API, print registry
statistics, show the transition tables and export collections.
"""

import dataclasses
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from bluecarbon._version import __version__
from bluecarbon.exceptions import BlueCarbonException
from bluecarbon.registry.config import RegistryConfig
from bluecarbon.registry.export import EXPORTABLE_COLLECTIONS, EXPORT_FORMATS
from bluecarbon.registry.setup import RegistryService
from bluecarbon.registry.transitions import (
    MRV_TRANSITIONS,
    PROJECT_TRANSITIONS,
    STAKEHOLDER_TRANSITIONS,
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

app = typer.Typer(
    name="bluecarbon",
    help="Blue Carbon Registry: projects, stakeholders and MRV data",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()

_TABLES = {
    "project": PROJECT_TRANSITIONS,
    "mrv": MRV_TRANSITIONS,
    "stakeholder": STAKEHOLDER_TRANSITIONS,
}


def _load_config(data_dir: Optional[Path]) -> RegistryConfig:
    config = RegistryConfig.from_env()
    if data_dir is not None:
        config = dataclasses.replace(config, data_dir=str(data_dir))
    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)
    return config


@app.command()
def version():
    """Show Blue Carbon Registry version"""
    console.print(f"[bold green]Blue Carbon Registry v{__version__}[/bold green]")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(5000, "--port", "-p", help="Bind port"),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="Collection directory"),
):
    """Run the registry API with uvicorn"""
    import uvicorn

    from bluecarbon.registry.api.app import create_app

    config = _load_config(data_dir)
    console.print(f"[blue][INFO][/blue] Serving registry on http://{host}:{port} (data: {config.data_dir})")
    uvicorn.run(create_app(config), host=host, port=port, log_level=config.log_level.lower())


@app.command()
def stats(
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="Collection directory"),
):
    """Print registry statistics recomputed from the collections"""
    service = RegistryService(_load_config(data_dir))
    try:
        statistics = service.registry.get_statistics()
    except BlueCarbonException as exc:
        console.print(f"[red][FAIL][/red] {exc.message}")
        raise typer.Exit(1)

    table = Table(title="Registry Statistics", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Total projects", str(statistics.total_projects))
    table.add_row("Verified projects", str(statistics.total_verified_projects))
    table.add_row("Stakeholders", str(statistics.total_stakeholders))
    table.add_row("Carbon sequestered (tCO2e)", f"{statistics.total_carbon_sequestered:g}")
    table.add_row("Area under restoration (ha)", f"{statistics.total_area_under_restoration:g}")
    console.print(table)


@app.command()
def transitions(
    entity: str = typer.Argument("project", help="project, mrv or stakeholder"),
):
    """Show the status transition table of an entity"""
    table_def = _TABLES.get(entity)
    if table_def is None:
        console.print(f"[red][FAIL][/red] Unknown entity '{entity}'; choose from {', '.join(_TABLES)}")
        raise typer.Exit(2)

    table = Table(title=f"{entity} transitions", show_header=True, header_style="bold magenta")
    for column in ("from", "action", "to", "role"):
        table.add_column(column.capitalize())
    for row in sorted(table_def.as_rows(), key=lambda r: (r["action"], r["from"])):
        table.add_row(row["from"], row["action"], row["to"], row["role"])
    console.print(table)


@app.command()
def export(
    collection: str = typer.Argument(..., help="projects or stakeholders"),
    export_format: str = typer.Option("json", "--format", "-f", help="csv or json"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to file instead of stdout"),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="Collection directory"),
):
    """Export a collection as CSV or JSON"""
    if collection not in EXPORTABLE_COLLECTIONS or export_format not in EXPORT_FORMATS:
        console.print(
            f"[red][FAIL][/red] Expected collection in {EXPORTABLE_COLLECTIONS} "
            f"and format in {EXPORT_FORMATS}"
        )
        raise typer.Exit(2)

    service = RegistryService(_load_config(data_dir))
    try:
        body = service.exporter.export(collection, export_format)
    except BlueCarbonException as exc:
        console.print(f"[red][FAIL][/red] {exc.message}")
        raise typer.Exit(1)

    if output is None:
        typer.echo(body)
        return
    output.write_text(body, encoding="utf-8")
    console.print(f"[green][OK][/green] Wrote {collection} to {output}")


if __name__ == "__main__":
    app()
