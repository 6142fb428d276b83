from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from adapters.filesystem.process_repository import FileSystemProcessRepository
from adapters.filesystem.render_model_repository import FileSystemRenderModelRepository
from adapters.layout.serpentine import SerpentineLayoutEngine
from app.config import load_settings
from domain.models import START_NODE, TERMINAL_NODE, Edge

app = typer.Typer(no_args_is_help=True)
console = Console()


def _engine(config_path: Path | None) -> SerpentineLayoutEngine:
    settings = load_settings(config_path)
    return SerpentineLayoutEngine(settings.layout.to_layout_config())


@app.command("layout")
def layout_processes(
    input_dir: Path = typer.Option(
        Path("data/processes"), help="Directory with process JSON files.",
    ),
    output_dir: Path = typer.Option(
        Path("data/layouts"), help="Directory to write render model JSON files.",
    ),
    config: Optional[Path] = typer.Option(None, help="Optional YAML settings file."),
) -> None:
    process_repo = FileSystemProcessRepository()
    model_repo = FileSystemRenderModelRepository()
    engine = _engine(config)

    pairs = process_repo.load_all_with_paths(input_dir)
    if not pairs:
        console.print(f"[yellow]No process files found in {input_dir}[/]")
        raise typer.Exit(code=0)

    output_dir.mkdir(parents=True, exist_ok=True)
    for path, process in pairs:
        model = engine.build_render_model(process)
        target_path = output_dir / f"{path.stem}.layout.json"
        model_repo.save(model, target_path)
        console.print(f"[green]Wrote[/] {target_path}")
        for warning in model.warnings:
            console.print(f"  [yellow]{warning.code}[/] {warning.message}")


@app.command("validate")
def validate(input_path: Path = typer.Argument(..., help="Process JSON file to validate.")) -> None:
    if not input_path.exists():
        console.print(f"[red]File not found:[/] {input_path}")
        raise typer.Exit(code=1)

    try:
        process = FileSystemProcessRepository().load_by_path(input_path)
    except (ValidationError, ValueError) as exc:
        console.print(f"[red]Validation failed:[/] {exc}")
        raise typer.Exit(code=1) from exc
    console.print(f"[green]Valid process with {len(process.steps)} steps:[/] {input_path}")


@app.command("inspect")
def inspect(
    input_path: Path = typer.Argument(..., help="Process JSON file to lay out."),
    config: Optional[Path] = typer.Option(None, help="Optional YAML settings file."),
) -> None:
    process = FileSystemProcessRepository().load_by_path(input_path)
    model = _engine(config).build_render_model(process)

    console.print(
        f"[bold]{len(model.cells)} steps[/] on {model.row_count} rows x {model.column_count} columns"
    )
    cells = Table(title="Cells")
    for column in ("Step", "Name", "Row", "Col", "Direction"):
        cells.add_column(column)
    for node in model.nodes:
        cells.add_row(
            str(node.index + 1),
            " ".join(node.text.lines),
            str(node.cell.row),
            str(node.cell.col),
            node.cell.direction,
        )
    console.print(cells)

    connections = Table(title="Connections")
    for column in ("From", "To", "Kind", "Category", "Corridor", "Channel", "Label"):
        connections.add_column(column)
    for path in model.connections:
        routed = path.connection
        corridor = routed.corridor
        connections.add_row(
            _node_label(routed.edge.source),
            _target_label(routed.edge),
            routed.edge.kind,
            routed.category,
            f"{corridor.kind}:{corridor.key}" if corridor else "-",
            "-" if routed.channel is None else str(routed.channel),
            routed.edge.label,
        )
    console.print(connections)
    for warning in model.warnings:
        console.print(f"[yellow]{warning.code}[/] {warning.message}")


def _node_label(index: int) -> str:
    if index == START_NODE:
        return "START"
    if index == TERMINAL_NODE:
        return "DONE"
    return str(index + 1)


def _target_label(edge: Edge) -> str:
    # Unresolved branches end at the finish terminal; mark them apart from real finishes.
    if edge.to_terminal and not edge.resolved:
        return "DONE?"
    return _node_label(edge.target)


if __name__ == "__main__":
    app()
