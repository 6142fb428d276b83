from __future__ import annotations

from collections.abc import Iterable, Mapping

from domain.models import ClassifiedConnection, ConnectionCategory, Edge, GridCell
from domain.services.serpentine_grid import traversal_position


def classify_connection(source: GridCell, target: GridCell, columns: int) -> ConnectionCategory:
    """Routing category of a connection from its source/target cells.

    Same-row "immediate next" is checked first so it always wins over the
    skip and loop-back categories.
    """
    if target.row == source.row:
        delta = traversal_position(target, columns) - traversal_position(source, columns)
        if delta == 1:
            return "same_row_next"
        if delta > 1:
            return "same_row_skip"
        return "loop_back"
    if target.row > source.row:
        return "forward_skip"
    return "loop_back"


def classify_connections(
    edges: Iterable[Edge],
    cells: Mapping[int, GridCell],
    columns: int,
) -> list[ClassifiedConnection]:
    classified: list[ClassifiedConnection] = []
    for edge in edges:
        source = cells[edge.source]
        target = cells[edge.target]
        classified.append(
            ClassifiedConnection(
                edge=edge,
                category=classify_connection(source, target, columns),
                source_cell=source,
                target_cell=target,
            )
        )
    return classified


def spans_rows(connection: ClassifiedConnection) -> int:
    return connection.target_cell.row - connection.source_cell.row
