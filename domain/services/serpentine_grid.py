from __future__ import annotations

import math

from domain.models import START_NODE, TERMINAL_NODE, Direction, GridCell


def column_count(
    step_count: int,
    *,
    factor: float = 1.4,
    min_columns: int = 3,
    max_columns: int = 8,
) -> int:
    """Columns for a serpentine grid: clamp(ceil(sqrt(n * factor)), min, max)."""
    if step_count <= 0:
        return min_columns
    raw = math.ceil(math.sqrt(step_count * factor))
    return max(min_columns, min(max_columns, raw))


def row_direction(row: int) -> Direction:
    return "ltr" if row % 2 == 0 else "rtl"


def cell_for_index(index: int, columns: int) -> GridCell:
    row = index // columns
    offset = index % columns
    direction = row_direction(row)
    col = offset if direction == "ltr" else columns - 1 - offset
    return GridCell(index=index, row=row, col=col, direction=direction)


def assign_serpentine_grid(step_count: int, columns: int) -> tuple[GridCell, ...]:
    if columns < 1:
        msg = f"columns must be positive, got {columns}"
        raise ValueError(msg)
    return tuple(cell_for_index(index, columns) for index in range(step_count))


def traversal_position(cell: GridCell, columns: int) -> int:
    return cell.col if cell.direction == "ltr" else columns - 1 - cell.col


def terminal_cells(cells: tuple[GridCell, ...]) -> tuple[GridCell, GridCell]:
    """Synthetic start/finish cells: above step 0 and below the last step."""
    first = cells[0]
    last = cells[-1]
    start_row = first.row - 1
    start = GridCell(
        index=START_NODE, row=start_row, col=first.col, direction=row_direction(start_row)
    )
    finish_row = last.row + 1
    finish = GridCell(
        index=TERMINAL_NODE,
        row=finish_row,
        col=last.col,
        direction=row_direction(finish_row),
    )
    return start, finish
