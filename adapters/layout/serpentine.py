from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Dict, List

from domain.models import (
    START_NODE,
    TERMINAL_NODE,
    ConnectionPath,
    Corridor,
    GridCell,
    Handoff,
    LabelAnchor,
    NodeBox,
    Point,
    ProcessFlow,
    Rect,
    RenderModel,
    RoutedConnection,
    Size,
    Step,
    StepAnnotations,
    StepGraph,
    TerminalBox,
)
from domain.ports.layout import FlowLayoutEngine
from domain.services.build_step_graph import build_step_graph
from domain.services.channel_allocator import (
    LEFT_MARGIN,
    RIGHT_MARGIN,
    ChannelAllocator,
    allocate_channels,
    row_gap,
)
from domain.services.classify_connections import classify_connections
from domain.services.fit_node_text import fit_node_text
from domain.services.node_styles import (
    badges_by_index,
    lane_legend,
    step_badges,
    step_style,
    terminal_style,
)
from domain.services.place_labels import LabelRequest, place_labels
from domain.services.route_connections import CorridorGeometry, route_connections
from domain.services.serpentine_grid import assign_serpentine_grid, column_count, terminal_cells

logger = logging.getLogger(__name__)

DIAMOND_TEXT_RATIO = 0.65


@dataclass(frozen=True)
class LayoutConfig:
    node_size: Size = Size(180, 72)
    terminal_size: Size = Size(150, 44)
    padding: float = 40.0
    gap_x: float = 64.0
    gap_y: float = 64.0
    line_gap: float = 32.0
    lane_padding: float = 16.0
    port_spacing: float = 18.0
    columns: int | None = None
    column_factor: float = 1.4
    min_columns: int = 3
    max_columns: int = 8
    max_text_lines: int = 3
    max_font_size: float = 14.0
    min_font_size: float = 9.0
    font_size_step: float = 1.0
    text_padding: float = 10.0
    label_font_size: float = 11.0
    label_nudge: float = 12.0
    label_max_nudges: int = 6


@dataclass(frozen=True)
class _Frame:
    rects: Dict[int, Rect]
    geometry: CorridorGeometry
    size: Size


class SerpentineLayoutEngine(FlowLayoutEngine):
    def __init__(self, config: LayoutConfig | None = None) -> None:
        self.config = config or LayoutConfig()

    def build_render_model(self, process: ProcessFlow) -> RenderModel:
        graph = build_step_graph(process)
        columns = self._columns(len(graph.nodes))
        cells = assign_serpentine_grid(len(graph.nodes), columns)
        start_cell, finish_cell = terminal_cells(cells)
        cell_map: Dict[int, GridCell] = {cell.index: cell for cell in cells}
        cell_map[START_NODE] = start_cell
        cell_map[TERMINAL_NODE] = finish_cell

        classified = classify_connections(graph.edges, cell_map, columns)
        # One allocator per pass; channels never leak into another layout call.
        allocator = ChannelAllocator(
            base_offset=self.config.lane_padding, line_gap=self.config.line_gap
        )
        routed = allocate_channels(classified, allocator)

        frame = self._frame(cell_map, columns, allocator)
        paths = route_connections(
            routed, frame.rects, frame.geometry, port_spacing=self.config.port_spacing
        )

        nodes = self._node_boxes(process, graph, cells, frame.rects)
        terminals = self._terminal_boxes(process, start_cell, finish_cell, frame.rects)
        connections, labels = self._connection_paths(routed, paths, nodes, terminals)

        row_count = cells[-1].row + 1
        logger.debug(
            "Laid out %d steps on a %dx%d serpentine grid with %d connections",
            len(cells),
            row_count,
            columns,
            len(connections),
        )
        return RenderModel(
            column_count=columns,
            row_count=row_count,
            cells=cells,
            nodes=nodes,
            terminals=terminals,
            connections=connections,
            labels=labels,
            lanes=lane_legend(graph.nodes),
            warnings=graph.warnings,
            size=frame.size,
            metadata={
                "channels": {
                    f"{corridor.kind}:{corridor.key}": allocator.count(corridor)
                    for corridor in allocator.corridors()
                },
                "bottleneck": process.bottleneck_index(),
            },
        )

    def _columns(self, step_count: int) -> int:
        if self.config.columns is not None:
            return max(1, self.config.columns)
        return column_count(
            step_count,
            factor=self.config.column_factor,
            min_columns=self.config.min_columns,
            max_columns=self.config.max_columns,
        )

    def _frame(
        self,
        cell_map: Mapping[int, GridCell],
        columns: int,
        allocator: ChannelAllocator,
    ) -> _Frame:
        cfg = self.config
        node = cfg.node_size
        terminal = cfg.terminal_size
        last_row = cell_map[TERMINAL_NODE].row - 1

        left_width = self._margin_width(allocator, LEFT_MARGIN)
        right_width = self._margin_width(allocator, RIGHT_MARGIN)
        grid_left = cfg.padding + left_width
        grid_right = grid_left + columns * node.width + (columns - 1) * cfg.gap_x

        gap_tops: Dict[int, float] = {}
        gap_heights: Dict[int, float] = {}
        row_tops: Dict[int, float] = {}
        cursor = cfg.padding
        start_top = cursor
        cursor += terminal.height
        for row in range(-1, last_row + 1):
            if row >= 0:
                row_tops[row] = cursor
                cursor += node.height
            gap_tops[row] = cursor
            gap_heights[row] = max(cfg.gap_y, cfg.lane_padding * 2 + allocator.span(row_gap(row)))
            cursor += gap_heights[row]
        finish_top = cursor
        cursor += terminal.height + cfg.padding

        def column_x(col: int) -> float:
            return grid_left + col * (node.width + cfg.gap_x)

        rects: Dict[int, Rect] = {}
        for index, cell in cell_map.items():
            if index == START_NODE or index == TERMINAL_NODE:
                top = start_top if index == START_NODE else finish_top
                x = column_x(cell.col) + (node.width - terminal.width) / 2
                rects[index] = Rect(x, top, terminal.width, terminal.height)
            else:
                rects[index] = Rect(column_x(cell.col), row_tops[cell.row], node.width, node.height)

        geometry = CorridorGeometry(
            grid_left=grid_left,
            grid_right=grid_right,
            gap_tops=gap_tops,
            gap_heights=gap_heights,
            margin_offset=cfg.lane_padding,
            allocator=allocator,
        )
        width = grid_right + right_width + cfg.padding
        return _Frame(rects=rects, geometry=geometry, size=Size(width, cursor))

    def _margin_width(self, allocator: ChannelAllocator, corridor: Corridor) -> float:
        if allocator.count(corridor) == 0:
            return 0.0
        return self.config.lane_padding * 2 + allocator.span(corridor)

    def _node_boxes(
        self,
        process: ProcessFlow,
        graph: StepGraph,
        cells: Sequence[GridCell],
        rects: Mapping[int, Rect],
    ) -> tuple[NodeBox, ...]:
        cfg = self.config
        bottleneck = process.bottleneck_index()
        badges = badges_by_index(process.annotations.badges, len(graph.nodes))
        boxes: List[NodeBox] = []
        for node, cell in zip(graph.nodes, cells):
            rect = rects[node.index]
            text_width = rect.width - cfg.text_padding * 2
            text_height = rect.height - cfg.text_padding * 2
            if node.is_decision:
                text_width *= DIAMOND_TEXT_RATIO
            boxes.append(
                NodeBox(
                    index=node.index,
                    cell=cell,
                    position=Point(rect.x, rect.y),
                    size=Size(rect.width, rect.height),
                    text=fit_node_text(
                        node.name,
                        text_width,
                        text_height,
                        max_lines=cfg.max_text_lines,
                        max_size=cfg.max_font_size,
                        min_size=cfg.min_font_size,
                        size_step=cfg.font_size_step,
                    ),
                    style=step_style(node, is_bottleneck=node.index == bottleneck),
                    department=node.department,
                    badges=step_badges(node, badges.get(node.index)),
                )
            )
        return tuple(boxes)

    def _terminal_boxes(
        self,
        process: ProcessFlow,
        start_cell: GridCell,
        finish_cell: GridCell,
        rects: Mapping[int, Rect],
    ) -> tuple[TerminalBox, ...]:
        cfg = self.config
        boxes: List[TerminalBox] = []
        for role, cell, text in (
            ("start", start_cell, process.starts_when),
            ("finish", finish_cell, process.completes_when),
        ):
            rect = rects[cell.index]
            boxes.append(
                TerminalBox(
                    role=role,
                    cell=cell,
                    position=Point(rect.x, rect.y),
                    size=Size(rect.width, rect.height),
                    text=fit_node_text(
                        text,
                        rect.width - cfg.text_padding * 2,
                        rect.height,
                        max_lines=1,
                        max_size=cfg.max_font_size,
                        min_size=cfg.min_font_size,
                        size_step=cfg.font_size_step,
                    ),
                    style=terminal_style(),
                )
            )
        return tuple(boxes)

    def _connection_paths(
        self,
        routed: Sequence[RoutedConnection],
        paths: Sequence[tuple[Point, ...]],
        nodes: Iterable[NodeBox],
        terminals: Iterable[TerminalBox],
    ) -> tuple[tuple[ConnectionPath, ...], tuple[LabelAnchor, ...]]:
        cfg = self.config
        requests = [
            LabelRequest(edge=connection.edge, text=connection.edge.label, points=points)
            for connection, points in zip(routed, paths)
            if connection.edge.label
        ]
        obstacles = [node.rect() for node in nodes] + [terminal.rect() for terminal in terminals]
        labels = place_labels(
            requests,
            obstacles,
            font_size=cfg.label_font_size,
            nudge_step=cfg.label_nudge,
            max_nudges=cfg.label_max_nudges,
        )
        label_by_edge = {(label.source, label.target): label for label in labels}
        connections = tuple(
            ConnectionPath(
                connection=connection,
                points=points,
                dashed=connection.edge.dashed,
                label=label_by_edge.get((connection.edge.source, connection.edge.target)),
            )
            for connection, points in zip(routed, paths)
        )
        return connections, tuple(labels)


def layout(
    steps: Iterable[Step | Mapping[str, Any]],
    handoffs: Iterable[Handoff | Mapping[str, Any] | None] = (),
    annotations: StepAnnotations | Mapping[str, Any] | None = None,
    *,
    starts_when: str = "Start",
    completes_when: str = "Complete",
    config: LayoutConfig | None = None,
) -> RenderModel:
    """Lay out a process in one call.

    Validates the raw step/handoff/annotation records (raising pydantic's
    ``ValidationError`` for degenerate input) and returns a fresh
    ``RenderModel``. Identical input always yields an identical model.
    """
    process = ProcessFlow.model_validate(
        {
            "steps": list(steps),
            "handoffs": list(handoffs),
            "annotations": annotations if annotations is not None else {},
            "starts_when": starts_when,
            "completes_when": completes_when,
        }
    )
    return SerpentineLayoutEngine(config).build_render_model(process)
