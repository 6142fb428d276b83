from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from domain.models import ChannelClaim, Point, Rect, RoutedConnection, Side
from domain.services.channel_allocator import ChannelAllocator


@dataclass(frozen=True)
class CorridorGeometry:
    grid_left: float
    grid_right: float
    gap_tops: Mapping[int, float]
    gap_heights: Mapping[int, float]
    margin_offset: float
    allocator: ChannelAllocator

    def lane(self, claim: ChannelClaim) -> float:
        """X of a margin lane or Y of a row-gap lane."""
        corridor = claim.corridor
        if corridor.kind == "left_margin":
            return self.grid_left - self.allocator.offset(claim.channel, self.margin_offset)
        if corridor.kind == "right_margin":
            return self.grid_right + self.allocator.offset(claim.channel, self.margin_offset)
        height = self.gap_heights[corridor.key]
        base = (height - self.allocator.span(corridor)) / 2
        return self.gap_tops[corridor.key] + self.allocator.offset(claim.channel, base)


def connection_sides(connection: RoutedConnection) -> tuple[Side, Side]:
    if connection.category == "same_row_next":
        if connection.source_cell.direction == "ltr":
            return "right", "left"
        return "left", "right"
    if connection.category == "forward_skip":
        return "bottom", "top"
    return "top", "top"


class PortAssigner:
    """Spreads the connections that share a node side over distinct points."""

    def __init__(self, rects: Mapping[int, Rect], spacing: float = 18.0) -> None:
        self.rects = rects
        self.spacing = spacing
        self._slots: dict[tuple[int, Side], int] = {}

    def reserve(self, node: int, side: Side) -> int:
        key = (node, side)
        slot = self._slots.get(key, 0)
        self._slots[key] = slot + 1
        return slot

    def point(self, node: int, side: Side, slot: int) -> Point:
        rect = self.rects[node]
        count = self._slots.get((node, side), 1)
        if side in ("left", "right"):
            spacing = min(self.spacing, rect.height / (count + 1))
            y = rect.y + rect.height / 2 + (slot - (count - 1) / 2) * spacing
            return Point(rect.x if side == "left" else rect.right, y)
        # Bottom ports keep to the left half and top ports to the right half,
        # so drops from a node and drops into the node below never line up.
        half = rect.width / 2
        spacing = min(self.spacing, half / (count + 1))
        centre = rect.x + (half / 2 if side == "bottom" else rect.width - half / 2)
        x = centre + (slot - (count - 1) / 2) * spacing
        return Point(x, rect.bottom if side == "bottom" else rect.y)


def route_connections(
    connections: Sequence[RoutedConnection],
    rects: Mapping[int, Rect],
    geometry: CorridorGeometry,
    port_spacing: float = 18.0,
) -> list[tuple[Point, ...]]:
    ports = PortAssigner(rects, port_spacing)
    reserved: list[tuple[Side, int, Side, int]] = []
    for connection in connections:
        source_side, target_side = connection_sides(connection)
        reserved.append(
            (
                source_side,
                ports.reserve(connection.edge.source, source_side),
                target_side,
                ports.reserve(connection.edge.target, target_side),
            )
        )

    paths: list[tuple[Point, ...]] = []
    for connection, (source_side, source_slot, target_side, target_slot) in zip(
        connections, reserved
    ):
        start = ports.point(connection.edge.source, source_side, source_slot)
        end = ports.point(connection.edge.target, target_side, target_slot)
        paths.append(simplify_path(_waypoints(connection, start, end, geometry)))
    return paths


def _waypoints(
    connection: RoutedConnection,
    start: Point,
    end: Point,
    geometry: CorridorGeometry,
) -> list[Point]:
    if connection.category == "same_row_next":
        if math.isclose(start.y, end.y):
            return [start, end]
        mid_x = (start.x + end.x) / 2
        return [start, Point(mid_x, start.y), Point(mid_x, end.y), end]

    lanes = [geometry.lane(claim) for claim in connection.claims if claim.corridor.kind == "row_gap"]
    if len(lanes) == 1:
        # Up-over-down (same-row skip or loop) or down-over-down (next-row forward).
        return [start, Point(start.x, lanes[0]), Point(end.x, lanes[0]), end]

    # Two row-gap lanes joined by a vertical run in a margin.
    margin_x = next(
        geometry.lane(claim) for claim in connection.claims if claim.corridor.kind != "row_gap"
    )
    first_y, last_y = lanes
    return [
        start,
        Point(start.x, first_y),
        Point(margin_x, first_y),
        Point(margin_x, last_y),
        Point(end.x, last_y),
        end,
    ]


def simplify_path(points: Sequence[Point]) -> tuple[Point, ...]:
    """Drop repeated points and interior points lying on a straight run."""
    deduped: list[Point] = []
    for point in points:
        if deduped and _same_point(deduped[-1], point):
            continue
        deduped.append(point)
    if len(deduped) <= 2:
        return tuple(deduped)

    result = [deduped[0]]
    for current, following in zip(deduped[1:-1], deduped[2:]):
        previous = result[-1]
        cross = (current.x - previous.x) * (following.y - current.y) - (
            current.y - previous.y
        ) * (following.x - current.x)
        if math.isclose(cross, 0.0, abs_tol=1e-6):
            continue
        result.append(current)
    result.append(deduped[-1])
    return tuple(result)


def path_length(points: Sequence[Point]) -> float:
    return sum(
        math.hypot(b.x - a.x, b.y - a.y) for a, b in zip(points, points[1:])
    )


def polyline_midpoint(points: Sequence[Point]) -> tuple[Point, tuple[float, float]]:
    """Point halfway along the path plus the unit direction of its segment."""
    if not points:
        return Point(0.0, 0.0), (1.0, 0.0)
    if len(points) == 1:
        return points[0], (1.0, 0.0)
    remaining = path_length(points) / 2
    for a, b in zip(points, points[1:]):
        length = math.hypot(b.x - a.x, b.y - a.y)
        if length == 0:
            continue
        if remaining <= length:
            ratio = remaining / length
            direction = ((b.x - a.x) / length, (b.y - a.y) / length)
            return Point(a.x + (b.x - a.x) * ratio, a.y + (b.y - a.y) * ratio), direction
        remaining -= length
    return points[-1], (1.0, 0.0)


def _same_point(a: Point, b: Point) -> bool:
    return math.isclose(a.x, b.x, abs_tol=1e-6) and math.isclose(a.y, b.y, abs_tol=1e-6)
