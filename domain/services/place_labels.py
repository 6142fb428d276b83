from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from domain.models import Edge, LabelAnchor, Point, Rect, Size
from domain.services.route_connections import polyline_midpoint

LABEL_CHAR_WIDTH = 0.6
LABEL_LINE_HEIGHT = 1.4


@dataclass(frozen=True)
class LabelRequest:
    edge: Edge
    text: str
    points: tuple[Point, ...]


def estimate_label_size(text: str, font_size: float, padding: float = 4.0) -> Size:
    width = len(text) * font_size * LABEL_CHAR_WIDTH + padding * 2
    height = font_size * LABEL_LINE_HEIGHT + padding
    return Size(width, height)


def nudge_offsets(step: float, attempts: int) -> list[float]:
    """0, +step, -step, +2*step, -2*step, ..."""
    offsets = [0.0]
    for distance in range(1, attempts + 1):
        offsets.extend((distance * step, -distance * step))
    return offsets


def place_labels(
    requests: Sequence[LabelRequest],
    obstacles: Sequence[Rect],
    *,
    font_size: float = 11.0,
    nudge_step: float = 12.0,
    max_nudges: int = 6,
    margin: float = 2.0,
) -> list[LabelAnchor]:
    """Anchor each label at its path midpoint, nudged off earlier labels and nodes.

    Requests are placed in the given order; each placed label becomes an
    obstacle for the following ones. When no nudge clears every obstacle
    the position with the fewest collisions is kept.
    """
    placed: list[LabelAnchor] = []
    for request in requests:
        size = estimate_label_size(request.text, font_size)
        midpoint, (dx, dy) = polyline_midpoint(request.points)
        normal = (-dy, dx)

        best: LabelAnchor | None = None
        best_hits = 0
        for offset in nudge_offsets(nudge_step, max_nudges):
            candidate = LabelAnchor(
                text=request.text,
                position=Point(midpoint.x + normal[0] * offset, midpoint.y + normal[1] * offset),
                size=size,
                source=request.edge.source,
                target=request.edge.target,
                nudge=offset,
            )
            hits = _collisions(candidate.rect(), obstacles, placed, margin)
            if best is None or hits < best_hits:
                best = candidate
                best_hits = hits
            if hits == 0:
                break
        if best is not None:
            placed.append(best)
    return placed


def _collisions(
    rect: Rect,
    obstacles: Sequence[Rect],
    placed: Sequence[LabelAnchor],
    margin: float,
) -> int:
    hits = sum(1 for obstacle in obstacles if rect.intersects(obstacle, margin))
    hits += sum(1 for label in placed if rect.intersects(label.rect(), margin))
    return hits
