from __future__ import annotations

from collections.abc import Iterable

from domain.models import (
    ChannelClaim,
    ClassifiedConnection,
    Corridor,
    RoutedConnection,
)
from domain.services.classify_connections import spans_rows

LEFT_MARGIN = Corridor(kind="left_margin")
RIGHT_MARGIN = Corridor(kind="right_margin")


def row_gap(row: int) -> Corridor:
    """Corridor below ``row``; ``row_gap(-1)`` is the gap above the first row."""
    return Corridor(kind="row_gap", key=row)


class ChannelAllocator:
    """Hands out lanes inside routing corridors.

    Each corridor keeps its own counter and channels are never reused, so
    two connections claiming the same corridor always get distinct offsets.
    One allocator serves exactly one layout pass.
    """

    def __init__(self, base_offset: float = 16.0, line_gap: float = 32.0) -> None:
        self.base_offset = base_offset
        self.line_gap = line_gap
        self._counters: dict[Corridor, int] = {}

    def claim(self, corridor: Corridor) -> int:
        channel = self._counters.get(corridor, 0)
        self._counters[corridor] = channel + 1
        return channel

    def count(self, corridor: Corridor) -> int:
        return self._counters.get(corridor, 0)

    def corridors(self) -> list[Corridor]:
        return sorted(self._counters, key=lambda corridor: (corridor.kind, corridor.key))

    def offset(self, channel: int, base_offset: float | None = None) -> float:
        base = self.base_offset if base_offset is None else base_offset
        return base + channel * self.line_gap

    def span(self, corridor: Corridor) -> float:
        """Distance from the first to the last lane of a corridor."""
        return max(0, self.count(corridor) - 1) * self.line_gap


def processing_order(connections: Iterable[ClassifiedConnection]) -> list[ClassifiedConnection]:
    # START_NODE is -1, so the start connector sorts ahead of every step.
    return sorted(connections, key=lambda item: (item.edge.source, item.edge.order))


def allocate_channels(
    connections: Iterable[ClassifiedConnection],
    allocator: ChannelAllocator,
) -> list[RoutedConnection]:
    routed: list[RoutedConnection] = []
    for item in processing_order(connections):
        claims = _claims_for(item, allocator)
        primary = claims[0] if claims else None
        routed.append(
            RoutedConnection(
                edge=item.edge,
                category=item.category,
                source_cell=item.source_cell,
                target_cell=item.target_cell,
                channel=primary.channel if primary else None,
                corridor=primary.corridor if primary else None,
                claims=tuple(claims),
            )
        )
    return routed


def _claims_for(item: ClassifiedConnection, allocator: ChannelAllocator) -> list[ChannelClaim]:
    source_row = item.source_cell.row
    target_row = item.target_cell.row
    if item.category == "same_row_next":
        return []
    if item.category == "same_row_skip":
        corridors = [row_gap(source_row - 1)]
    elif item.category == "forward_skip":
        corridors = [row_gap(source_row)]
        if spans_rows(item) > 1:
            corridors += [RIGHT_MARGIN, row_gap(target_row - 1)]
    else:
        # A same-row loop keeps its margin lane but crosses one gap lane only.
        corridors = [LEFT_MARGIN, row_gap(source_row - 1)]
        if target_row != source_row:
            corridors.append(row_gap(target_row - 1))
    return [ChannelClaim(corridor=corridor, channel=allocator.claim(corridor)) for corridor in corridors]
