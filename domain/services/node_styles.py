from __future__ import annotations

from collections.abc import Mapping, Sequence

from domain.models import (
    DEFAULT_DEPARTMENT,
    DEPARTMENT_FILL,
    DEPARTMENT_STROKE,
    LaneLegendEntry,
    NodeStyle,
    StepBadge,
    StepNode,
)

DECISION_STYLE = ("#ede9fe", "#7c3aed", "#5b21b6")
APPROVAL_STYLE = ("#fef3c7", "#d97706", "#92400e")
BOTTLENECK_STYLE = ("#fee2e2", "#ef4444", "#991b1b")
TERMINAL_STYLE = ("#d1fae5", "#059669", "#064e3b")
DEFAULT_TEXT_COLOR = "#1e293b"

_APPROVAL_MARKERS = ("approv", "review")


def is_approval_step(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in _APPROVAL_MARKERS)


def department_colors(department: str) -> tuple[str, str]:
    fill = DEPARTMENT_FILL.get(department, DEPARTMENT_FILL[DEFAULT_DEPARTMENT])
    stroke = DEPARTMENT_STROKE.get(department, DEPARTMENT_STROKE[DEFAULT_DEPARTMENT])
    return fill, stroke


def step_style(node: StepNode, *, is_bottleneck: bool = False) -> NodeStyle:
    emphasis: list[str] = []
    if node.is_decision:
        shape = "diamond"
        fill, stroke, text_color = DECISION_STYLE
        emphasis.append("decision")
    elif is_approval_step(node.name):
        shape = "hexagon"
        fill, stroke, text_color = APPROVAL_STYLE
        emphasis.append("approval")
    else:
        shape = "rectangle"
        fill, stroke = department_colors(node.department)
        text_color = DEFAULT_TEXT_COLOR
    stroke_width = 2.0
    if is_bottleneck:
        # Bottleneck coloring wins, the shape stays.
        fill, stroke, text_color = BOTTLENECK_STYLE
        stroke_width = 3.0
        emphasis.append("bottleneck")
    if node.is_external:
        emphasis.append("external")
    return NodeStyle(
        shape=shape,
        fill=fill,
        stroke=stroke,
        stroke_width=stroke_width,
        text_color=text_color,
        emphasis=tuple(emphasis),
    )


def terminal_style() -> NodeStyle:
    fill, stroke, text_color = TERMINAL_STYLE
    return NodeStyle(
        shape="terminal", fill=fill, stroke=stroke, stroke_width=2.0, text_color=text_color
    )


def step_badges(node: StepNode, badge: StepBadge | None) -> tuple[str, ...]:
    badges: list[str] = []
    if badge is not None and badge.automation:
        badges.append(f"automation:{badge.automation}")
    if badge is not None and badge.approval:
        badges.append("approval")
    if node.is_external or (badge is not None and badge.external):
        badges.append("external")
    return tuple(badges)


def lane_legend(nodes: Sequence[StepNode]) -> tuple[LaneLegendEntry, ...]:
    members: dict[str, list[int]] = {}
    for node in nodes:
        members.setdefault(node.department, []).append(node.index)
    entries: list[LaneLegendEntry] = []
    for department, indices in members.items():
        fill, stroke = department_colors(department)
        entries.append(
            LaneLegendEntry(
                department=department,
                fill=fill,
                stroke=stroke,
                step_indices=tuple(indices),
            )
        )
    return tuple(entries)


def badges_by_index(
    badges: Mapping[int, StepBadge], step_count: int
) -> dict[int, StepBadge]:
    return {index: badge for index, badge in badges.items() if 0 <= index < step_count}
