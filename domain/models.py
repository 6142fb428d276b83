from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

MIN_STEPS = 3
MAX_STEPS = 50

START_NODE = -1
TERMINAL_NODE = -2

DEFAULT_DEPARTMENT = "Other"
BAD_HANDOFF_CLARITY = frozenset({"yes-multiple", "yes-major"})

DEPARTMENT_FILL = {
    "Sales": "#dbeafe",
    "Operations": "#fef3c7",
    "Finance": "#dcfce7",
    "IT": "#e0e7ff",
    "Customer Success": "#fce7f3",
    "Product": "#f3e8ff",
    "Leadership": "#fef9c3",
    "HR": "#ffedd5",
    "Other": "#f1f5f9",
}
DEPARTMENT_STROKE = {
    "Sales": "#3b82f6",
    "Operations": "#f59e0b",
    "Finance": "#22c55e",
    "IT": "#6366f1",
    "Customer Success": "#ec4899",
    "Product": "#a855f7",
    "Leadership": "#ca8a04",
    "HR": "#ea580c",
    "Other": "#94a3b8",
}

EdgeKind = Literal["sequential", "branch", "start", "finish", "fallback"]
ConnectionCategory = Literal["same_row_next", "same_row_skip", "forward_skip", "loop_back"]
Direction = Literal["ltr", "rtl"]
CorridorKind = Literal["left_margin", "row_gap", "right_margin"]
Side = Literal["top", "bottom", "left", "right"]
NodeShape = Literal["rectangle", "diamond", "hexagon", "terminal"]

_BOTTLENECK_TOKEN = re.compile(r"^\s*(?:step-)?(-?\d+)\s*$", re.IGNORECASE)


class _InputModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Branch(_InputModel):
    label: str = ""
    target_ref: str = Field(
        default="",
        validation_alias=AliasChoices("target_ref", "targetRef", "target"),
    )

    @field_validator("label", "target_ref", mode="before")
    @classmethod
    def coerce_text(cls, value: object) -> str:
        return "" if value is None else str(value)


class Step(_InputModel):
    name: str = ""
    department: str = DEFAULT_DEPARTMENT
    is_external: bool = Field(
        default=False, validation_alias=AliasChoices("is_external", "isExternal")
    )
    is_decision: bool = Field(
        default=False, validation_alias=AliasChoices("is_decision", "isDecision")
    )
    branches: List[Branch] = Field(default_factory=list)

    @field_validator("department", mode="before")
    @classmethod
    def default_department(cls, value: object) -> str:
        text = str(value or "").strip()
        return text or DEFAULT_DEPARTMENT

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, value: object) -> str:
        return " ".join(str(value or "").split())

    @model_validator(mode="after")
    def ensure_branches_match_decision(self) -> Step:
        if self.is_decision and not self.branches:
            msg = f"Decision step {self.name!r} must define at least one branch"
            raise ValueError(msg)
        if not self.is_decision and self.branches:
            msg = f"Step {self.name!r} defines branches but is not a decision"
            raise ValueError(msg)
        return self


class Handoff(_InputModel):
    method: str = ""
    clarity: str = ""

    @field_validator("method", "clarity", mode="before")
    @classmethod
    def coerce_text(cls, value: object) -> str:
        return "" if value is None else str(value).strip()

    @property
    def is_unclear(self) -> bool:
        return self.clarity in BAD_HANDOFF_CLARITY

    def display_method(self) -> str:
        return self.method.replace("-", " ").strip()


class StepBadge(_InputModel):
    automation: Optional[str] = None
    approval: bool = False
    external: bool = False

    @field_validator("automation", mode="before")
    @classmethod
    def normalize_automation(cls, value: object) -> str | None:
        text = str(value or "").strip().upper()
        return text[:1] or None


class StepAnnotations(_InputModel):
    bottleneck: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("bottleneck", "bottleneck_index", "longestStep"),
    )
    badges: Dict[int, StepBadge] = Field(default_factory=dict)

    @field_validator("bottleneck", mode="before")
    @classmethod
    def parse_bottleneck(cls, value: object) -> int | None:
        if value is None or value == "":
            return None
        if isinstance(value, bool):
            msg = "bottleneck must be a step index"
            raise ValueError(msg)
        if isinstance(value, int):
            return value
        match = _BOTTLENECK_TOKEN.match(str(value))
        if not match:
            msg = f"Unrecognized bottleneck reference: {value!r}"
            raise ValueError(msg)
        return int(match.group(1))


class ProcessFlow(_InputModel):
    steps: List[Step] = Field(..., min_length=MIN_STEPS, max_length=MAX_STEPS)
    handoffs: List[Handoff] = Field(default_factory=list)
    annotations: StepAnnotations = Field(default_factory=StepAnnotations)
    starts_when: str = Field(
        default="Start", validation_alias=AliasChoices("starts_when", "startsWhen")
    )
    completes_when: str = Field(
        default="Complete", validation_alias=AliasChoices("completes_when", "completesWhen")
    )

    @field_validator("handoffs", mode="before")
    @classmethod
    def replace_missing_handoffs(cls, value: object) -> object:
        if isinstance(value, list):
            return [item if item is not None else {} for item in value]
        return value

    @model_validator(mode="after")
    def ensure_handoffs_fit_steps(self) -> ProcessFlow:
        pairs = len(self.steps) - 1
        if len(self.handoffs) > pairs:
            msg = f"Got {len(self.handoffs)} handoffs for {pairs} consecutive step pairs"
            raise ValueError(msg)
        return self

    def handoff_after(self, index: int) -> Handoff | None:
        if 0 <= index < len(self.handoffs):
            return self.handoffs[index]
        return None

    def bottleneck_index(self) -> int | None:
        index = self.annotations.bottleneck
        if index is None or not 0 <= index < len(self.steps):
            return None
        return index


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Size:
    width: float
    height: float


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def intersects(self, other: Rect, margin: float = 0.0) -> bool:
        return not (
            self.right + margin <= other.x
            or other.right + margin <= self.x
            or self.bottom + margin <= other.y
            or other.bottom + margin <= self.y
        )


@dataclass(frozen=True)
class StepNode:
    index: int
    name: str
    department: str
    is_external: bool
    is_decision: bool
    branches: tuple[Branch, ...] = ()

    @property
    def number(self) -> int:
        return self.index + 1


@dataclass(frozen=True)
class Edge:
    source: int
    target: int
    kind: EdgeKind
    label: str = ""
    resolved: bool = True
    dashed: bool = False
    order: int = 0

    @property
    def to_terminal(self) -> bool:
        return self.target == TERMINAL_NODE

    @property
    def between_steps(self) -> bool:
        return self.source >= 0 and self.target >= 0


@dataclass(frozen=True)
class LayoutWarning:
    code: str
    step_index: int
    message: str
    target_ref: str = ""
    branch_label: str = ""


@dataclass(frozen=True)
class StepGraph:
    nodes: tuple[StepNode, ...]
    edges: tuple[Edge, ...]
    warnings: tuple[LayoutWarning, ...] = ()


@dataclass(frozen=True)
class GridCell:
    index: int
    row: int
    col: int
    direction: Direction


@dataclass(frozen=True)
class Corridor:
    kind: CorridorKind
    key: int = 0


@dataclass(frozen=True)
class ChannelClaim:
    corridor: Corridor
    channel: int


@dataclass(frozen=True)
class ClassifiedConnection:
    edge: Edge
    category: ConnectionCategory
    source_cell: GridCell
    target_cell: GridCell


@dataclass(frozen=True)
class RoutedConnection:
    edge: Edge
    category: ConnectionCategory
    source_cell: GridCell
    target_cell: GridCell
    channel: int | None = None
    corridor: Corridor | None = None
    claims: tuple[ChannelClaim, ...] = ()


@dataclass(frozen=True)
class NodeStyle:
    shape: NodeShape
    fill: str
    stroke: str
    stroke_width: float
    text_color: str
    emphasis: tuple[str, ...] = ()


@dataclass(frozen=True)
class NodeText:
    lines: tuple[str, ...]
    font_size: float
    height: float
    overflow: bool = False


@dataclass(frozen=True)
class NodeBox:
    index: int
    cell: GridCell
    position: Point
    size: Size
    text: NodeText
    style: NodeStyle
    department: str
    badges: tuple[str, ...] = ()

    def rect(self) -> Rect:
        return Rect(self.position.x, self.position.y, self.size.width, self.size.height)


@dataclass(frozen=True)
class TerminalBox:
    role: Literal["start", "finish"]
    cell: GridCell
    position: Point
    size: Size
    text: NodeText
    style: NodeStyle

    def rect(self) -> Rect:
        return Rect(self.position.x, self.position.y, self.size.width, self.size.height)


@dataclass(frozen=True)
class LabelAnchor:
    text: str
    position: Point
    size: Size
    source: int
    target: int
    nudge: float = 0.0

    def rect(self) -> Rect:
        return Rect(
            self.position.x - self.size.width / 2,
            self.position.y - self.size.height / 2,
            self.size.width,
            self.size.height,
        )


@dataclass(frozen=True)
class ConnectionPath:
    connection: RoutedConnection
    points: tuple[Point, ...]
    dashed: bool = False
    label: LabelAnchor | None = None


@dataclass(frozen=True)
class LaneLegendEntry:
    department: str
    fill: str
    stroke: str
    step_indices: tuple[int, ...]


@dataclass(frozen=True)
class RenderModel:
    column_count: int
    row_count: int
    cells: tuple[GridCell, ...]
    nodes: tuple[NodeBox, ...]
    terminals: tuple[TerminalBox, ...]
    connections: tuple[ConnectionPath, ...]
    labels: tuple[LabelAnchor, ...]
    lanes: tuple[LaneLegendEntry, ...]
    warnings: tuple[LayoutWarning, ...]
    size: Size
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    def cell_for(self, index: int) -> GridCell | None:
        return next((cell for cell in self.cells if cell.index == index), None)

    def connections_between(self, source: int, target: int) -> list[ConnectionPath]:
        return [
            path
            for path in self.connections
            if path.connection.edge.source == source and path.connection.edge.target == target
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "process-flow-layout",
            "version": 1,
            "columnCount": self.column_count,
            "rowCount": self.row_count,
            "size": asdict(self.size),
            "cells": [asdict(cell) for cell in self.cells],
            "nodes": [asdict(node) for node in self.nodes],
            "terminals": [asdict(terminal) for terminal in self.terminals],
            "connections": [asdict(path) for path in self.connections],
            "labels": [asdict(label) for label in self.labels],
            "lanes": [asdict(lane) for lane in self.lanes],
            "warnings": [asdict(warning) for warning in self.warnings],
            "metadata": dict(self.metadata),
        }
