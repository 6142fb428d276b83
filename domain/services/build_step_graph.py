from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from domain.models import (
    START_NODE,
    TERMINAL_NODE,
    Edge,
    LayoutWarning,
    ProcessFlow,
    StepGraph,
    StepNode,
)

logger = logging.getLogger(__name__)

_STEP_TOKEN = re.compile(r"\bstep\s*#?\s*(\d+)\b", re.IGNORECASE)
_BARE_NUMBER = re.compile(r"^\s*#?(\d+)\s*$")


def resolve_branch_target(target_ref: str, step_names: Sequence[str]) -> int | None:
    """Resolve a branch target reference to a 0-based step index.

    A numeric reference ("Step 5", "step #5" or a bare "5") is 1-based and
    resolves only by number; an out-of-range number is unresolved rather than
    falling back to name matching. Any other reference is matched as a
    case-insensitive substring of the step names, first match wins.
    """
    ref = str(target_ref or "").strip()
    if not ref:
        return None
    match = _STEP_TOKEN.search(ref) or _BARE_NUMBER.match(ref)
    if match:
        index = int(match.group(1)) - 1
        return index if 0 <= index < len(step_names) else None
    needle = ref.casefold()
    for index, name in enumerate(step_names):
        if needle in name.casefold():
            return index
    return None


def build_step_graph(process: ProcessFlow) -> StepGraph:
    nodes = tuple(
        StepNode(
            index=index,
            name=step.name or f"Step {index + 1}",
            department=step.department,
            is_external=step.is_external,
            is_decision=step.is_decision,
            branches=tuple(step.branches),
        )
        for index, step in enumerate(process.steps)
    )
    step_names = [step.name for step in process.steps]
    last_index = len(nodes) - 1

    edges: list[Edge] = [Edge(source=START_NODE, target=0, kind="start")]
    warnings: list[LayoutWarning] = []

    for node in nodes:
        if node.is_decision:
            branch_edges, branch_warnings = _branch_edges(node, step_names)
            edges.extend(branch_edges)
            warnings.extend(branch_warnings)
        elif node.index == last_index:
            edges.append(Edge(source=node.index, target=TERMINAL_NODE, kind="finish"))
        else:
            edges.append(_sequential_edge(process, nodes, node.index))

    orphan_edges, orphan_warnings = _orphan_fallback_edges(nodes, edges)
    if orphan_edges:
        edges = _ordered_edges(edges + orphan_edges)
    warnings.extend(orphan_warnings)

    return StepGraph(nodes=nodes, edges=tuple(edges), warnings=tuple(warnings))


def _branch_edges(
    node: StepNode, step_names: Sequence[str]
) -> tuple[list[Edge], list[LayoutWarning]]:
    merged: dict[int, Edge] = {}
    warnings: list[LayoutWarning] = []
    for order, branch in enumerate(node.branches):
        target = resolve_branch_target(branch.target_ref, step_names)
        resolved = target is not None
        if target is None:
            target = TERMINAL_NODE
            warnings.append(
                LayoutWarning(
                    code="unresolved_branch",
                    step_index=node.index,
                    message=(
                        f"Branch {branch.label!r} of step {node.number} points to "
                        f"{branch.target_ref!r}, which matches no step"
                    ),
                    target_ref=branch.target_ref,
                    branch_label=branch.label,
                )
            )
            logger.info(
                "Unresolved branch target %r on step %s; routing to terminal",
                branch.target_ref,
                node.number,
            )
        existing = merged.get(target)
        if existing is None:
            merged[target] = Edge(
                source=node.index,
                target=target,
                kind="branch",
                label=branch.label.strip(),
                resolved=resolved,
                order=order,
            )
            continue
        labels = [part for part in (existing.label, branch.label.strip()) if part]
        merged[target] = Edge(
            source=existing.source,
            target=existing.target,
            kind="branch",
            label=" / ".join(labels),
            resolved=existing.resolved,
            order=existing.order,
        )
    return sorted(merged.values(), key=lambda edge: edge.order), warnings


def _sequential_edge(process: ProcessFlow, nodes: Sequence[StepNode], index: int) -> Edge:
    handoff = process.handoff_after(index)
    label = ""
    dashed = False
    if handoff is not None:
        method = handoff.display_method()
        if handoff.is_unclear:
            dashed = True
            label = method
        elif method and nodes[index].department != nodes[index + 1].department:
            label = method
    return Edge(source=index, target=index + 1, kind="sequential", label=label, dashed=dashed)


def _orphan_fallback_edges(
    nodes: Sequence[StepNode], edges: Sequence[Edge]
) -> tuple[list[Edge], list[LayoutWarning]]:
    connected: set[int] = set()
    for edge in edges:
        # Self-loops do not connect a step to the rest of the diagram.
        if edge.between_steps and edge.resolved and edge.source != edge.target:
            connected.add(edge.source)
            connected.add(edge.target)

    fallback: list[Edge] = []
    warnings: list[LayoutWarning] = []
    for node in nodes:
        if node.index in connected:
            continue
        source, target = (node.index - 1, node.index) if node.index > 0 else (0, 1)
        edge = Edge(
            source=source,
            target=target,
            kind="fallback",
            dashed=True,
            order=len(nodes[source].branches) + 1,
        )
        fallback.append(edge)
        connected.update((edge.source, edge.target))
        warnings.append(
            LayoutWarning(
                code="orphan_step",
                step_index=node.index,
                message=f"Step {node.number} has no resolved connection to another step",
            )
        )
    return fallback, warnings


def _ordered_edges(edges: Sequence[Edge]) -> list[Edge]:
    # Stable: source ascending (start edge first), then original emission order.
    return sorted(edges, key=lambda edge: edge.source)
