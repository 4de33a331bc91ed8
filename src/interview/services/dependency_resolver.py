"""Dependency-aware execution ordering for tool calls."""
from __future__ import annotations

import logging

import networkx as nx

from src.shared.models.tools import (
    DependencyEdge,
    DependencyGraph,
    ToolAnnotations,
    ToolDependencyInfo,
    ToolSignature,
)

logger = logging.getLogger(__name__)

# Upper bound on cycles reported by build_dependency_graph
_MAX_REPORTED_CYCLES = 20


def resolve_tool_dependencies(
    tools: list[ToolSignature],
    graph: DependencyGraph,
) -> list[ToolDependencyInfo]:
    """Attach each tool's layer index and neighbours from *graph*.

    Tools missing from ``graph.layers`` are placed in layer 0.
    """
    layer_map: dict[str, int] = {}
    for index, layer in enumerate(graph.layers):
        for tool_name in layer:
            layer_map[tool_name] = index

    infos: list[ToolDependencyInfo] = []
    for tool in tools:
        depends_on = [e.from_tool for e in graph.edges if e.to_tool == tool.name]
        provides = [e.to_tool for e in graph.edges if e.from_tool == tool.name]
        infos.append(
            ToolDependencyInfo(
                tool=tool.name,
                depends_on=list(dict.fromkeys(depends_on)),
                provides_output_for=list(dict.fromkeys(provides)),
                sequence_position=layer_map.get(tool.name, 0),
            )
        )
    return infos


def get_annotation_priority(annotations: ToolAnnotations | None) -> int:
    """Read-only tools sort first (0), unannotated next (1), destructive last (2)."""
    if annotations is None:
        return 1
    if annotations.read_only_hint:
        return 0
    if annotations.destructive_hint:
        return 2
    return 1


def get_dependency_order(
    dependencies: list[ToolDependencyInfo],
    tool_annotations: dict[str, ToolAnnotations | None] | None = None,
) -> list[str]:
    """Return tool names ordered by (layer, annotation priority, name).

    Within a layer destructive tools run after everything else so they cannot
    remove state that a same-layer tool still needs.
    """
    def sort_key(dep: ToolDependencyInfo) -> tuple[int, int, str]:
        priority = 1
        if tool_annotations is not None:
            priority = get_annotation_priority(tool_annotations.get(dep.tool))
        return (dep.sequence_position, priority, dep.tool)

    return [dep.tool for dep in sorted(dependencies, key=sort_key)]


def order_tools(tools: list[ToolSignature], graph: DependencyGraph) -> list[str]:
    """Resolve and order *tools* against *graph* in one call."""
    dependencies = resolve_tool_dependencies(tools, graph)
    annotations = {tool.name: tool.annotations for tool in tools}
    return get_dependency_order(dependencies, annotations)


def build_dependency_graph(
    tool_names: list[str],
    edges: list[DependencyEdge],
) -> DependencyGraph:
    """Build a layered graph from raw edges using NetworkX.

    Strongly connected components are collapsed before layering, so every
    member of a cycle lands in the same layer and the layering stays a valid
    partial order even when the edges are cyclic. Edges that mention unknown
    tools are kept but their endpoints are added as nodes.
    """
    graph = nx.DiGraph()
    graph.add_nodes_from(tool_names)
    for edge in edges:
        if edge.from_tool == edge.to_tool:
            continue
        graph.add_edge(edge.from_tool, edge.to_tool)

    cycles: list[list[str]] = []
    if not nx.is_directed_acyclic_graph(graph):
        try:
            for cycle in nx.simple_cycles(graph):
                cycles.append(list(cycle))
                if len(cycles) >= _MAX_REPORTED_CYCLES:
                    break
        except nx.NetworkXError as exc:
            logger.warning("Failed to enumerate dependency cycles: %s", exc)

    condensed = nx.condensation(graph)
    layers: list[list[str]] = []
    for generation in nx.topological_generations(condensed):
        members: list[str] = []
        for component in generation:
            members.extend(condensed.nodes[component]["members"])
        layers.append(sorted(members))

    entry_points = sorted(n for n in graph.nodes if graph.in_degree(n) == 0)
    terminal_points = sorted(n for n in graph.nodes if graph.out_degree(n) == 0)

    if cycles:
        logger.info("Dependency graph contains %d cycle(s)", len(cycles))

    return DependencyGraph(
        edges=list(edges),
        layers=layers,
        entry_points=entry_points,
        terminal_points=terminal_points,
        cycles=cycles,
    )


def is_valid_layering(graph: DependencyGraph) -> bool:
    """True when no edge points from a later layer to an earlier one."""
    layer_map: dict[str, int] = {}
    for index, layer in enumerate(graph.layers):
        for tool_name in layer:
            layer_map[tool_name] = index

    for edge in graph.edges:
        source = layer_map.get(edge.from_tool, 0)
        target = layer_map.get(edge.to_tool, 0)
        if source > target:
            return False
    return True
