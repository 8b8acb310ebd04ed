"""Collapse-aware views of a ``LayoutResult`` for the rendering surface.

The engine always emits every node. These helpers work out which nodes a
renderer should hide under collapsed organizers, and reroute edges whose
endpoints are hidden onto the nearest visible organizer.
"""

from __future__ import annotations

from collections.abc import Iterable

from metamap_layout.types import LayoutEdge, LayoutResult, OrganizerNode, PositionedNode

# Handle used on an endpoint that was rerouted onto an organizer.
GROUP_HANDLE = "group-connect"


def collapsed_organizers(nodes: Iterable[PositionedNode]) -> set[str]:
    return {n.id for n in nodes if isinstance(n, OrganizerNode) and n.collapsed}


def hidden_descendants(nodes: Iterable[PositionedNode], collapsed: set[str]) -> set[str]:
    """Ids of every node with a collapsed organizer somewhere above it."""
    children: dict[str, list[str]] = {}
    for node in nodes:
        if node.parent_id is not None:
            children.setdefault(node.parent_id, []).append(node.id)

    hidden: set[str] = set()
    stack = [c for organizer_id in collapsed for c in children.get(organizer_id, [])]
    while stack:
        node_id = stack.pop()
        if node_id in hidden:
            continue
        hidden.add(node_id)
        stack.extend(children.get(node_id, []))
    return hidden


def edge_remap(nodes: Iterable[PositionedNode], hidden: set[str], collapsed: set[str]) -> dict[str, str]:
    """Hidden node id → outermost collapsed ancestor (the one that is visible)."""
    parents = {n.id: n.parent_id for n in nodes}

    remap: dict[str, str] = {}
    for node_id in hidden:
        outermost = None
        current = parents.get(node_id)
        visited: set[str] = set()
        while current is not None and current not in visited:
            visited.add(current)
            if current in collapsed:
                outermost = current
            current = parents.get(current)
        if outermost is not None:
            remap[node_id] = outermost
    return remap


def visible_edges(result: LayoutResult) -> list[LayoutEdge]:
    """Edges as they should be drawn given each organizer's collapsed flag.

    Endpoints under a collapsed organizer move onto it. Edges that end up
    inside one chip disappear; edges that end up parallel are bundled into the
    first one, whose ``bundle_count`` records how many it stands for.
    """
    collapsed = collapsed_organizers(result.nodes)
    if not collapsed:
        return list(result.edges)
    remap = edge_remap(result.nodes, hidden_descendants(result.nodes, collapsed), collapsed)

    edges: list[LayoutEdge] = []
    bundles: dict[tuple[str, str, str, str], LayoutEdge] = {}
    for edge in result.edges:
        source = remap.get(edge.source, edge.source)
        target = remap.get(edge.target, edge.target)
        if source == target:
            continue
        if source == edge.source and target == edge.target:
            edges.append(edge)
            continue

        source_handle = GROUP_HANDLE if source != edge.source else edge.source_handle
        target_handle = GROUP_HANDLE if target != edge.target else edge.target_handle
        key = (source, source_handle, target, target_handle)
        bundle = bundles.get(key)
        if bundle is not None:
            bundle.bundle_count += 1
            continue

        bundle = LayoutEdge(
            id=f"agg:{source}:{source_handle}->{target}:{target_handle}",
            source=source,
            target=target,
            source_handle=source_handle,
            target_handle=target_handle,
            origin=edge.origin,
            label=edge.label,
        )
        bundles[key] = bundle
        edges.append(bundle)
    return edges
