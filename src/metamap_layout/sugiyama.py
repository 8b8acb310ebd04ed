"""Sugiyama-style layered placement for one container's constraint graph.

Phases:
  1. Cycle removal  (greedy-FAS approach)
  2. Layer assignment (rank each node)
  3. Dummy node insertion for long edges
  4. Crossing minimization (barycenter heuristic)
  5. Coordinate assignment (pixel x/y positions)

Input graphs are ``networkx.DiGraph`` instances whose nodes carry ``width`` and
``height`` attributes. Every loop iterates in insertion order, so identical
inputs give identical placements in any process.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable
from dataclasses import dataclass, field

import networkx as nx

from metamap_layout.types import LayoutDirection

logger = logging.getLogger(__name__)

# Any hashable works as a node id; callers tag their own ids so they never
# collide with each other or with dummy nodes.
NodeId = Hashable

# ─── Cycle Removal (Greedy-FAS) ───────────────────────────────────────────────


@dataclass
class CycleRemovalResult:
    """Result of cycle removal: the (src, tgt) edges that were reversed to make
    the graph a DAG, plus the DAG itself."""

    dag: nx.DiGraph = field(default_factory=nx.DiGraph)
    reversed_edges: set[tuple[NodeId, NodeId]] = field(default_factory=set)


def greedy_fas_ordering(graph: nx.DiGraph) -> list[NodeId]:
    """Compute a node ordering using the greedy-FAS heuristic.

    Nodes earlier in the ordering should have outgoing edges going forward.

    Algorithm (Eades, Lin, Smyth 1993):
    - Maintain dynamic in/out degree counters updated as nodes are removed.
    - Repeatedly:
        1. Move all sinks (out_deg == 0) to s2.
        2. Move all sources (in_deg == 0) to s1.
        3. Of remaining nodes in cycles, pick max (out - in) and add to s1.
    - Final ordering: s1 + reversed(s2).
    """
    # dict, not set: ties must break by insertion order.
    active: dict[NodeId, None] = dict.fromkeys(graph.nodes)

    out_deg: dict[NodeId, int] = {}
    in_deg: dict[NodeId, int] = {}
    for node in graph.nodes:
        # Self-loops never constrain the ordering.
        loop = 1 if graph.has_edge(node, node) else 0
        out_deg[node] = graph.out_degree(node) - loop
        in_deg[node] = graph.in_degree(node) - loop

    s1: list[NodeId] = []
    s2: list[NodeId] = []

    def drop(node: NodeId) -> None:
        del active[node]
        for succ in graph.successors(node):
            if succ in active:
                in_deg[succ] -= 1
        for pred in graph.predecessors(node):
            if pred in active:
                out_deg[pred] -= 1

    while active:
        sinks = [n for n in active if out_deg[n] == 0]
        while sinks:
            for sink in sinks:
                drop(sink)
                s2.append(sink)
            sinks = [n for n in active if out_deg[n] == 0]

        sources = [n for n in active if in_deg[n] == 0]
        while sources:
            for source in sources:
                drop(source)
                s1.append(source)
            sources = [n for n in active if in_deg[n] == 0]

        if active:
            best = max(active, key=lambda n: out_deg[n] - in_deg[n])
            drop(best)
            s1.append(best)

    s2.reverse()
    return s1 + s2


def remove_cycles(graph: nx.DiGraph) -> CycleRemovalResult:
    """Return a DAG copy of ``graph`` with back-edges reversed.

    Back-edges are edges whose source comes after their target in the greedy-FAS
    ordering. Self-loops are counted as reversed and left out of the DAG.
    If reversing an edge would duplicate an existing forward edge, the two
    merge into one.
    """
    result = CycleRemovalResult()
    for node_id in graph.nodes:
        result.dag.add_node(node_id, **graph.nodes[node_id])

    if graph.number_of_nodes() == 0:
        return result

    position = {node: pos for pos, node in enumerate(greedy_fas_ordering(graph))}

    for src, tgt, attrs in graph.edges(data=True):
        if src == tgt:
            result.reversed_edges.add((src, tgt))
            continue
        if position[src] > position[tgt]:
            result.reversed_edges.add((src, tgt))
            result.dag.add_edge(tgt, src, **attrs)
        else:
            result.dag.add_edge(src, tgt, **attrs)

    if result.reversed_edges:
        logger.debug("Reversed %d edge(s) to break cycles", len(result.reversed_edges))
    return result


# ─── Layer Assignment ─────────────────────────────────────────────────────────


class LayerAssignment:
    """Each node of a DAG assigned to a layer (rank).

    Layer 0 is the "first" layer (top for vertical, left for horizontal).

    Attributes:
        layers: Maps node id → layer index.
        layer_count: Total number of layers.
    """

    def __init__(self, layers: dict[NodeId, int], layer_count: int) -> None:
        self.layers = layers
        self.layer_count = layer_count

    @classmethod
    def assign(cls, dag: nx.DiGraph) -> LayerAssignment:
        """Longest-path ranking by fixed-point iteration.

        For each edge u→v: rank[v] = max(rank[v], rank[u] + 1), repeated until
        stable. The DAG guarantees termination.
        """
        layers: dict[NodeId, int] = {node_id: 0 for node_id in dag.nodes}

        changed = True
        while changed:
            changed = False
            for src, tgt in dag.edges():
                if layers[tgt] < layers[src] + 1:
                    layers[tgt] = layers[src] + 1
                    changed = True

        layer_count = (max(layers.values()) + 1) if layers else 0
        return cls(layers=layers, layer_count=layer_count)


# ─── Dummy Node Insertion ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class DummyNode:
    """Placeholder for one intermediate layer of a long edge."""

    chain: int
    index: int


@dataclass
class AugmentedGraph:
    """A DAG where every edge connects nodes in adjacent layers.

    Long edges are replaced by chains of zero-size dummy nodes, one per
    intermediate layer.
    """

    graph: nx.DiGraph
    layers: dict[NodeId, int]
    layer_count: int
    dummy_chains: dict[tuple[NodeId, NodeId], list[NodeId]] = field(default_factory=dict)


def insert_dummy_nodes(dag: nx.DiGraph, la: LayerAssignment) -> AugmentedGraph:
    """Replace every edge u→v with layer[v] - layer[u] > 1 by u → d₁ → … → dₖ → v."""
    g: nx.DiGraph = nx.DiGraph()
    for node_id in dag.nodes:
        g.add_node(node_id, **dag.nodes[node_id])

    layers = dict(la.layers)
    chains: dict[tuple[NodeId, NodeId], list[NodeId]] = {}

    for src, tgt in list(dag.edges()):
        span = layers[tgt] - layers[src]
        if span <= 1:
            g.add_edge(src, tgt)
            continue

        chain: list[NodeId] = []
        prev = src
        for i in range(span - 1):
            dummy_id = DummyNode(len(chains), i)
            g.add_node(dummy_id, width=0.0, height=0.0)
            layers[dummy_id] = layers[src] + i + 1
            g.add_edge(prev, dummy_id)
            chain.append(dummy_id)
            prev = dummy_id
        g.add_edge(prev, tgt)
        chains[(src, tgt)] = chain

    layer_count = (max(layers.values()) + 1) if layers else 0
    return AugmentedGraph(graph=g, layers=layers, layer_count=layer_count, dummy_chains=chains)


# ─── Crossing Minimization (Barycenter) ───────────────────────────────────────

MAX_SWEEPS = 24


def minimise_crossings(aug: AugmentedGraph) -> list[list[NodeId]]:
    """Order each layer to reduce edge crossings.

    Alternating top-down and bottom-up barycenter sweeps run until the crossing
    count stops improving or ``MAX_SWEEPS`` is hit. The best ordering seen is
    returned.
    """
    ordering: list[list[NodeId]] = [[] for _ in range(aug.layer_count)]
    # Initial order: graph insertion order (input order, then dummies).
    for node_id in aug.graph.nodes:
        ordering[aug.layers[node_id]].append(node_id)

    best = count_crossings(ordering, aug.graph)
    best_ordering = [list(layer) for layer in ordering]

    for _sweep in range(MAX_SWEEPS):
        if best == 0:
            break

        for layer_idx in range(1, aug.layer_count):
            prev = {nid: float(i) for i, nid in enumerate(ordering[layer_idx - 1])}
            ordering[layer_idx].sort(key=lambda a, p=prev: _barycenter(a, aug.graph, p, "incoming"))

        for layer_idx in range(aug.layer_count - 2, -1, -1):
            nxt = {nid: float(i) for i, nid in enumerate(ordering[layer_idx + 1])}
            ordering[layer_idx].sort(key=lambda a, n=nxt: _barycenter(a, aug.graph, n, "outgoing"))

        crossings = count_crossings(ordering, aug.graph)
        if crossings >= best:
            break
        best = crossings
        best_ordering = [list(layer) for layer in ordering]

    return best_ordering


def _barycenter(
    node_id: NodeId,
    graph: nx.DiGraph,
    neighbor_pos: dict[NodeId, float],
    direction: str,
) -> float:
    """Average position of a node's neighbours in the adjacent layer.

    Nodes with no neighbours there get ``inf`` and, since the sort is stable,
    keep their relative order at the end of the layer.
    """
    neighbors = graph.predecessors(node_id) if direction == "incoming" else graph.successors(node_id)
    positions = [neighbor_pos[nb] for nb in neighbors if nb in neighbor_pos]
    if not positions:
        return float("inf")
    return sum(positions) / len(positions)


def count_crossings(ordering: list[list[NodeId]], graph: nx.DiGraph) -> int:
    """Count edge crossings between consecutive layers (inversion count)."""
    total = 0
    for l_idx in range(len(ordering) - 1):
        tgt_pos = {nid: i for i, nid in enumerate(ordering[l_idx + 1])}
        edges: list[tuple[int, int]] = []
        for sp, src_id in enumerate(ordering[l_idx]):
            if src_id in graph:
                for nb in graph.successors(src_id):
                    if nb in tgt_pos:
                        edges.append((sp, tgt_pos[nb]))
        for i in range(len(edges)):
            for j in range(i + 1, len(edges)):
                ei, ej = edges[i], edges[j]
                if (ei[0] < ej[0] and ei[1] > ej[1]) or (ei[0] > ej[0] and ei[1] < ej[1]):
                    total += 1
    return total


# ─── Coordinate Assignment ────────────────────────────────────────────────────


@dataclass
class LayoutNode:
    """A placed node: top-left corner plus its original (unswapped) size."""

    id: NodeId
    layer: int
    order: int
    x: float
    y: float
    width: float
    height: float


def assign_coordinates(
    ordering: list[list[NodeId]],
    aug: AugmentedGraph,
    node_sep: float,
    rank_sep: float,
    direction: LayoutDirection = LayoutDirection.VERTICAL,
) -> list[LayoutNode]:
    """Assign pixel coordinates to every node of the augmented graph.

    Placement happens in "rank space": the rank axis runs down the layers and
    the cross axis along each layer. For the horizontal direction node
    dimensions are swapped going in and the axes transposed coming out.
    """
    horizontal = LayoutDirection(direction) is LayoutDirection.HORIZONTAL

    def size(node_id: NodeId) -> tuple[float, float]:
        attrs = aug.graph.nodes[node_id]
        return float(attrs.get("width", 0.0)), float(attrs.get("height", 0.0))

    def rank_dims(node_id: NodeId) -> tuple[float, float]:
        """(cross, rank) extent of a node."""
        w, h = size(node_id)
        return (h, w) if horizontal else (w, h)

    # Layer thickness along the rank axis, and each layer's offset.
    thickness = [max((rank_dims(n)[1] for n in layer), default=0.0) for layer in ordering]
    layer_offset: list[float] = []
    offset = 0.0
    for t in thickness:
        layer_offset.append(offset)
        offset += t + rank_sep

    # Centre every layer on the widest one.
    spans = [
        sum(rank_dims(n)[0] for n in layer) + node_sep * max(0, len(layer) - 1) for layer in ordering
    ]
    widest = max(spans, default=0.0)

    cross: dict[NodeId, float] = {}
    for layer_idx, layer in enumerate(ordering):
        pos = (widest - spans[layer_idx]) / 2
        for node_id in layer:
            cross[node_id] = pos
            pos += rank_dims(node_id)[0] + node_sep

    def centre(node_id: NodeId) -> float:
        return cross[node_id] + rank_dims(node_id)[0] / 2

    def shift_layer(layer_idx: int, neighbours: str) -> None:
        """Shift a whole layer so its mean centre sits over its neighbours' mean centre."""
        own_sum = 0.0
        other_sum = 0.0
        count = 0
        for node_id in ordering[layer_idx]:
            others = aug.graph.predecessors(node_id) if neighbours == "incoming" else aug.graph.successors(node_id)
            for other in others:
                if isinstance(other, DummyNode):
                    continue
                own_sum += centre(node_id)
                other_sum += centre(other)
                count += 1
        if count == 0:
            return
        shift = (other_sum - own_sum) / count
        for node_id in ordering[layer_idx]:
            cross[node_id] += shift

    # Barycenter refinement: top-down, then bottom-up.
    for layer_idx in range(1, len(ordering)):
        shift_layer(layer_idx, "incoming")
    for layer_idx in range(len(ordering) - 2, -1, -1):
        shift_layer(layer_idx, "outgoing")

    # Normalize so the tightest box starts at the origin.
    min_cross = min(cross.values(), default=0.0)

    nodes: list[LayoutNode] = []
    for layer_idx, layer in enumerate(ordering):
        for order, node_id in enumerate(layer):
            c_size, r_size = rank_dims(node_id)
            c = cross[node_id] - min_cross
            r = layer_offset[layer_idx] + (thickness[layer_idx] - r_size) / 2
            w, h = size(node_id)
            x, y = (r, c) if horizontal else (c, r)
            nodes.append(LayoutNode(id=node_id, layer=layer_idx, order=order, x=x, y=y, width=w, height=h))

    return nodes


# ─── Full Pipeline ────────────────────────────────────────────────────────────


def layered_layout(
    graph: nx.DiGraph,
    node_sep: float,
    rank_sep: float,
    direction: LayoutDirection = LayoutDirection.VERTICAL,
) -> dict[NodeId, LayoutNode]:
    """Run every phase and return the placed real (non-dummy) nodes by id."""
    if graph.number_of_nodes() == 0:
        return {}

    removal = remove_cycles(graph)
    la = LayerAssignment.assign(removal.dag)
    aug = insert_dummy_nodes(removal.dag, la)
    ordering = minimise_crossings(aug)
    placed = assign_coordinates(ordering, aug, node_sep, rank_sep, direction)
    return {n.id: n for n in placed if not isinstance(n.id, DummyNode)}
