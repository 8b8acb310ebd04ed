"""Tests for sugiyama.py: cycle removal, layering, crossing minimization and
pixel coordinate assignment.
"""

from __future__ import annotations

import networkx as nx

from metamap_layout.sugiyama import (
    AugmentedGraph,
    CycleRemovalResult,
    DummyNode,
    LayerAssignment,
    LayoutNode,
    assign_coordinates,
    count_crossings,
    greedy_fas_ordering,
    insert_dummy_nodes,
    layered_layout,
    minimise_crossings,
    remove_cycles,
)
from metamap_layout.types import LayoutDirection

# ─── Helpers ──────────────────────────────────────────────────────────────────


def make_graph(*edges: tuple[str, str], width: float = 100, height: float = 50) -> nx.DiGraph:
    """Build a DiGraph from (src, tgt) pairs; every node gets the same size."""
    g: nx.DiGraph = nx.DiGraph()
    for src, tgt in edges:
        for node in (src, tgt):
            if node not in g:
                g.add_node(node, width=width, height=height)
        g.add_edge(src, tgt)
    return g


def make_graph_nodes(*nodes: str, width: float = 100, height: float = 50) -> nx.DiGraph:
    """Build a DiGraph with only nodes (no edges)."""
    g: nx.DiGraph = nx.DiGraph()
    for node in nodes:
        g.add_node(node, width=width, height=height)
    return g


def make_augmented_graph(edges: list[tuple[str, str]], layers: dict[str, int]) -> AugmentedGraph:
    """Build an AugmentedGraph from edges and explicit layers, nodes added in layer-dict order."""
    g: nx.DiGraph = nx.DiGraph()
    for nid in layers:
        g.add_node(nid, width=100, height=50)
    for src, tgt in edges:
        g.add_edge(src, tgt)
    layer_count = (max(layers.values()) + 1) if layers else 0
    return AugmentedGraph(graph=g, layers=layers, layer_count=layer_count)


def by_id(nodes: list[LayoutNode]) -> dict[str, LayoutNode]:
    return {n.id: n for n in nodes}


# ─── Cycle Removal Tests ──────────────────────────────────────────────────────


class TestCycleRemoval:
    def test_dag_has_no_reversed_edges(self):
        """A → B → C: nothing to reverse."""
        result = remove_cycles(make_graph(("A", "B"), ("B", "C")))
        assert result.reversed_edges == set()
        assert nx.is_directed_acyclic_graph(result.dag)

    def test_single_cycle_reversed(self):
        """A → B → A: exactly one edge reversed, result is a DAG."""
        result = remove_cycles(make_graph(("A", "B"), ("B", "A")))
        assert len(result.reversed_edges) == 1
        assert nx.is_directed_acyclic_graph(result.dag)

    def test_self_loop_removed(self):
        """A → A: counted as reversed and left out of the DAG."""
        result = remove_cycles(make_graph(("A", "A")))
        assert result.reversed_edges == {("A", "A")}
        assert result.dag.number_of_edges() == 0
        assert "A" in result.dag

    def test_complex_cycle(self):
        """A → B → C → A plus D → B: must become a DAG."""
        result = remove_cycles(make_graph(("A", "B"), ("B", "C"), ("C", "A"), ("D", "B")))
        assert nx.is_directed_acyclic_graph(result.dag)
        assert len(result.reversed_edges) >= 1

    def test_node_attributes_preserved(self):
        """Node sizes survive into the DAG copy."""
        result = remove_cycles(make_graph(("A", "B"), width=240, height=80))
        assert result.dag.nodes["A"] == {"width": 240, "height": 80}

    def test_empty_graph(self):
        result = remove_cycles(nx.DiGraph())
        assert result.dag.number_of_nodes() == 0
        assert result.reversed_edges == set()

    def test_result_defaults(self):
        result = CycleRemovalResult()
        assert result.reversed_edges == set()
        assert result.dag.number_of_nodes() == 0


class TestGreedyFasOrdering:
    def test_chain_ordering(self):
        """A → B → C: ordering follows the chain."""
        assert greedy_fas_ordering(make_graph(("A", "B"), ("B", "C"))) == ["A", "B", "C"]

    def test_single_node(self):
        assert greedy_fas_ordering(make_graph_nodes("A")) == ["A"]

    def test_empty_graph(self):
        assert greedy_fas_ordering(nx.DiGraph()) == []

    def test_all_nodes_present(self):
        ordering = greedy_fas_ordering(make_graph(("A", "B"), ("B", "C"), ("C", "A")))
        assert sorted(ordering) == ["A", "B", "C"]

    def test_cycle_tie_breaks_by_insertion_order(self):
        """In a symmetric cycle the first-inserted node is picked first."""
        assert greedy_fas_ordering(make_graph(("B", "A"), ("A", "B")))[0] == "B"
        assert greedy_fas_ordering(make_graph(("A", "B"), ("B", "A")))[0] == "A"


# ─── Layer Assignment Tests ───────────────────────────────────────────────────


class TestLayerAssignment:
    def test_chain_layers(self):
        la = LayerAssignment.assign(make_graph(("A", "B"), ("B", "C")))
        assert la.layers == {"A": 0, "B": 1, "C": 2}
        assert la.layer_count == 3

    def test_longest_path_wins(self):
        """A → C and A → B → C: C sits below B."""
        la = LayerAssignment.assign(make_graph(("A", "C"), ("A", "B"), ("B", "C")))
        assert la.layers["C"] == 2

    def test_isolated_nodes_in_layer_zero(self):
        la = LayerAssignment.assign(make_graph_nodes("A", "B"))
        assert la.layers == {"A": 0, "B": 0}
        assert la.layer_count == 1

    def test_empty(self):
        la = LayerAssignment.assign(nx.DiGraph())
        assert la.layers == {}
        assert la.layer_count == 0


# ─── Dummy Node Tests ─────────────────────────────────────────────────────────


class TestInsertDummyNodes:
    def test_long_edge_gets_chain(self):
        """A → C spanning two layers gets one dummy."""
        dag = make_graph(("A", "B"), ("B", "C"), ("A", "C"))
        aug = insert_dummy_nodes(dag, LayerAssignment.assign(dag))
        chain = aug.dummy_chains[("A", "C")]
        assert len(chain) == 1
        assert chain[0] == DummyNode(0, 0)
        assert aug.layers[chain[0]] == 1
        assert not aug.graph.has_edge("A", "C")

    def test_every_edge_spans_one_layer(self):
        dag = make_graph(("A", "B"), ("B", "C"), ("C", "D"), ("A", "D"))
        aug = insert_dummy_nodes(dag, LayerAssignment.assign(dag))
        for src, tgt in aug.graph.edges():
            assert aug.layers[tgt] - aug.layers[src] == 1

    def test_dummies_have_zero_size(self):
        dag = make_graph(("A", "B"), ("B", "C"), ("A", "C"))
        aug = insert_dummy_nodes(dag, LayerAssignment.assign(dag))
        dummy = aug.dummy_chains[("A", "C")][0]
        assert aug.graph.nodes[dummy] == {"width": 0.0, "height": 0.0}


# ─── Crossing Tests ───────────────────────────────────────────────────────────


class TestCountCrossings:
    def test_no_crossings_parallel(self):
        aug = make_augmented_graph([("A", "C"), ("B", "D")], {"A": 0, "B": 0, "C": 1, "D": 1})
        assert count_crossings([["A", "B"], ["C", "D"]], aug.graph) == 0

    def test_one_crossing(self):
        aug = make_augmented_graph([("A", "D"), ("B", "C")], {"A": 0, "B": 0, "C": 1, "D": 1})
        assert count_crossings([["A", "B"], ["C", "D"]], aug.graph) == 1
        assert count_crossings([["A", "B"], ["D", "C"]], aug.graph) == 0

    def test_empty_graph_no_crossings(self):
        assert count_crossings([], nx.DiGraph()) == 0


class TestMinimiseCrossings:
    def test_removes_simple_crossing(self):
        """A→D, B→C starting crossed: barycenter sweep uncrosses it."""
        aug = make_augmented_graph([("A", "D"), ("B", "C")], {"A": 0, "B": 0, "C": 1, "D": 1})
        result = minimise_crossings(aug)
        assert count_crossings(result, aug.graph) == 0

    def test_initial_order_is_insertion_order(self):
        """Without edges, each layer keeps insertion order."""
        aug = make_augmented_graph([], {"Z": 0, "A": 0, "M": 0})
        assert minimise_crossings(aug) == [["Z", "A", "M"]]

    def test_each_node_in_correct_layer(self):
        layers = {"A": 0, "B": 1, "C": 1, "D": 2}
        aug = make_augmented_graph([("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")], layers)
        result = minimise_crossings(aug)
        for node_id, layer in layers.items():
            assert node_id in result[layer]

    def test_empty_graph(self):
        aug = AugmentedGraph(graph=nx.DiGraph(), layers={}, layer_count=0)
        assert minimise_crossings(aug) == []


# ─── Coordinate Assignment Tests ──────────────────────────────────────────────


class TestAssignCoordinates:
    def test_layers_separated_by_rank_sep(self):
        aug = make_augmented_graph([("A", "B")], {"A": 0, "B": 1})
        nodes = by_id(assign_coordinates([["A"], ["B"]], aug, node_sep=20, rank_sep=30))
        assert nodes["A"].y == 0
        assert nodes["B"].y == 50 + 30

    def test_siblings_separated_by_node_sep(self):
        aug = make_augmented_graph([], {"A": 0, "B": 0})
        nodes = by_id(assign_coordinates([["A", "B"]], aug, node_sep=20, rank_sep=30))
        assert nodes["A"].x == 0
        assert nodes["B"].x == 100 + 20
        assert nodes["A"].y == nodes["B"].y

    def test_child_centred_under_parent(self):
        """A → B, A → C: A's centre sits over the middle of B and C."""
        aug = make_augmented_graph([("A", "B"), ("A", "C")], {"A": 0, "B": 1, "C": 1})
        nodes = by_id(assign_coordinates([["A"], ["B", "C"]], aug, node_sep=20, rank_sep=30))
        a_centre = nodes["A"].x + 50
        mid = (nodes["B"].x + 50 + nodes["C"].x + 50) / 2
        assert a_centre == mid

    def test_shorter_nodes_centred_in_layer(self):
        g: nx.DiGraph = nx.DiGraph()
        g.add_node("A", width=100, height=100)
        g.add_node("B", width=100, height=40)
        aug = AugmentedGraph(graph=g, layers={"A": 0, "B": 0}, layer_count=1)
        nodes = by_id(assign_coordinates([["A", "B"]], aug, node_sep=20, rank_sep=30))
        assert nodes["B"].y == 30

    def test_non_negative_coordinates(self):
        aug = make_augmented_graph([("A", "C"), ("B", "C"), ("C", "D")], {"A": 0, "B": 0, "C": 1, "D": 2})
        for n in assign_coordinates([["A", "B"], ["C"], ["D"]], aug, node_sep=20, rank_sep=30):
            assert n.x >= 0
            assert n.y >= 0

    def test_horizontal_transposes_axes(self):
        """Left-to-right: layers advance along x, sizes keep their orientation."""
        aug = make_augmented_graph([("A", "B")], {"A": 0, "B": 1})
        nodes = by_id(
            assign_coordinates([["A"], ["B"]], aug, node_sep=20, rank_sep=30, direction=LayoutDirection.HORIZONTAL)
        )
        assert nodes["A"].x == 0
        assert nodes["B"].x == 100 + 30
        assert nodes["A"].y == nodes["B"].y
        assert (nodes["B"].width, nodes["B"].height) == (100, 50)


# ─── Full Pipeline Tests ──────────────────────────────────────────────────────


class TestLayeredLayout:
    def test_empty_graph(self):
        assert layered_layout(nx.DiGraph(), 20, 30) == {}

    def test_dummies_excluded(self):
        g = make_graph(("A", "B"), ("B", "C"), ("A", "C"))
        placed = layered_layout(g, 20, 30)
        assert set(placed) == {"A", "B", "C"}

    def test_cycle_still_places_every_node(self):
        placed = layered_layout(make_graph(("A", "B"), ("B", "C"), ("C", "A")), 20, 30)
        assert set(placed) == {"A", "B", "C"}

    def test_no_overlaps(self):
        g = make_graph(("A", "B"), ("A", "C"), ("A", "D"), ("B", "E"), ("C", "E"))
        boxes = list(layered_layout(g, 20, 30).values())
        for i, a in enumerate(boxes):
            for b in boxes[i + 1:]:
                apart = (
                    a.x + a.width <= b.x
                    or b.x + b.width <= a.x
                    or a.y + a.height <= b.y
                    or b.y + b.height <= a.y
                )
                assert apart, f"{a.id} overlaps {b.id}"

    def test_deterministic(self):
        g1 = make_graph(("A", "B"), ("C", "B"), ("B", "D"), ("D", "A"))
        g2 = make_graph(("A", "B"), ("C", "B"), ("B", "D"), ("D", "A"))
        assert layered_layout(g1, 20, 30) == layered_layout(g2, 20, 30)

    def test_dummy_lookalike_names_are_kept(self):
        """A real node named like a placeholder is still placed."""
        g = make_graph(("a", "b"), ("b", "__dummy_0_0"), ("a", "__dummy_0_0"))
        placed = layered_layout(g, 20, 30)
        assert set(placed) == {"a", "b", "__dummy_0_0"}
        assert placed["__dummy_0_0"].layer == 2

    def test_tuple_node_ids(self):
        """Tagged ids keep an entity and a group with the same name apart."""
        g: nx.DiGraph = nx.DiGraph()
        g.add_node(("entity", "c"), width=100, height=50)
        g.add_node(("group", "c"), width=200, height=80)
        g.add_edge(("entity", "c"), ("group", "c"))
        placed = layered_layout(g, 20, 30)
        assert placed[("group", "c")].y == 50 + 30
        assert placed[("group", "c")].width == 200

    def test_plain_string_direction(self):
        g = make_graph(("A", "B"))
        placed = layered_layout(g, 20, 30, direction="horizontal")
        assert placed["B"].x == 100 + 30
        assert placed["A"].y == placed["B"].y
