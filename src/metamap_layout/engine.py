"""Hierarchical auto-layout for entities nested in an arbitrarily deep group forest.

Pipeline:
  1. Relationship extraction and group tree building
  2. Recursive group layout (post-order: child bounds are known before a
     parent is sized)
  3. Top-level arrangement of root groups and the synthetic ungrouped bucket,
     whose members fall back to a grid when the graph is sparse
  4. Assembly of positioned nodes (parents before children) and edges

``compute_layout`` is pure: it reads one ``LayoutInput`` snapshot and returns a
fresh ``LayoutResult``. Collapsed groups only change their own organizer size;
everything inside them is still laid out and emitted, so expanding or
collapsing never needs a re-layout.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

import networkx as nx

from metamap_layout.config import DEFAULT_CONFIG, LayoutConfig
from metamap_layout.groups import GroupTree, build_group_tree
from metamap_layout.relationships import extract_edges
from metamap_layout.sugiyama import layered_layout
from metamap_layout.types import (
    Entity,
    EntityNode,
    LayoutEdge,
    LayoutInput,
    LayoutResult,
    OrganizerNode,
    Point,
    PositionedNode,
)

logger = logging.getLogger(__name__)

# Id of the synthetic container holding every entity without a (known) group.
UNGROUPED_GROUP_ID = "__ungrouped__"
ORGANIZER_PREFIX = "group:"

# Expanded entity height: header + one row per field/point + section headers + footer.
HEADER_HEIGHT = 52
ROW_HEIGHT = 20
SECTION_HEIGHT = 28
FOOTER_HEIGHT = 16


def organizer_id(group_id: str) -> str:
    return f"{ORGANIZER_PREFIX}{group_id}"


def estimate_entity_height(entity: Entity, expanded: bool, config: LayoutConfig = DEFAULT_CONFIG) -> float:
    """Deterministic box height for an entity."""
    if not expanded:
        return config.collapsed_entity_height
    height = HEADER_HEIGHT + FOOTER_HEIGHT
    for rows in (len(entity.fields), len(entity.points)):
        if rows:
            height += SECTION_HEIGHT + rows * ROW_HEIGHT
    return float(height)


# ─── Group Bounds ─────────────────────────────────────────────────────────────

# Constraint-graph node keys. Tagging keeps an entity type and a group id with
# the same text apart inside one graph.
NodeKey = tuple[str, str]


def _entity_key(entity_type: str) -> NodeKey:
    return ("entity", entity_type)


def _group_key(group_id: str) -> NodeKey:
    return ("group", group_id)


@dataclass
class Box:
    """Top-left corner and size."""

    x: float
    y: float
    width: float
    height: float


@dataclass
class GroupBounds:
    """A group's exported size plus the relative placement of its members.

    ``width``/``height`` are the chip size when the group is collapsed, but
    ``entity_positions`` and ``child_positions`` are always the full layout.
    """

    width: float
    height: float
    entity_positions: dict[str, Point] = field(default_factory=dict)
    child_positions: dict[str, Box] = field(default_factory=dict)


@dataclass
class _LayoutContext:
    layout_input: LayoutInput
    config: LayoutConfig
    tree: GroupTree
    entities_by_group: dict[str, list[Entity]]
    edges: list[LayoutEdge]
    ungrouped_id: str = UNGROUPED_GROUP_ID
    bounds: dict[str, GroupBounds] = field(default_factory=dict)

    def entity_size(self, entity: Entity) -> tuple[float, float]:
        expanded = self.layout_input.is_entity_expanded(entity.type)
        return self.config.entity_width, estimate_entity_height(entity, expanded, self.config)


def layout_group(group_id: str, ctx: _LayoutContext, _visited: set[str] | None = None) -> GroupBounds:
    """Lay out ``group_id`` and every descendant, children first.

    The result is also recorded in ``ctx.bounds`` for assembly.
    """
    visited = _visited if _visited is not None else set()
    visited.add(group_id)

    child_bounds: dict[str, GroupBounds] = {}
    for child_id in ctx.tree.children_of(group_id):
        if child_id in visited:
            logger.warning("Group %r reached twice while laying out %r; skipping", child_id, group_id)
            continue
        child_bounds[child_id] = layout_group(child_id, ctx, visited)

    bounds = _arrange_members(
        ctx.entities_by_group.get(group_id, []),
        child_bounds,
        ctx,
        collapsed=ctx.layout_input.is_group_collapsed(group_id),
    )
    ctx.bounds[group_id] = bounds
    return bounds


def _arrange_members(
    entities: list[Entity],
    child_bounds: dict[str, GroupBounds],
    ctx: _LayoutContext,
    collapsed: bool,
) -> GroupBounds:
    config = ctx.config

    if not entities and not child_bounds:
        if collapsed:
            return GroupBounds(config.collapsed_group_width, config.collapsed_group_height)
        return GroupBounds(config.empty_group_width, config.empty_group_height)

    g: nx.DiGraph = nx.DiGraph()
    for entity in entities:
        width, height = ctx.entity_size(entity)
        g.add_node(_entity_key(entity.type), width=width, height=height)
    for child_id, cb in child_bounds.items():
        g.add_node(_group_key(child_id), width=cb.width, height=cb.height)

    # Intra-group edges only; cross-group edges belong to the level above.
    members = {e.type for e in entities}
    for edge in ctx.edges:
        if edge.source in members and edge.target in members:
            g.add_edge(_entity_key(edge.source), _entity_key(edge.target))

    placed = layered_layout(g, config.group_node_sep, config.group_rank_sep, ctx.layout_input.direction)

    min_x = min(n.x for n in placed.values())
    min_y = min(n.y for n in placed.values())
    max_x = max(n.x + n.width for n in placed.values())
    max_y = max(n.y + n.height for n in placed.values())

    def shifted(key: NodeKey) -> Point:
        n = placed[key]
        return Point(n.x - min_x + config.group_padding_x, n.y - min_y + config.group_padding_top)

    bounds = GroupBounds(
        width=(max_x - min_x) + config.group_padding_x * 2,
        height=(max_y - min_y) + config.group_padding_top + config.group_padding_bottom,
    )
    for entity in entities:
        bounds.entity_positions[entity.type] = shifted(_entity_key(entity.type))
    for child_id, cb in child_bounds.items():
        p = shifted(_group_key(child_id))
        bounds.child_positions[child_id] = Box(p.x, p.y, cb.width, cb.height)

    if collapsed:
        bounds.width = config.collapsed_group_width
        bounds.height = config.collapsed_group_height
    return bounds


def _grid_members(entities: list[Entity], ctx: _LayoutContext, collapsed: bool) -> GroupBounds:
    """Fixed-column grid of entities, padded like any group's content."""
    config = ctx.config
    bounds = GroupBounds(0.0, 0.0)

    y = 0.0
    right = 0.0
    bottom = 0.0
    for row_start in range(0, len(entities), config.grid_columns):
        tallest = 0.0
        for col, entity in enumerate(entities[row_start:row_start + config.grid_columns]):
            width, height = ctx.entity_size(entity)
            x = col * config.grid_cell_width
            bounds.entity_positions[entity.type] = Point(x + config.group_padding_x, y + config.group_padding_top)
            right = max(right, x + width)
            tallest = max(tallest, height)
        bottom = y + tallest
        y += max(config.grid_cell_height, tallest + config.group_rank_sep)

    if collapsed:
        bounds.width = config.collapsed_group_width
        bounds.height = config.collapsed_group_height
    else:
        bounds.width = right + config.group_padding_x * 2
        bounds.height = bottom + config.group_padding_top + config.group_padding_bottom
    return bounds


def layout_ungrouped(ungrouped: list[Entity], ctx: _LayoutContext, use_grid: bool) -> GroupBounds:
    """Lay out the synthetic bucket the way a real group's members are laid out."""
    collapsed = ctx.layout_input.is_group_collapsed(ctx.ungrouped_id)
    if use_grid:
        bounds = _grid_members(ungrouped, ctx, collapsed)
    else:
        bounds = _arrange_members(ungrouped, {}, ctx, collapsed)
    ctx.bounds[ctx.ungrouped_id] = bounds
    return bounds


# ─── Top-Level Arrangement ────────────────────────────────────────────────────


def _top_level_connections(ctx: _LayoutContext, entity_group: dict[str, str]) -> list[tuple[NodeKey, NodeKey]]:
    """Distinct edges between root organizers and individual ungrouped entities."""

    def top_node(entity_type: str) -> NodeKey:
        group_id = entity_group.get(entity_type)
        if group_id is None:
            return _entity_key(entity_type)
        return _group_key(ctx.tree.root_of(group_id))

    connections: dict[tuple[NodeKey, NodeKey], None] = {}
    for edge in ctx.edges:
        src, tgt = top_node(edge.source), top_node(edge.target)
        if src != tgt:
            connections.setdefault((src, tgt))
    return list(connections)


def _arrange_top_level(
    ctx: _LayoutContext,
    ungrouped: list[Entity],
    entity_group: dict[str, str],
) -> dict[str, Box]:
    """Absolute boxes for every root group and the ungrouped bucket, by group id."""
    config = ctx.config
    root_ids = ctx.tree.root_ids
    connections = _top_level_connections(ctx, entity_group)

    # Density is judged on individual ungrouped entities, before they are
    # gathered into the bucket.
    total_nodes = len(root_ids) + len(ungrouped)
    use_grid = len(ungrouped) > config.grid_threshold and len(connections) < total_nodes

    bucket = _group_key(ctx.ungrouped_id)
    if ungrouped:
        layout_ungrouped(ungrouped, ctx, use_grid)

    g: nx.DiGraph = nx.DiGraph()
    for root_id in root_ids:
        rb = ctx.bounds[root_id]
        g.add_node(_group_key(root_id), width=rb.width, height=rb.height)
    if ungrouped and not use_grid:
        ub = ctx.bounds[ctx.ungrouped_id]
        g.add_node(bucket, width=ub.width, height=ub.height)
    for src, tgt in connections:
        if src[0] == "entity" or tgt[0] == "entity":
            if use_grid:
                continue
            src = bucket if src[0] == "entity" else src
            tgt = bucket if tgt[0] == "entity" else tgt
        if src != tgt:
            g.add_edge(src, tgt)

    placed = layered_layout(g, config.top_node_sep, config.top_rank_sep, ctx.layout_input.direction)
    boxes = {key[1]: Box(n.x, n.y, n.width, n.height) for key, n in placed.items()}

    if ungrouped and use_grid:
        logger.debug(
            "Grid fallback: %d ungrouped entities, %d top-level connections for %d nodes",
            len(ungrouped),
            len(connections),
            total_nodes,
        )
        lowest = max((b.y + b.height for b in boxes.values()), default=None)
        ub = ctx.bounds[ctx.ungrouped_id]
        y = 0.0 if lowest is None else lowest + config.grid_top_gap
        boxes[ctx.ungrouped_id] = Box(0.0, y, ub.width, ub.height)

    return boxes


# ─── Assembly ─────────────────────────────────────────────────────────────────


def _emit_group(
    group_id: str,
    parent_node_id: str | None,
    position: Point,
    ctx: _LayoutContext,
    nodes: list[PositionedNode],
    visited: set[str],
) -> None:
    """Append the organizer, its entities, then its child groups (recursively)."""
    if group_id in visited:
        return
    visited.add(group_id)

    tree = ctx.tree
    group = tree.group_map[group_id]
    bounds = ctx.bounds[group_id]
    node_id = organizer_id(group_id)
    parent_group_id = tree.parents.get(group_id)
    parent_label = None
    if parent_group_id is not None:
        parent_label = tree.group_map[parent_group_id].name or parent_group_id

    nodes.append(
        OrganizerNode(
            id=node_id,
            position=position,
            width=bounds.width,
            height=bounds.height,
            group_id=group_id,
            label=group.name or group_id,
            color=group.color or ctx.config.default_group_color,
            collapsed=ctx.layout_input.is_group_collapsed(group_id),
            depth=tree.depth_of(group_id),
            child_count=tree.count_entities(group_id, ctx.entities_by_group),
            parent_id=parent_node_id,
            parent_group_label=parent_label,
            description=group.description,
        )
    )
    _emit_entities(ctx.entities_by_group.get(group_id, []), bounds, node_id, ctx, nodes)

    for child_id, box in bounds.child_positions.items():
        _emit_group(child_id, node_id, Point(box.x, box.y), ctx, nodes, visited)


def _emit_entities(
    entities: list[Entity],
    bounds: GroupBounds,
    parent_node_id: str,
    ctx: _LayoutContext,
    nodes: list[PositionedNode],
) -> None:
    for entity in entities:
        pos = bounds.entity_positions[entity.type]
        nodes.append(
            EntityNode(
                id=entity.type,
                position=Point(pos.x, pos.y),
                entity=entity,
                expanded=ctx.layout_input.is_entity_expanded(entity.type),
                parent_id=parent_node_id,
            )
        )


def _emit_ungrouped(ctx: _LayoutContext, ungrouped: list[Entity], box: Box, nodes: list[PositionedNode]) -> None:
    """Append the synthetic bucket organizer followed by its entities."""
    config = ctx.config
    bounds = ctx.bounds[ctx.ungrouped_id]
    node_id = organizer_id(ctx.ungrouped_id)
    nodes.append(
        OrganizerNode(
            id=node_id,
            position=Point(box.x, box.y),
            width=bounds.width,
            height=bounds.height,
            group_id=ctx.ungrouped_id,
            label=config.ungrouped_label,
            color=config.default_group_color,
            collapsed=ctx.layout_input.is_group_collapsed(ctx.ungrouped_id),
            depth=0,
            child_count=len(ungrouped),
        )
    )
    _emit_entities(ungrouped, bounds, node_id, ctx, nodes)


# ─── Entry Point ──────────────────────────────────────────────────────────────


def _unique_entities(entities: Iterable[Entity]) -> list[Entity]:
    seen: dict[str, Entity] = {}
    for entity in entities:
        if entity.type in seen:
            logger.debug("Ignoring duplicate entity type %r", entity.type)
            continue
        seen[entity.type] = entity
    return list(seen.values())


def _ungrouped_group_id(tree: GroupTree) -> str:
    """The bucket's group id, suffixed when a real group already owns the default."""
    group_id = UNGROUPED_GROUP_ID
    suffix = 1
    while group_id in tree.group_map:
        suffix += 1
        group_id = f"{UNGROUPED_GROUP_ID}{suffix}"
    if group_id != UNGROUPED_GROUP_ID:
        logger.warning("Group id %r is reserved; ungrouped entities go to %r", UNGROUPED_GROUP_ID, group_id)
    return group_id


def _drop_organizer_clashes(entities: list[Entity], organizer_ids: set[str]) -> list[Entity]:
    """Entity ids share a namespace with organizer ids in the output."""
    kept: list[Entity] = []
    for entity in entities:
        if entity.type in organizer_ids:
            logger.warning("Ignoring entity %r: its type clashes with an organizer id", entity.type)
            continue
        kept.append(entity)
    return kept


def compute_layout(layout_input: LayoutInput, config: LayoutConfig | None = None) -> LayoutResult:
    """Compute positioned nodes and edges for one input snapshot.

    Every organizer and entity is emitted whatever its collapsed state; hiding
    collapsed content and remapping edges onto visible organizers is left to
    the presentation layer (see ``metamap_layout.presentation``).
    """
    config = config or DEFAULT_CONFIG
    entities = _unique_entities(layout_input.entities)
    if not entities:
        return LayoutResult()

    tree = build_group_tree(layout_input.groups)
    ungrouped_id = _ungrouped_group_id(tree)
    organizer_ids = {organizer_id(group_id) for group_id in tree.group_map}
    organizer_ids.add(organizer_id(ungrouped_id))
    entities = _drop_organizer_clashes(entities, organizer_ids)
    if not entities:
        return LayoutResult()

    edges = extract_edges(entities)

    entities_by_group: dict[str, list[Entity]] = {}
    entity_group: dict[str, str] = {}
    ungrouped: list[Entity] = []
    for entity in entities:
        if entity.group_id is not None and entity.group_id in tree.group_map:
            entities_by_group.setdefault(entity.group_id, []).append(entity)
            entity_group[entity.type] = entity.group_id
        else:
            ungrouped.append(entity)

    ctx = _LayoutContext(
        layout_input=layout_input,
        config=config,
        tree=tree,
        entities_by_group=entities_by_group,
        edges=edges,
        ungrouped_id=ungrouped_id,
    )

    visited: set[str] = set()
    for root_id in tree.root_ids:
        layout_group(root_id, ctx, visited)

    boxes = _arrange_top_level(ctx, ungrouped, entity_group)

    nodes: list[PositionedNode] = []
    emitted: set[str] = set()
    for root_id in tree.root_ids:
        box = boxes[root_id]
        _emit_group(root_id, None, Point(box.x, box.y), ctx, nodes, emitted)
    if ungrouped:
        _emit_ungrouped(ctx, ungrouped, boxes[ungrouped_id], nodes)

    logger.debug(
        "Laid out %d entities in %d groups (%d ungrouped), %d edges",
        len(entities),
        len(tree.group_map),
        len(ungrouped),
        len(edges),
    )
    return LayoutResult(nodes=nodes, edges=edges)
