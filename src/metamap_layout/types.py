"""Layout types shared by the engine, the cache and the presentation helpers.

Inputs (``Entity``, ``Group``, ``LayoutInput``) are read-only snapshots owned
by the schema subsystem. Outputs (``OrganizerNode``, ``EntityNode``,
``LayoutEdge``, ``LayoutResult``) are rebuilt on every engine invocation.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Literal, Union

# ─── Direction ────────────────────────────────────────────────────────────────


class LayoutDirection(str, Enum):
    """Rank direction applied to every layout pass of one invocation."""

    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"

    @classmethod
    def _missing_(cls, value: object) -> LayoutDirection | None:
        # Rank-direction aliases used by the document store.
        aliases = {"TB": cls.VERTICAL, "LR": cls.HORIZONTAL, "VERTICAL": cls.VERTICAL, "HORIZONTAL": cls.HORIZONTAL}
        if isinstance(value, str):
            return aliases.get(value.upper())
        return None


# ─── Input Model ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FieldDef:
    """A named, typed field on an entity."""

    name: str
    type: str = "string"
    label: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldDef:
        return cls(
            name=data["name"],
            type=data.get("type", "string"),
            label=data.get("label", ""),
        )


@dataclass(frozen=True)
class ConnectionPoint:
    """A named attachment point ("port") that edges can terminate at."""

    id: str
    polarity: str = "bidirectional"
    label: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConnectionPoint:
        return cls(
            id=data["id"],
            polarity=data.get("polarity", data.get("portType", "bidirectional")),
            label=data.get("label", ""),
        )


@dataclass(frozen=True)
class Relationship:
    """A suggested relationship from the owning entity to ``target_type``."""

    target_type: str
    from_point_id: str | None = None
    to_point_id: str | None = None
    label: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Relationship:
        return cls(
            target_type=data.get("constructType", data.get("target_type", "")),
            from_point_id=data.get("fromPortId", data.get("from_point_id")),
            to_point_id=data.get("toPortId", data.get("to_point_id")),
            label=data.get("label"),
        )


@dataclass(frozen=True)
class Entity:
    """A construct schema: one node in the diagram, identified by ``type``."""

    type: str
    name: str = ""
    color: str = "#000000"
    fields: tuple[FieldDef, ...] = ()
    points: tuple[ConnectionPoint, ...] = ()
    group_id: str | None = None
    relationships: tuple[Relationship, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Entity:
        """Build an entity from the document-store shape (camelCase keys)."""
        return cls(
            type=data["type"],
            name=data.get("displayName", data.get("name", "")),
            color=data.get("color", "#000000"),
            fields=tuple(FieldDef.from_dict(f) for f in data.get("fields") or ()),
            points=tuple(ConnectionPoint.from_dict(p) for p in data.get("ports") or ()),
            group_id=data.get("groupId") or None,
            relationships=tuple(Relationship.from_dict(r) for r in data.get("suggestedRelated") or ()),
        )


@dataclass(frozen=True)
class Group:
    """A named container of entities and/or other groups."""

    id: str
    name: str = ""
    color: str | None = None
    parent_id: str | None = None
    description: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Group:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            color=data.get("color"),
            parent_id=data.get("parentId") or None,
            description=data.get("description"),
        )


@dataclass(frozen=True)
class LayoutInput:
    """One snapshot of everything the engine reads.

    ``expanded_group_ids=None`` means the collapse feature is inactive and
    every group counts as expanded. An empty set means every group is
    collapsed.
    """

    entities: tuple[Entity, ...] = ()
    groups: tuple[Group, ...] = ()
    expanded_entity_ids: frozenset[str] | None = None
    expanded_group_ids: frozenset[str] | None = None
    direction: LayoutDirection = LayoutDirection.VERTICAL

    def __post_init__(self) -> None:
        # Accept "horizontal", "LR" and friends as well as the enum.
        object.__setattr__(self, "direction", LayoutDirection(self.direction))

    def is_entity_expanded(self, entity_type: str) -> bool:
        return self.expanded_entity_ids is not None and entity_type in self.expanded_entity_ids

    def is_group_collapsed(self, group_id: str) -> bool:
        return self.expanded_group_ids is not None and group_id not in self.expanded_group_ids


# ─── Output Model ─────────────────────────────────────────────────────────────


@dataclass
class Point:
    """A 2D point in pixels."""

    x: float
    y: float


@dataclass
class OrganizerNode:
    """A group's rendered container.

    ``position`` is relative to the parent organizer, or absolute when
    ``parent_id`` is None.
    """

    id: str
    position: Point
    width: float
    height: float
    group_id: str
    label: str
    color: str
    collapsed: bool
    depth: int
    child_count: int
    parent_id: str | None = None
    parent_group_label: str | None = None
    description: str | None = None
    kind: Literal["organizer"] = "organizer"


@dataclass
class EntityNode:
    """An entity placed inside its organizer."""

    id: str
    position: Point
    entity: Entity
    expanded: bool
    parent_id: str | None = None
    kind: Literal["entity"] = "entity"


PositionedNode = Union[OrganizerNode, EntityNode]


@dataclass(frozen=True)
class RelationshipRef:
    """Points back at ``entity.relationships[index]`` of the source entity."""

    entity_type: str
    index: int


@dataclass
class LayoutEdge:
    """A directed edge between two entities (or, after remapping, organizers)."""

    id: str
    source: str
    target: str
    source_handle: str
    target_handle: str
    origin: RelationshipRef
    label: str | None = None
    bundle_count: int = 1


@dataclass
class LayoutResult:
    """Engine output: nodes in parent-before-child order, plus edges."""

    nodes: list[PositionedNode] = field(default_factory=list)
    edges: list[LayoutEdge] = field(default_factory=list)

    def node(self, node_id: str) -> PositionedNode | None:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-ready form for the rendering surface."""
        return {
            "nodes": [asdict(n) for n in self.nodes],
            "edges": [asdict(e) for e in self.edges],
        }
