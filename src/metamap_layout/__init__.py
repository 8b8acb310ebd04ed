"""Hierarchical auto-layout for construct schema diagrams."""

from metamap_layout.cache import LayoutCache
from metamap_layout.config import DEFAULT_CONFIG, LayoutConfig
from metamap_layout.engine import UNGROUPED_GROUP_ID, compute_layout, estimate_entity_height, organizer_id
from metamap_layout.groups import GroupTree, build_group_tree
from metamap_layout.presentation import visible_edges
from metamap_layout.relationships import UNASSIGNED_HANDLE, extract_edges
from metamap_layout.types import (
    ConnectionPoint,
    Entity,
    EntityNode,
    FieldDef,
    Group,
    LayoutDirection,
    LayoutEdge,
    LayoutInput,
    LayoutResult,
    OrganizerNode,
    Point,
    PositionedNode,
    Relationship,
    RelationshipRef,
)

__all__ = [
    "DEFAULT_CONFIG",
    "UNASSIGNED_HANDLE",
    "UNGROUPED_GROUP_ID",
    "ConnectionPoint",
    "Entity",
    "EntityNode",
    "FieldDef",
    "Group",
    "GroupTree",
    "LayoutCache",
    "LayoutConfig",
    "LayoutDirection",
    "LayoutEdge",
    "LayoutInput",
    "LayoutResult",
    "OrganizerNode",
    "Point",
    "PositionedNode",
    "Relationship",
    "RelationshipRef",
    "build_group_tree",
    "compute_layout",
    "estimate_entity_height",
    "extract_edges",
    "organizer_id",
    "visible_edges",
]
