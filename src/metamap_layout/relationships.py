"""Relationship extraction: entity relationship declarations → deduplicated edges."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from metamap_layout.types import Entity, LayoutEdge, RelationshipRef

logger = logging.getLogger(__name__)

# Handle used when a relationship names no connection point, or one the entity lacks.
UNASSIGNED_HANDLE = "meta-connect"


def edge_id(source: str, source_handle: str, target: str, target_handle: str) -> str:
    return f"meta:{source}:{source_handle}->{target}:{target_handle}"


def resolve_handle(point_id: str | None, known_points: set[str]) -> str:
    """The declared point id if the entity has it, otherwise ``UNASSIGNED_HANDLE``."""
    if point_id and point_id in known_points:
        return point_id
    return UNASSIGNED_HANDLE


def extract_edges(entities: Iterable[Entity]) -> list[LayoutEdge]:
    """Derive one edge per distinct (source, handle, target, handle) tuple.

    Self-relationships and relationships to unknown entity types are dropped.
    Edges come out in declaration order; the first relationship resolving to a
    given tuple wins.
    """
    entities = list(entities)
    points: dict[str, set[str]] = {}
    for entity in entities:
        points.setdefault(entity.type, {p.id for p in entity.points})

    edges: list[LayoutEdge] = []
    seen: set[str] = set()

    for entity in entities:
        for index, rel in enumerate(entity.relationships):
            if rel.target_type == entity.type:
                continue
            if rel.target_type not in points:
                logger.debug("Dropping relationship %s[%d]: unknown target %r", entity.type, index, rel.target_type)
                continue

            source_handle = resolve_handle(rel.from_point_id, points[entity.type])
            target_handle = resolve_handle(rel.to_point_id, points[rel.target_type])

            eid = edge_id(entity.type, source_handle, rel.target_type, target_handle)
            if eid in seen:
                continue
            seen.add(eid)

            edges.append(
                LayoutEdge(
                    id=eid,
                    source=entity.type,
                    target=rel.target_type,
                    source_handle=source_handle,
                    target_handle=target_handle,
                    origin=RelationshipRef(entity_type=entity.type, index=index),
                    label=rel.label or None,
                )
            )

    return edges
