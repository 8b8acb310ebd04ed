"""Memoising wrapper around ``compute_layout`` with explicit invalidation."""

from __future__ import annotations

import logging

from metamap_layout.config import LayoutConfig
from metamap_layout.engine import compute_layout
from metamap_layout.types import Entity, Group, LayoutDirection, LayoutInput, LayoutResult

logger = logging.getLogger(__name__)

SnapshotKey = tuple[tuple[Entity, ...], tuple[Group, ...], LayoutDirection]


class LayoutCache:
    """Recomputes only when the entity/group snapshot changes or on ``invalidate()``.

    Expansion state is not part of the key: toggling a group or entity reuses
    the last result, and the presentation layer resizes or hides nodes in
    place from geometry that is already there.
    """

    def __init__(self, config: LayoutConfig | None = None) -> None:
        self.config = config
        self.version = 0
        self.compute_count = 0
        self._key: tuple[SnapshotKey, int] | None = None
        self._result: LayoutResult | None = None

    @staticmethod
    def snapshot_key(layout_input: LayoutInput) -> SnapshotKey:
        return (tuple(layout_input.entities), tuple(layout_input.groups), layout_input.direction)

    def invalidate(self) -> None:
        """Force the next ``get`` to recompute (the "re-layout" request)."""
        self.version += 1
        logger.debug("Layout cache invalidated (version %d)", self.version)

    def get(self, layout_input: LayoutInput) -> LayoutResult:
        key = (self.snapshot_key(layout_input), self.version)
        if self._result is not None and self._key == key:
            return self._result

        self._result = compute_layout(layout_input, self.config)
        self._key = key
        self.compute_count += 1
        return self._result
