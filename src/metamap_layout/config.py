"""Layout geometry constants.

Every value is in pixels unless stated otherwise. ``LayoutConfig`` bundles
them so callers can tune a single invocation with ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass

# Entity boxes.
ENTITY_WIDTH: float = 240
COLLAPSED_ENTITY_HEIGHT: float = 80

# Space between an organizer border and its content (top leaves room for a header).
GROUP_PADDING_X: float = 40
GROUP_PADDING_TOP: float = 60
GROUP_PADDING_BOTTOM: float = 40

# Chip size of a collapsed organizer.
COLLAPSED_GROUP_WIDTH: float = 180
COLLAPSED_GROUP_HEIGHT: float = 44

# Expanded organizer with no content.
EMPTY_GROUP_WIDTH: float = 240
EMPTY_GROUP_HEIGHT: float = 160

# Sibling / rank separation inside a group and between top-level nodes.
GROUP_NODE_SEP: float = 20
GROUP_RANK_SEP: float = 30
TOP_NODE_SEP: float = 80
TOP_RANK_SEP: float = 60

# Grid fallback for sparse top-level graphs. The threshold is a count of
# ungrouped entities, not pixels.
GRID_THRESHOLD: int = 6
GRID_COLUMNS: int = 4
GRID_CELL_WIDTH: float = ENTITY_WIDTH + 80
GRID_CELL_HEIGHT: float = 150
GRID_TOP_GAP: float = 100

DEFAULT_GROUP_COLOR = "#6366f1"
UNGROUPED_LABEL = "Ungrouped"


@dataclass(frozen=True)
class LayoutConfig:
    """Tunable geometry for one engine invocation."""

    entity_width: float = ENTITY_WIDTH
    collapsed_entity_height: float = COLLAPSED_ENTITY_HEIGHT
    group_padding_x: float = GROUP_PADDING_X
    group_padding_top: float = GROUP_PADDING_TOP
    group_padding_bottom: float = GROUP_PADDING_BOTTOM
    collapsed_group_width: float = COLLAPSED_GROUP_WIDTH
    collapsed_group_height: float = COLLAPSED_GROUP_HEIGHT
    empty_group_width: float = EMPTY_GROUP_WIDTH
    empty_group_height: float = EMPTY_GROUP_HEIGHT
    group_node_sep: float = GROUP_NODE_SEP
    group_rank_sep: float = GROUP_RANK_SEP
    top_node_sep: float = TOP_NODE_SEP
    top_rank_sep: float = TOP_RANK_SEP
    grid_threshold: int = GRID_THRESHOLD
    grid_columns: int = GRID_COLUMNS
    grid_cell_width: float = GRID_CELL_WIDTH
    grid_cell_height: float = GRID_CELL_HEIGHT
    grid_top_gap: float = GRID_TOP_GAP
    default_group_color: str = DEFAULT_GROUP_COLOR
    ungrouped_label: str = UNGROUPED_LABEL


DEFAULT_CONFIG = LayoutConfig()
