"""Group forest: flat group list → parent/children maps and ancestor walks.

Group data is user-editable, so the builder normalises instead of rejecting:
unknown parents become roots and parent cycles are broken. The walks keep
their own visited-set guards regardless.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from metamap_layout.types import Entity, Group

logger = logging.getLogger(__name__)


@dataclass
class GroupTree:
    """Normalised group forest.

    Attributes:
        children: parent id → child group ids in input order; roots live under ``None``.
        group_map: group id → group (first occurrence of a duplicated id wins).
        parents: group id → effective parent id (``None`` for roots).
    """

    children: dict[str | None, list[str]] = field(default_factory=dict)
    group_map: dict[str, Group] = field(default_factory=dict)
    parents: dict[str, str | None] = field(default_factory=dict)

    @property
    def root_ids(self) -> list[str]:
        return self.children.get(None, [])

    def children_of(self, group_id: str) -> list[str]:
        return self.children.get(group_id, [])

    def root_of(self, group_id: str) -> str:
        """Outermost ancestor of ``group_id``; stops at the first repeated id."""
        current = group_id
        visited: set[str] = set()
        while True:
            visited.add(current)
            parent = self.parents.get(current)
            if parent is None or parent in visited:
                return current
            current = parent

    def depth_of(self, group_id: str) -> int:
        """Distance from the root group (0 for roots)."""
        depth = 0
        current = group_id
        visited = {current}
        while True:
            parent = self.parents.get(current)
            if parent is None or parent in visited:
                return depth
            visited.add(parent)
            current = parent
            depth += 1

    def count_entities(
        self,
        group_id: str,
        entities_by_group: Mapping[str, Sequence[Entity]],
        _visited: set[str] | None = None,
    ) -> int:
        """Entities directly in ``group_id`` plus those in every nested group."""
        visited = _visited if _visited is not None else set()
        if group_id in visited:
            return 0
        visited.add(group_id)
        total = len(entities_by_group.get(group_id, ()))
        for child_id in self.children_of(group_id):
            total += self.count_entities(child_id, entities_by_group, visited)
        return total


def _break_cycles(order: list[str], parents: dict[str, str | None]) -> None:
    """Promote one member of every parent cycle to a root, in place.

    The promoted member is the one that appears first in ``order`` (input order),
    so the choice does not depend on where the walk started.
    """
    index = {gid: i for i, gid in enumerate(order)}
    state: dict[str, int] = {}  # 1 = on the current walk, 2 = settled

    for start in order:
        if start in state:
            continue
        path: list[str] = []
        current: str | None = start
        while current is not None and current not in state:
            state[current] = 1
            path.append(current)
            current = parents[current]

        if current is not None and state[current] == 1:
            cycle = path[path.index(current):]
            breaker = min(cycle, key=index.__getitem__)
            logger.warning("Group parent cycle %s; treating %r as a root", " -> ".join(cycle), breaker)
            parents[breaker] = None

        for gid in path:
            state[gid] = 2


def build_group_tree(groups: Iterable[Group]) -> GroupTree:
    """Build the normalised forest from a flat group collection."""
    tree = GroupTree()
    for group in groups:
        if group.id in tree.group_map:
            logger.debug("Ignoring duplicate group id %r", group.id)
            continue
        tree.group_map[group.id] = group

    order = list(tree.group_map)
    for gid in order:
        parent = tree.group_map[gid].parent_id
        if parent is not None and parent not in tree.group_map:
            logger.debug("Group %r has unknown parent %r; treating it as a root", gid, parent)
            parent = None
        tree.parents[gid] = parent

    _break_cycles(order, tree.parents)

    for gid in order:
        tree.children.setdefault(tree.parents[gid], []).append(gid)

    return tree
