"""
Hierarchical Level Assigner
===========================
Assigns an integer level to every node of a directed graph.

Two modes are supported:
    * leaves: nodes without outgoing edges get level 0 and every parent sits
      one level above its highest child (node height).
    * roots: nodes without incoming edges get level 0 and every child sits one
      level below its deepest parent (longest path from a root).

Cycles are broken by a depth-first search with an explicit in-progress marker.
An edge pointing at a node that is still in progress closes a cycle and is
skipped, so both modes always terminate. Self loops are ignored.
"""
from __future__ import annotations

from collections import deque
import logging
from typing import Dict, Hashable, Iterable, List, Sequence, Tuple

logger = logging.getLogger(__name__)

LevelMap = Dict[Hashable, int]
EdgePair = Tuple[Hashable, Hashable]

_WHITE, _GREY, _BLACK = 0, 1, 2


def _children_of(node_ids: Sequence[Hashable], edges: Iterable[EdgePair]) -> Dict[Hashable, List[Hashable]]:
    known = set(node_ids)
    children: Dict[Hashable, Dict[Hashable, None]] = {node_id: {} for node_id in node_ids}
    for from_id, to_id in edges:
        if from_id == to_id or from_id not in known or to_id not in known:
            continue
        children[from_id][to_id] = None
    return {node_id: list(targets) for node_id, targets in children.items()}


def _break_cycles(
    node_ids: Sequence[Hashable],
    children: Dict[Hashable, List[Hashable]],
) -> Tuple[Dict[Hashable, List[Hashable]], List[Hashable], int]:
    """
    Depth-first search that drops the edges closing a cycle.

    The search starts from the sources (no incoming edge) and then from any
    node not reached yet, so purely cyclic components are covered too.

    Returns:
        The acyclic child lists, the nodes in DFS finishing order (children
        before parents) and the number of dropped edges.
    """
    has_parent = {target for targets in children.values() for target in targets}
    starts = [n for n in node_ids if n not in has_parent] + [n for n in node_ids if n in has_parent]

    color = {node_id: _WHITE for node_id in node_ids}
    kept: Dict[Hashable, List[Hashable]] = {node_id: [] for node_id in node_ids}
    finished: List[Hashable] = []
    dropped = 0

    for start in starts:
        if color[start] != _WHITE:
            continue
        color[start] = _GREY
        stack = [(start, iter(children[start]))]
        while stack:
            node_id, remaining = stack[-1]
            advanced = False
            for child in remaining:
                state = color[child]
                if state == _GREY:
                    dropped += 1
                    continue
                kept[node_id].append(child)
                if state == _WHITE:
                    color[child] = _GREY
                    stack.append((child, iter(children[child])))
                    advanced = True
                    break
            if not advanced:
                color[node_id] = _BLACK
                finished.append(node_id)
                stack.pop()

    if dropped:
        logger.debug(f"Ignored {dropped} cycle edge(s) while assigning levels.")
    return kept, finished, dropped


def assign_levels_leaves(node_ids: Sequence[Hashable], edges: Iterable[EdgePair]) -> LevelMap:
    """
    Level = height above the leaves.

    Args:
        node_ids: All nodes to level.
        edges: Directed (from, to) pairs. Pairs with unknown endpoints are ignored.

    Returns:
        Level per node; isolated nodes get 0.
    """
    node_ids = list(node_ids)
    kept, finished, _ = _break_cycles(node_ids, _children_of(node_ids, edges))

    levels: LevelMap = {}
    for node_id in finished:
        levels[node_id] = 1 + max((levels[child] for child in kept[node_id]), default=-1)
    return {node_id: levels[node_id] for node_id in node_ids}


def assign_levels_roots(node_ids: Sequence[Hashable], edges: Iterable[EdgePair]) -> LevelMap:
    """
    Level = longest path from a root.

    Args:
        node_ids: All nodes to level.
        edges: Directed (from, to) pairs. Pairs with unknown endpoints are ignored.

    Returns:
        Level per node; isolated nodes get 0.
    """
    node_ids = list(node_ids)
    kept, _, _ = _break_cycles(node_ids, _children_of(node_ids, edges))

    in_degree = {node_id: 0 for node_id in node_ids}
    for targets in kept.values():
        for child in targets:
            in_degree[child] += 1

    levels: LevelMap = {node_id: 0 for node_id in node_ids}
    queue = deque(node_id for node_id in node_ids if in_degree[node_id] == 0)
    while queue:
        node_id = queue.popleft()
        for child in kept[node_id]:
            levels[child] = max(levels[child], levels[node_id] + 1)
            in_degree[child] -= 1
            if in_degree[child] == 0:
                queue.append(child)
    return levels


def invert_levels(levels: LevelMap) -> LevelMap:
    """Flip a level map so that the highest level becomes 0."""
    if not levels:
        return {}
    top = max(levels.values())
    return {node_id: top - level for node_id, level in levels.items()}


def has_cycles(node_ids: Sequence[Hashable], edges: Iterable[EdgePair]) -> bool:
    """True if the directed graph contains a cycle (self loops excluded)."""
    node_ids = list(node_ids)
    _, _, dropped = _break_cycles(node_ids, _children_of(node_ids, edges))
    return dropped > 0
