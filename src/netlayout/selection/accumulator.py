"""
Selection Accumulator
=====================
Collects selection changes and publishes them in one batch.

Nodes and edges are tracked separately. Additions and removals are
idempotent and only take effect on `commit()`, which diffs the pending set
against the last committed one, calls `select()`/`unselect()` on the changed
items and hands a summary to the commit handler.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Callable, Dict, Generic, Hashable, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Hashable)


@dataclass
class SelectionChanges(Generic[T]):
    """Per-type result of a commit."""
    added: List[T]
    deleted: List[T]
    previous: List[T]
    current: List[T]


@dataclass
class SelectionSummary:
    nodes: SelectionChanges
    edges: SelectionChanges


CommitHandler = Callable[..., Any]


def _diff(before: Dict[T, None], after: Dict[T, None]) -> List[T]:
    return [item for item in after if item not in before]


class SingleTypeSelection(Generic[T]):
    """Insertion-ordered pending selection plus the last committed snapshot."""

    def __init__(self) -> None:
        self._previous: Dict[T, None] = {}
        self._selection: Dict[T, None] = {}

    @property
    def size(self) -> int:
        return len(self._selection)

    def add(self, *items: T) -> None:
        for item in items:
            self._selection[item] = None

    def delete(self, *items: T) -> None:
        for item in items:
            self._selection.pop(item, None)

    def clear(self) -> None:
        self._selection = {}

    def get_selection(self) -> List[T]:
        return list(self._selection)

    def get_changes(self) -> SelectionChanges:
        return SelectionChanges(
            added=_diff(self._previous, self._selection),
            deleted=_diff(self._selection, self._previous),
            previous=list(self._previous),
            current=list(self._selection),
        )

    def commit(self) -> SelectionChanges:
        changes = self.get_changes()
        self._previous = dict(self._selection)

        for item in changes.added:
            select = getattr(item, "select", None)
            if callable(select):
                select()
        for item in changes.deleted:
            unselect = getattr(item, "unselect", None)
            if callable(unselect):
                unselect()
        return changes


class SelectionAccumulator:
    """
    Args:
        commit_handler: Called once per commit as `handler(summary, *extra)`.
    """

    def __init__(self, commit_handler: CommitHandler = lambda summary, *extra: None) -> None:
        self._nodes: SingleTypeSelection = SingleTypeSelection()
        self._edges: SingleTypeSelection = SingleTypeSelection()
        self._commit_handler = commit_handler

    @property
    def size_nodes(self) -> int:
        return self._nodes.size

    @property
    def size_edges(self) -> int:
        return self._edges.size

    def get_nodes(self) -> list:
        return self._nodes.get_selection()

    def get_edges(self) -> list:
        return self._edges.get_selection()

    def add_nodes(self, *nodes: Any) -> None:
        self._nodes.add(*nodes)

    def add_edges(self, *edges: Any) -> None:
        self._edges.add(*edges)

    def delete_nodes(self, *nodes: Any) -> None:
        self._nodes.delete(*nodes)

    def delete_edges(self, *edges: Any) -> None:
        self._edges.delete(*edges)

    def clear(self) -> None:
        self._nodes.clear()
        self._edges.clear()

    def commit(self, *extra: Any) -> SelectionSummary:
        summary = SelectionSummary(nodes=self._nodes.commit(), edges=self._edges.commit())
        logger.debug(
            f"Selection committed: +{len(summary.nodes.added)}/-{len(summary.nodes.deleted)} nodes, "
            f"+{len(summary.edges.added)}/-{len(summary.edges.deleted)} edges."
        )
        self._commit_handler(summary, *extra)
        return summary
