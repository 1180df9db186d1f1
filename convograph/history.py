"""Undo/redo automaton.

Three pointers: ``past``, ``present`` and ``future``. The present entry is
the most recent action in effect. Undo reverts it and steps back; redo
re-applies the next entry and steps forward. Side effects live in the
entries themselves (see ``convograph.models.history``), so this class
never inspects what kind of entry it is holding.
"""

import logging

from convograph.models.history import (
    BaselineEntry,
    GraphMutator,
    HistoryEntry,
    HistoryState,
)

logger = logging.getLogger(__name__)


class HistoryManager:
    """Linear undo/redo history over command entries."""

    def __init__(self, state: HistoryState | None = None) -> None:
        if state is None or (state.present is None and not state.past):
            # seed a baseline so the first recorded action has something to return to
            state = HistoryState(present=BaselineEntry())
        self.past: list[HistoryEntry] = list(state.past)
        self.present: HistoryEntry | None = state.present
        self.future: list[HistoryEntry] = list(state.future)

    @property
    def can_undo(self) -> bool:
        return bool(self.past)

    @property
    def can_redo(self) -> bool:
        return bool(self.future)

    def record(self, entry: HistoryEntry) -> None:
        """Make ``entry`` the present; anything that could have been redone is dropped."""
        if self.present is not None:
            self.past.append(self.present)
        self.present = entry
        self.future.clear()

    def undo(self, graph: GraphMutator) -> None:
        """Revert the present entry and step back. No-op with nothing to return to."""
        if not self.past:
            return

        current = self.present
        if current is not None:
            current.revert(graph)
            self.future.insert(0, current)
        self.present = self.past.pop()
        logger.debug("undo %s", getattr(current, "kind", None))

    def redo(self, graph: GraphMutator) -> None:
        """Re-apply the next entry and step forward. No-op with nothing to redo."""
        if not self.future:
            return

        upcoming = self.future.pop(0)
        upcoming.apply(graph)
        if self.present is not None:
            self.past.append(self.present)
        self.present = upcoming
        logger.debug("redo %s", upcoming.kind)

    def clear(self) -> None:
        """Forget everything and start again from a fresh baseline."""
        self.past = []
        self.present = BaselineEntry()
        self.future = []

    def to_state(self) -> HistoryState:
        """Deep copy of the automaton for persistence."""
        return HistoryState(
            past=[entry.model_copy(deep=True) for entry in self.past],
            present=self.present.model_copy(deep=True) if self.present else None,
            future=[entry.model_copy(deep=True) for entry in self.future],
        )
