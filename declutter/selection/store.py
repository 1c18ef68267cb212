"""Selection state machine with linear undo/redo history.

All transitions go through ``reduce(state, action)``, a pure function that
returns a new ``AppState`` and never mutates its input. When an action would
not change anything, ``reduce`` returns the very same state object so callers
can detect no-ops with ``is``.

``SelectionStore`` holds the current state for a session and applies one
transition at a time.
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import AbstractSet, Iterable, List, Optional, Sequence, Tuple, Union

from ..models import Photo, PhotoGroup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """Snapshot of the selection after one selection-changing action."""

    selected_photos: Tuple[str, ...]
    timestamp: datetime


@dataclass(frozen=True)
class AppState:
    """Full session snapshot.

    ``selected_photos`` keeps ids in the order they were selected; it never
    contains duplicates. ``current_history_index`` is -1 until the first
    ingestion and otherwise points into ``history``.
    """

    photos: Tuple[Photo, ...] = ()
    groups: Tuple[PhotoGroup, ...] = ()
    unique_photos: Tuple[Photo, ...] = ()
    selected_photos: Tuple[str, ...] = ()
    history: Tuple[HistoryEntry, ...] = ()
    current_history_index: int = -1

    @property
    def can_undo(self) -> bool:
        return self.current_history_index > 0

    @property
    def can_redo(self) -> bool:
        return self.current_history_index < len(self.history) - 1

    def is_selected(self, photo_id: str) -> bool:
        return photo_id in self.selected_photos

    def find_photo(self, photo_id: str) -> Optional[Photo]:
        for photo in self.photos:
            if photo.id == photo_id:
                return photo
        return None

    def find_group(self, group_id: str) -> Optional[PhotoGroup]:
        for group in self.groups:
            if group.id == group_id:
                return group
        return None


def initial_state() -> AppState:
    return AppState()


# Actions

@dataclass(frozen=True)
class Ingest:
    """Record newly analyzed photos and the grouping recomputed over all photos."""

    new_photos: Tuple[Photo, ...]
    groups: Tuple[PhotoGroup, ...]
    unique_photos: Tuple[Photo, ...]


@dataclass(frozen=True)
class ToggleSelect:
    photo_id: str


@dataclass(frozen=True)
class SelectAllInGroup:
    group_id: str


@dataclass(frozen=True)
class DeselectAllInGroup:
    group_id: str


@dataclass(frozen=True)
class SelectAll:
    pass


@dataclass(frozen=True)
class DeselectAll:
    pass


@dataclass(frozen=True)
class Undo:
    pass


@dataclass(frozen=True)
class Redo:
    pass


Action = Union[
    Ingest, ToggleSelect, SelectAllInGroup, DeselectAllInGroup,
    SelectAll, DeselectAll, Undo, Redo,
]


# Helpers

def _dedupe(ids: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(ids))


def _sync_flags(photos: Sequence[Photo], selected: AbstractSet[str]) -> Tuple[Photo, ...]:
    """Return photos whose ``selected`` flag matches ``selected``.

    Photos whose flag is already right are reused as-is.
    """
    synced = []
    for photo in photos:
        is_selected = photo.id in selected
        if photo.selected != is_selected:
            photo = replace(photo, selected=is_selected)
        synced.append(photo)
    return tuple(synced)


def _append_history(
    history: Tuple[HistoryEntry, ...],
    current_index: int,
    selected: Tuple[str, ...],
) -> Tuple[Tuple[HistoryEntry, ...], int]:
    """Drop entries after ``current_index`` (discarding redo) and append a new one."""
    entry = HistoryEntry(selected_photos=selected, timestamp=datetime.now())
    new_history = history[:current_index + 1] + (entry,)
    return new_history, len(new_history) - 1


def _select(state: AppState, selected: Tuple[str, ...]) -> AppState:
    """New state with ``selected`` applied and recorded as a history entry."""
    history, index = _append_history(state.history, state.current_history_index, selected)
    return replace(
        state,
        photos=_sync_flags(state.photos, frozenset(selected)),
        selected_photos=selected,
        history=history,
        current_history_index=index,
    )


def _restore(state: AppState, index: int) -> AppState:
    """New state pointing at history entry ``index`` without touching history."""
    selected = state.history[index].selected_photos
    return replace(
        state,
        photos=_sync_flags(state.photos, frozenset(selected)),
        selected_photos=selected,
        current_history_index=index,
    )


# Transitions

def _ingest(state: AppState, action: Ingest) -> AppState:
    photos = state.photos + tuple(action.new_photos)

    # Keepers: every unique photo plus the best photo of every group
    selected = _dedupe(
        [p.id for p in action.unique_photos]
        + [g.photos[0].id for g in action.groups if g.photos]
    )

    if not state.photos:
        # First ingestion starts a fresh history
        history: Tuple[HistoryEntry, ...] = (
            HistoryEntry(selected_photos=selected, timestamp=datetime.now()),
        )
        index = 0
    else:
        history, index = _append_history(state.history, state.current_history_index, selected)

    return replace(
        state,
        photos=_sync_flags(photos, frozenset(selected)),
        groups=tuple(action.groups),
        unique_photos=tuple(action.unique_photos),
        selected_photos=selected,
        history=history,
        current_history_index=index,
    )


def _toggle_select(state: AppState, action: ToggleSelect) -> AppState:
    if state.find_photo(action.photo_id) is None:
        return state

    if action.photo_id in state.selected_photos:
        selected = tuple(pid for pid in state.selected_photos if pid != action.photo_id)
    else:
        selected = state.selected_photos + (action.photo_id,)
    return _select(state, selected)


def _select_all_in_group(state: AppState, action: SelectAllInGroup) -> AppState:
    group = state.find_group(action.group_id)
    if group is None:
        return state

    selected = _dedupe(state.selected_photos + group.photo_ids)
    if len(selected) == len(state.selected_photos):
        return state
    return _select(state, selected)


def _deselect_all_in_group(state: AppState, action: DeselectAllInGroup) -> AppState:
    group = state.find_group(action.group_id)
    if group is None:
        return state

    group_ids = set(group.photo_ids)
    selected = tuple(pid for pid in state.selected_photos if pid not in group_ids)
    if len(selected) == len(state.selected_photos):
        return state
    return _select(state, selected)


def _select_all(state: AppState, action: SelectAll) -> AppState:
    all_ids = tuple(p.id for p in state.photos)
    if set(all_ids) == set(state.selected_photos):
        return state
    return _select(state, all_ids)


def _deselect_all(state: AppState, action: DeselectAll) -> AppState:
    if not state.selected_photos:
        return state
    return _select(state, ())


def _undo(state: AppState, action: Undo) -> AppState:
    if state.current_history_index <= 0:
        return state
    return _restore(state, state.current_history_index - 1)


def _redo(state: AppState, action: Redo) -> AppState:
    if state.current_history_index >= len(state.history) - 1:
        return state
    return _restore(state, state.current_history_index + 1)


_TRANSITIONS = {
    Ingest: _ingest,
    ToggleSelect: _toggle_select,
    SelectAllInGroup: _select_all_in_group,
    DeselectAllInGroup: _deselect_all_in_group,
    SelectAll: _select_all,
    DeselectAll: _deselect_all,
    Undo: _undo,
    Redo: _redo,
}


def reduce(state: AppState, action: Action) -> AppState:
    """
    Apply one action to a state.

    Args:
        state: Current state (left untouched)
        action: Action to apply

    Returns:
        The new state, or ``state`` itself when nothing changed
    """
    transition = _TRANSITIONS.get(type(action))
    if transition is None:
        raise TypeError(f"Unknown action: {action!r}")
    return transition(state, action)


class SelectionStore:
    """Holds the session's ``AppState`` and applies transitions one at a time."""

    def __init__(self, state: Optional[AppState] = None):
        self._state = state if state is not None else initial_state()
        self._lock = threading.Lock()

    @property
    def state(self) -> AppState:
        return self._state

    def dispatch(self, action: Action) -> bool:
        """Apply ``action``; return True if the state changed."""
        with self._lock:
            new_state = reduce(self._state, action)
            changed = new_state is not self._state
            self._state = new_state
        if changed:
            logger.debug(
                f"{type(action).__name__}: {len(new_state.selected_photos)} selected, "
                f"history {new_state.current_history_index + 1}/{len(new_state.history)}"
            )
        return changed

    # Commands

    def ingest(
        self,
        new_photos: Sequence[Photo],
        groups: Sequence[PhotoGroup],
        unique_photos: Sequence[Photo],
    ) -> bool:
        return self.dispatch(Ingest(tuple(new_photos), tuple(groups), tuple(unique_photos)))

    def toggle_select(self, photo_id: str) -> bool:
        return self.dispatch(ToggleSelect(photo_id))

    def select_all_in_group(self, group_id: str) -> bool:
        return self.dispatch(SelectAllInGroup(group_id))

    def deselect_all_in_group(self, group_id: str) -> bool:
        return self.dispatch(DeselectAllInGroup(group_id))

    def select_all(self) -> bool:
        return self.dispatch(SelectAll())

    def deselect_all(self) -> bool:
        return self.dispatch(DeselectAll())

    def undo(self) -> bool:
        return self.dispatch(Undo())

    def redo(self) -> bool:
        return self.dispatch(Redo())

    def is_selected(self, photo_id: str) -> bool:
        return self._state.is_selected(photo_id)

    def selected_photos(self) -> List[Photo]:
        """Selected photos in selection order, skipping ids with no photo."""
        state = self._state
        by_id = {photo.id: photo for photo in state.photos}
        return [by_id[pid] for pid in state.selected_photos if pid in by_id]
