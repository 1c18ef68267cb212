"""Selection state and undo/redo history."""

from .store import (
    AppState,
    DeselectAll,
    DeselectAllInGroup,
    HistoryEntry,
    Ingest,
    Redo,
    SelectAll,
    SelectAllInGroup,
    SelectionStore,
    ToggleSelect,
    Undo,
    initial_state,
    reduce,
)
