"""
Unit tests for the selection state machine and its undo/redo history.
"""

import pytest

from declutter.grouping import group_similar_photos
from declutter.selection.store import (
    AppState,
    DeselectAll,
    DeselectAllInGroup,
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


def ingest(state, new_photos, threshold=0.7):
    """Regroup over all photos and ingest, the way the session does."""
    result = group_similar_photos(state.photos + tuple(new_photos), threshold)
    return reduce(state, Ingest(tuple(new_photos), result.groups, result.unique_photos))


def assert_flags_consistent(state: AppState):
    for photo in state.photos:
        assert photo.selected == (photo.id in state.selected_photos)


@pytest.fixture
def photos(make_photo):
    """a1/a2/a3 are near-identical (a2 best), b is on its own, c has no embedding."""
    return [
        make_photo("a1", embedding=[1.0, 0.0], quality=40, minutes=1),
        make_photo("a2", embedding=[0.99, 0.05], quality=90, minutes=2),
        make_photo("a3", embedding=[0.98, 0.1], quality=60, minutes=3),
        make_photo("b", embedding=[0.0, 1.0], quality=70, minutes=4),
        make_photo("c", embedding=None, minutes=5),
    ]


@pytest.fixture
def loaded(photos):
    return ingest(initial_state(), photos)


class TestIngest:

    def test_initial_state(self):
        state = initial_state()
        assert state.photos == ()
        assert state.current_history_index == -1
        assert not state.can_undo
        assert not state.can_redo

    def test_auto_selects_unique_and_keepers(self, loaded):
        assert set(loaded.selected_photos) == {"a2", "b", "c"}
        assert len(loaded.groups) == 1
        assert loaded.groups[0].best.id == "a2"
        assert_flags_consistent(loaded)

    def test_first_ingest_resets_history(self, loaded):
        assert len(loaded.history) == 1
        assert loaded.current_history_index == 0
        assert loaded.history[0].selected_photos == loaded.selected_photos

    def test_later_ingest_appends_history(self, loaded, make_photo):
        state = ingest(loaded, [make_photo("d", embedding=[-1.0, 0.0], minutes=6)])

        assert [p.id for p in state.photos] == ["a1", "a2", "a3", "b", "c", "d"]
        assert len(state.history) == 2
        assert state.current_history_index == 1
        assert "d" in state.selected_photos
        assert_flags_consistent(state)

    def test_ingest_recomputes_selection(self, loaded, make_photo):
        state = reduce(loaded, DeselectAll())
        state = ingest(state, [make_photo("d", embedding=[-1.0, 0.0])])

        assert set(state.selected_photos) == {"a2", "b", "c", "d"}

    def test_ingest_after_undo_discards_redo(self, loaded, make_photo):
        state = reduce(loaded, ToggleSelect("a1"))
        state = reduce(state, Undo())
        assert state.can_redo

        state = ingest(state, [make_photo("d", embedding=[-1.0, 0.0])])

        assert not state.can_redo
        assert len(state.history) == 2

    def test_ingest_does_not_mutate_input(self, loaded, make_photo):
        photos_before = loaded.photos
        history_before = loaded.history
        ingest(loaded, [make_photo("d", embedding=[-1.0, 0.0])])

        assert loaded.photos is photos_before
        assert loaded.history is history_before
        assert len(loaded.photos) == 5


class TestToggleSelect:

    def test_toggle_adds_and_removes(self, loaded):
        state = reduce(loaded, ToggleSelect("a1"))
        assert state.is_selected("a1")
        assert state.selected_photos[-1] == "a1"
        assert state.find_photo("a1").selected

        state = reduce(state, ToggleSelect("a1"))
        assert not state.is_selected("a1")
        assert_flags_consistent(state)

    def test_toggle_twice_restores_selection(self, loaded):
        state = reduce(reduce(loaded, ToggleSelect("b")), ToggleSelect("b"))
        assert set(state.selected_photos) == set(loaded.selected_photos)
        assert len(state.history) == 3

    def test_unknown_photo_is_noop(self, loaded):
        assert reduce(loaded, ToggleSelect("missing")) is loaded

    def test_toggle_appends_history(self, loaded):
        state = reduce(loaded, ToggleSelect("a1"))
        assert len(state.history) == 2
        assert state.current_history_index == 1
        assert state.history[-1].selected_photos == state.selected_photos

    def test_input_state_untouched(self, loaded):
        selected_before = loaded.selected_photos
        reduce(loaded, ToggleSelect("a1"))
        assert loaded.selected_photos == selected_before
        assert not loaded.find_photo("a1").selected


class TestGroupSelection:

    def test_select_all_in_group(self, loaded):
        group_id = loaded.groups[0].id
        state = reduce(loaded, SelectAllInGroup(group_id))

        assert {"a1", "a2", "a3"} <= set(state.selected_photos)
        assert len(state.selected_photos) == len(set(state.selected_photos))
        assert_flags_consistent(state)

    def test_select_all_in_group_without_change_is_noop(self, loaded):
        group_id = loaded.groups[0].id
        state = reduce(loaded, SelectAllInGroup(group_id))
        assert reduce(state, SelectAllInGroup(group_id)) is state

    def test_deselect_all_in_group(self, loaded):
        group_id = loaded.groups[0].id
        state = reduce(loaded, DeselectAllInGroup(group_id))

        assert set(state.selected_photos) == {"b", "c"}
        assert_flags_consistent(state)

    def test_deselect_all_in_group_without_change_is_noop(self, loaded):
        group_id = loaded.groups[0].id
        state = reduce(loaded, DeselectAllInGroup(group_id))
        assert reduce(state, DeselectAllInGroup(group_id)) is state

    def test_unknown_group_is_noop(self, loaded):
        assert reduce(loaded, SelectAllInGroup("nope")) is loaded
        assert reduce(loaded, DeselectAllInGroup("nope")) is loaded


class TestSelectAll:

    def test_select_all(self, loaded):
        state = reduce(loaded, SelectAll())
        assert set(state.selected_photos) == {p.id for p in loaded.photos}
        assert all(p.selected for p in state.photos)

    def test_select_all_when_all_selected_is_noop(self, loaded):
        state = reduce(loaded, SelectAll())
        assert reduce(state, SelectAll()) is state

    def test_deselect_all(self, loaded):
        state = reduce(loaded, DeselectAll())
        assert state.selected_photos == ()
        assert not any(p.selected for p in state.photos)

    def test_deselect_all_when_empty_is_noop(self, loaded):
        state = reduce(loaded, DeselectAll())
        assert reduce(state, DeselectAll()) is state

    def test_empty_session_is_noop(self):
        state = initial_state()
        assert reduce(state, SelectAll()) is state
        assert reduce(state, DeselectAll()) is state


class TestUndoRedo:

    def test_undo_restores_previous_selection(self, loaded):
        state = reduce(loaded, ToggleSelect("a1"))
        state = reduce(state, Undo())

        assert state.selected_photos == loaded.selected_photos
        assert state.current_history_index == 0
        assert_flags_consistent(state)

    def test_redo_restores_undone_selection(self, loaded):
        toggled = reduce(loaded, ToggleSelect("a1"))
        state = reduce(reduce(toggled, Undo()), Redo())

        assert state.selected_photos == toggled.selected_photos
        assert state.current_history_index == toggled.current_history_index
        assert_flags_consistent(state)

    def test_select_all_deselect_all_undo(self, loaded):
        state = reduce(loaded, SelectAll())
        state = reduce(state, DeselectAll())
        state = reduce(state, Undo())

        assert set(state.selected_photos) == {p.id for p in loaded.photos}
        assert all(p.selected for p in state.photos)

    def test_new_action_after_undo_discards_redo(self, loaded):
        state = reduce(loaded, ToggleSelect("a1"))
        state = reduce(state, ToggleSelect("a3"))
        state = reduce(state, Undo())
        assert state.can_redo

        state = reduce(state, ToggleSelect("b"))

        assert not state.can_redo
        assert len(state.history) == 3
        assert reduce(state, Redo()) is state

    def test_undo_at_first_entry_is_noop(self, loaded):
        assert reduce(loaded, Undo()) is loaded

    def test_undo_on_empty_history_is_noop(self):
        state = initial_state()
        assert reduce(state, Undo()) is state
        assert reduce(state, Redo()) is state

    def test_redo_at_last_entry_is_noop(self, loaded):
        state = reduce(loaded, ToggleSelect("a1"))
        assert reduce(state, Redo()) is state

    def test_undo_does_not_change_history(self, loaded):
        state = reduce(loaded, ToggleSelect("a1"))
        undone = reduce(state, Undo())
        assert undone.history is state.history

    def test_multi_step_walk(self, loaded):
        states = [loaded]
        for photo_id in ("a1", "a3", "b"):
            states.append(reduce(states[-1], ToggleSelect(photo_id)))

        state = states[-1]
        for expected in reversed(states[:-1]):
            state = reduce(state, Undo())
            assert state.selected_photos == expected.selected_photos
        for expected in states[1:]:
            state = reduce(state, Redo())
            assert state.selected_photos == expected.selected_photos


class TestReduce:

    def test_unknown_action(self, loaded):
        with pytest.raises(TypeError):
            reduce(loaded, object())

    def test_history_index_invariant(self, loaded):
        state = loaded
        actions = [SelectAll(), Undo(), Undo(), Redo(), Redo(), Redo(), DeselectAll(), ToggleSelect("c")]
        for action in actions:
            state = reduce(state, action)
            assert -1 <= state.current_history_index < len(state.history)
            assert_flags_consistent(state)


class TestSelectionStore:

    def test_commands_report_changes(self, photos):
        store = SelectionStore()
        result = group_similar_photos(photos)

        assert store.ingest(photos, result.groups, result.unique_photos)
        assert store.toggle_select("a1")
        assert not store.toggle_select("missing")
        assert store.undo()
        assert not store.undo()
        assert store.redo()
        assert not store.redo()
        assert store.select_all()
        assert not store.select_all()
        assert store.deselect_all_in_group(store.state.groups[0].id)
        assert store.select_all_in_group(store.state.groups[0].id)
        assert store.deselect_all()
        assert not store.deselect_all()

    def test_noop_keeps_state_object(self, photos):
        store = SelectionStore()
        result = group_similar_photos(photos)
        store.ingest(photos, result.groups, result.unique_photos)

        before = store.state
        store.toggle_select("missing")
        assert store.state is before

    def test_selected_photos_in_selection_order(self, photos):
        store = SelectionStore()
        result = group_similar_photos(photos)
        store.ingest(photos, result.groups, result.unique_photos)
        store.deselect_all()
        store.toggle_select("b")
        store.toggle_select("a1")

        assert [p.id for p in store.selected_photos()] == ["b", "a1"]
        assert store.is_selected("a1")
        assert not store.is_selected("a2")
