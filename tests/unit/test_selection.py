import pytest

from tutordesk.services.selection import SelectionState


@pytest.mark.unit
def test_selection_survives_page_changes():
    selection = SelectionState()

    selection.toggle_page([1, 2, 3])
    selection.toggle_page([4, 5])

    assert selection.ids == [1, 2, 3, 4, 5]
    assert selection.count == 5


@pytest.mark.unit
def test_toggle_page_deselects_only_when_whole_page_selected():
    selection = SelectionState()
    selection.select(9)
    selection.select(1)

    selection.toggle_page([1, 2])
    assert selection.is_all_selected([1, 2])

    selection.toggle_page([1, 2])
    assert selection.ids == [9]


@pytest.mark.unit
def test_toggle_page_with_explicit_flag():
    selection = SelectionState()
    selection.toggle_page([1, 2], enabled=True)
    selection.toggle_page([1, 2], enabled=True)
    assert selection.ids == [1, 2]

    selection.toggle_page([2], enabled=False)
    assert selection.ids == [1]


@pytest.mark.unit
def test_toggle_single_and_membership():
    selection = SelectionState()
    selection.toggle(7)
    assert 7 in selection and selection.is_selected(7)

    selection.toggle(7)
    assert 7 not in selection
    assert len(selection) == 0


@pytest.mark.unit
def test_disabled_ids_are_never_selected():
    selection = SelectionState(disabled_ids=[2])

    selection.select(2)
    selection.toggle_page([1, 2, 3])
    selection.select_only([2, 3])

    assert selection.ids == [3]
    assert selection.is_all_selected([2, 3])


@pytest.mark.unit
def test_select_only_and_clear():
    selection = SelectionState()
    selection.toggle_page([1, 2, 3])

    selection.select_only([3, 4, 3])
    assert selection.ids == [3, 4]

    selection.clear()
    assert selection.count == 0
    assert not selection.is_all_selected([])
