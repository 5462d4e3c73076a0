"""Unit tests for reducer composition."""

import pytest

from strata import Action, ConstructionError, ReducerFault, combine_reducers, define_slice


@pytest.fixture
def root(todos_slice, counter_slice):
    return combine_reducers([todos_slice, counter_slice])


@pytest.fixture
def tree(root):
    return root(None, Action("@@test/init"))


@pytest.mark.unit
@pytest.mark.combine
def test_initialisation_fills_every_slice(tree):
    """Reducing None gives each slice its initial state"""
    assert tree == {"todos": {"todos": []}, "counter": {"value": 0}}


@pytest.mark.unit
@pytest.mark.combine
def test_unknown_action_returns_same_tree(root, tree):
    """Identity on no-op: the whole tree is returned unchanged"""
    assert root(tree, Action("nobody/handles")) is tree


@pytest.mark.unit
@pytest.mark.combine
def test_only_affected_slice_is_replaced(root, tree, counter_slice):
    """Structural sharing: untouched slices keep their identity"""
    next_tree = root(tree, counter_slice.actions.increment())

    assert next_tree is not tree
    assert next_tree["counter"] == {"value": 1}
    assert next_tree["todos"] is tree["todos"]
    assert tree["counter"] == {"value": 0}


@pytest.mark.unit
@pytest.mark.combine
def test_root_reducer_is_repeatable(root, tree, counter_slice):
    """Same (state, action) gives equal results with shared unaffected parts"""
    action = counter_slice.actions.set(7)

    first = root(tree, action)
    second = root(tree, action)

    assert first == second
    assert first["todos"] is second["todos"]
    assert root(tree, Action("x/y")) is root(tree, Action("x/y"))


@pytest.mark.unit
@pytest.mark.combine
def test_unowned_keys_are_carried_over(root, tree):
    """Keys without a reducer survive untouched"""
    extra = {"ui": object()}
    state = dict(tree, **extra)

    assert root(state, Action("x/y")) is state
    assert root(state, Action("counter/increment"))["ui"] is extra["ui"]


@pytest.mark.unit
@pytest.mark.combine
def test_duplicate_slice_names_are_rejected(counter_slice):
    """Two slices with the same name cannot be combined"""
    other = define_slice("counter", 0, {"noop": lambda s, a: s})

    with pytest.raises(ConstructionError, match="Duplicate"):
        combine_reducers([counter_slice, other])


@pytest.mark.unit
@pytest.mark.combine
def test_combine_rejects_non_slices_and_non_callables():
    """Only Slice objects or name -> callable mappings are accepted"""
    with pytest.raises(ConstructionError):
        combine_reducers(["counter"])
    with pytest.raises(ConstructionError):
        combine_reducers({"counter": 5})
    with pytest.raises(ConstructionError):
        combine_reducers({"": lambda s, a: s})


@pytest.mark.unit
@pytest.mark.combine
def test_plain_reducer_functions_can_be_combined():
    """A mapping of plain reducer functions works like slices"""

    def count(state, action):
        if state is None:
            return 0
        return state + 1 if action.kind == "tick" else state

    root = combine_reducers({"ticks": count})
    tree = root(None, Action("init"))

    assert tree == {"ticks": 0}
    assert root(tree, Action("tick")) == {"ticks": 1}
    assert root.slice_names == ("ticks",)


@pytest.mark.unit
@pytest.mark.combine
def test_reducer_returning_none_is_a_fault():
    """Returning None instead of the unchanged sub-state is reported"""
    root = combine_reducers({"broken": lambda state, action: None})

    with pytest.raises(ReducerFault) as excinfo:
        root({"broken": 1}, Action("anything"))

    assert excinfo.value.slice_name == "broken"
    assert excinfo.value.action == Action("anything")
