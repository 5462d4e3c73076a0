"""
End-to-end todo list scenario: a store built from slices, driven only through
dispatch, with observers watching narrow parts of the tree.
"""

import pytest

from strata import Action, ReducerFault, bind_action_creators, create_store, define_slice, observe


@pytest.fixture
def settings_slice():
    return define_slice(
        "settings",
        {"theme": "light"},
        {"setTheme": lambda state, action: state.update(theme=action.payload)},
    )


@pytest.fixture
def app_store(todos_slice, settings_slice):
    return create_store([todos_slice, settings_slice])


@pytest.mark.integration
class TestTodoScenario:
    """The add / add / remove / update walk-through."""

    def test_full_walkthrough(self, app_store, todos_slice):
        # Arrange
        actions = todos_slice.actions
        assert app_store.get_state()["todos"] == {"todos": []}
        settings_before = app_store.get_state()["settings"]

        # Act: add two todos
        app_store.dispatch(actions.addTodo("buy milk"))
        first = app_store.get_state()["todos"]["todos"][0]
        app_store.dispatch(actions.addTodo("walk dog"))
        after_add = app_store.get_state()["todos"]["todos"]

        # Assert
        assert len(after_add) == 2
        assert after_add[0] is first
        assert first == {"id": "todo-1", "text": "buy milk"}

        # Act: remove "buy milk"
        app_store.dispatch(actions.removeTodo(first["id"]))
        after_remove = app_store.get_state()["todos"]["todos"]

        # Assert
        assert [t["text"] for t in after_remove] == ["walk dog"]
        dog = after_remove[0]

        # Act: rename "walk dog"
        app_store.dispatch(actions.updateTodo({"id": dog["id"], "text": "walk the dog"}))
        after_update = app_store.get_state()["todos"]["todos"]

        # Assert
        assert after_update == [{"id": "todo-2", "text": "walk the dog"}]
        assert after_update[0] is not dog
        assert after_update is not after_remove
        assert dog == {"id": "todo-2", "text": "walk dog"}
        assert app_store.get_state()["settings"] is settings_before

    def test_observers_follow_only_their_slice(self, app_store, todos_slice, settings_slice):
        """A todo list view is not re-run by theme changes and vice versa"""
        todo_views = []
        theme_views = []
        observe(app_store, lambda s: s["todos"]["todos"], todo_views.append)
        observe(app_store, lambda s: s["settings"]["theme"], theme_views.append)

        app_store.dispatch(todos_slice.actions.addTodo("buy milk"))
        app_store.dispatch(settings_slice.actions.setTheme("dark"))
        app_store.dispatch(settings_slice.actions.setTheme("dark"))
        app_store.dispatch(todos_slice.actions.removeTodo("todo-1"))

        assert [len(view) for view in todo_views] == [1, 0]
        assert theme_views == ["dark"]

    def test_bound_creators_drive_the_store(self, app_store, todos_slice):
        """Code holding only bound creators can still change the store"""
        todo = bind_action_creators(todos_slice.actions, app_store.dispatch)

        todo["addTodo"]("buy milk")
        todo["addTodo"]("walk dog")
        todo["removeTodo"]("todo-1")

        assert app_store.get_state()["todos"]["todos"] == [{"id": "todo-2", "text": "walk dog"}]


@pytest.mark.integration
class TestStoreProperties:
    """Properties that hold for any store built from slices."""

    def test_identity_on_no_op(self, app_store):
        before = app_store.get_state()

        app_store.dispatch(Action("nobody/listens"))

        assert app_store.get_state() is before

    def test_structural_sharing(self, app_store, settings_slice):
        before = app_store.get_state()

        app_store.dispatch(settings_slice.actions.setTheme("dark"))

        after = app_store.get_state()
        assert after["todos"] is before["todos"]
        assert after["settings"] is not before["settings"]
        assert before["settings"] == {"theme": "light"}

    def test_idempotent_read(self, app_store):
        assert app_store.get_state() is app_store.get_state()

    def test_no_torn_state_on_fault(self, todos_slice):
        broken = define_slice(
            "broken",
            {"n": 0},
            {"explode": lambda state, action: state.update(n=1) or 1 / 0},
        )
        store = create_store([todos_slice, broken])
        before = store.get_state()

        with pytest.raises(ReducerFault) as excinfo:
            store.dispatch(broken.actions.explode())

        assert store.get_state() is before
        assert store.get_state()["broken"] == {"n": 0}
        assert excinfo.value.action.kind == "broken/explode"

    def test_selector_skip(self, app_store, todos_slice, settings_slice):
        calls = []
        observe(app_store, settings_slice.select, calls.append)

        app_store.dispatch(todos_slice.actions.addTodo("buy milk"))

        assert calls == []
