"""
Shared pytest fixtures and configuration for strata tests.
"""

import itertools

import pytest

from strata import Transition, create_store, define_slice


@pytest.fixture
def id_generator():
    """Deterministic id source standing in for uuid generation."""
    counter = itertools.count(1)
    return lambda: f"todo-{next(counter)}"


@pytest.fixture
def todos_slice(id_generator):
    """Todo list slice as described in the tutorial: add, remove, update."""

    def add(state, action):
        state["todos"].append(action.payload)

    def remove(state, action):
        state["todos"] = [t for t in state["todos"] if t["id"] != action.payload]

    def update(state, action):
        state["todos"] = [
            {**t, "text": action.payload["text"]}
            if t["id"] == action.payload["id"]
            else t
            for t in state["todos"]
        ]

    return define_slice(
        "todos",
        {"todos": []},
        {
            "addTodo": Transition(
                reduce=add, prepare=lambda text: {"id": id_generator(), "text": text}
            ),
            "removeTodo": remove,
            "updateTodo": update,
        },
    )


@pytest.fixture
def counter_slice():
    """Counter slice with in-place and replacement style transitions."""
    return define_slice(
        "counter",
        {"value": 0},
        {
            "increment": lambda state, action: state.update(value=state["value"] + 1),
            "set": lambda state, action: {"value": action.payload},
            "fail": lambda state, action: 1 / 0,
        },
    )


@pytest.fixture
def store(todos_slice, counter_slice):
    """Fresh store with the todos and counter slices."""
    return create_store([todos_slice, counter_slice])
