#!/usr/bin/env python3
"""
Strata TODO Application Store
=============================

A small console walk-through of a TODO list kept in a strata store:

- Immutable `TodoItem` dataclass; transitions edit it through a draft
- `todos` slice with an id-generating `prepare` callback
- `visibility` slice, to show that observers of one slice are not disturbed by
  changes to another
- Memoised `visible_todos` selector and narrow `observe` subscriptions

To run:
```bash
$ pip install -e . && python examples/todo_app.py
```
"""

import logging
import uuid
from dataclasses import dataclass
from typing import List

from strata import (
    Transition,
    bind_action_creators,
    create_selector,
    create_store,
    define_slice,
    logging_middleware,
    observe,
)

# ==============================================================================================
# Configuration and Constants
# ==============================================================================================

LOG_LEVEL = logging.DEBUG

FILTER_MODE_ALL = "all"
FILTER_MODE_ACTIVE = "active"
FILTER_MODE_COMPLETED = "completed"

logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s %(message)s")


# ==============================================================================================
# TodoItem - Immutable Todo Data Structure
# ==============================================================================================


@dataclass(frozen=True)
class TodoItem:
    """A single todo. Frozen: transitions change it through a draft."""

    id: str
    text: str
    completed: bool = False


def _new_todo(text: str) -> TodoItem:
    return TodoItem(id=str(uuid.uuid4()), text=text)


# ==============================================================================================
# Slices
# ==============================================================================================


def _add(state: List[TodoItem], action) -> None:
    state.append(action.payload)


def _remove(state: List[TodoItem], action):
    return [todo for todo in state if todo.id != action.payload]


def _toggle(state: List[TodoItem], action) -> None:
    for todo in state:
        if todo.id == action.payload:
            todo.completed = not todo.completed


def _rename(state: List[TodoItem], action) -> None:
    for todo in state:
        if todo.id == action.payload["id"]:
            todo.text = action.payload["text"]


todos = define_slice(
    "todos",
    [],
    {
        "add": Transition(reduce=_add, prepare=_new_todo),
        "remove": _remove,
        "toggle": _toggle,
        "rename": _rename,
    },
)

visibility = define_slice(
    "visibility",
    FILTER_MODE_ALL,
    {"set_filter": lambda state, action: action.payload},
)


# ==============================================================================================
# Selectors
# ==============================================================================================

visible_todos = create_selector(
    todos.select,
    visibility.select,
    lambda items, mode: {
        FILTER_MODE_ACTIVE: [t for t in items if not t.completed],
        FILTER_MODE_COMPLETED: [t for t in items if t.completed],
    }.get(mode, items),
)


def stats_text(items: List[TodoItem]) -> str:
    if not items:
        return "No todos yet."
    done = sum(1 for t in items if t.completed)
    return f"{done}/{len(items)} completed"


# ==============================================================================================
# Walk-through
# ==============================================================================================


def main() -> None:
    store = create_store([todos, visibility], middleware=[logging_middleware])
    actions = bind_action_creators(todos.actions, store.dispatch)

    observe(store, todos.select, lambda items: print(f"todos: {stats_text(items)}"))
    observe(
        store,
        visible_todos,
        lambda items: print("visible:", ", ".join(t.text for t in items) or "-"),
    )

    milk = actions["add"]("buy milk").payload
    dog = actions["add"]("walk dog").payload
    actions["toggle"](milk.id)

    store.dispatch(visibility.actions.set_filter(FILTER_MODE_ACTIVE))
    actions["rename"]({"id": dog.id, "text": "walk the dog"})
    actions["remove"](milk.id)

    print("final state:", store.get_state())


if __name__ == "__main__":
    main()
