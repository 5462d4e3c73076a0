"""
Strata Reducer Composition
==========================

`combine_reducers` turns a set of slice reducers into one root reducer over
the whole state tree (a mapping of slice name -> sub-state).

Each action is handed to every slice reducer. A slice that does not handle the
action returns its sub-state unchanged, and when *every* slice does so the root
reducer returns the very same tree object. Otherwise a new top-level mapping is
built in which unaffected sub-states are the previous objects, not copies.
"""

import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

from .actions import Action
from .errors import ConstructionError, ReducerFault
from .slice import Slice

Reducer = Callable[[Any, Action], Any]
RootReducer = Callable[[Optional[Mapping[str, Any]], Action], Mapping[str, Any]]


def _reducer_table(
    slices: Union[Sequence[Slice], Mapping[str, Reducer]],
) -> Dict[str, Reducer]:
    table: Dict[str, Reducer] = {}

    if isinstance(slices, Mapping):
        entries = list(slices.items())
    else:
        entries = []
        for item in slices:
            if not isinstance(item, Slice):
                raise ConstructionError(
                    f"combine_reducers expects Slice objects, got {item!r}"
                )
            entries.append((item.name, item.reducer))

    for name, reducer in entries:
        if not isinstance(name, str) or not name:
            raise ConstructionError(f"Reducer names must be non-empty strings, got {name!r}")
        if not callable(reducer):
            raise ConstructionError(f"Reducer {name!r} is not callable: {reducer!r}")
        if name in table:
            raise ConstructionError(f"Duplicate slice name {name!r}")
        table[name] = reducer

    return table


class CombinedReducer:
    """
    Root reducer over a fixed, ordered set of named reducers.

    Instances are callables ``root(state, action) -> state``.
    """

    __slots__ = ("_reducers",)

    def __init__(self, reducers: Dict[str, Reducer]):
        self._reducers = MappingProxyType(dict(reducers))

    @property
    def slice_names(self) -> Tuple[str, ...]:
        return tuple(self._reducers)

    def __call__(
        self, state: Optional[Mapping[str, Any]], action: Action
    ) -> Mapping[str, Any]:
        if state is None:
            state = {}

        changed: Dict[str, Any] = {}
        for name, reducer in self._reducers.items():
            previous = state.get(name)
            next_sub = reducer(previous, action)
            if next_sub is None:
                raise ReducerFault(
                    f"Reducer {name!r} returned None; return the unchanged "
                    "sub-state for actions it ignores",
                    action=action,
                    slice_name=name,
                )
            if next_sub is not previous:
                changed[name] = next_sub

        if not changed:
            return state

        next_state = dict(state)
        next_state.update(changed)
        logging.debug(f"{action.kind!r} changed slices {list(changed)}")
        return next_state

    def __repr__(self) -> str:
        return f"CombinedReducer({', '.join(self._reducers)})"


def combine_reducers(
    slices: Union[Sequence[Slice], Mapping[str, Reducer]],
) -> CombinedReducer:
    """
    Combine slice reducers into a root reducer.

    Args:
        slices: `Slice` objects, or a mapping of name -> reducer function. A
            plain reducer must accept ``None`` as "not initialised" and return
            its initial state for it.

    Raises:
        ConstructionError: On duplicate names or non-callable reducers.

    Keys of the incoming state that no reducer owns are carried over untouched.
    """
    return CombinedReducer(_reducer_table(slices))


__all__ = ["CombinedReducer", "combine_reducers", "Reducer", "RootReducer"]
