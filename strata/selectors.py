"""
Strata Selectors - Narrow Subscriptions
=======================================

`Store.subscribe` calls back after every dispatch. Most observers only care
about a small part of the tree, so `observe` pairs a callback with a selector
and only calls back when the selected value changed:

```python
sub = observe(store, lambda state: state["todos"], render_todos)
store.dispatch(filters.actions.show_done())    # todos untouched: no call
store.dispatch(todos.actions.add("walk dog"))  # render_todos(new_list)
sub.dispose()
```

"Changed" is decided by an equality function. The default, `is_same_value`,
is identity for objects and value equality for primitives, which is exactly
what structural sharing makes reliable: a sub-tree no transition touched is
still the same object. Selectors that build a fresh composite value on each
call (``lambda s: [t for t in s["todos"] if t["done"]]``) defeat it; either
pass ``equality=deep_equal`` or memoise them with `create_selector`.
"""

import logging
import threading
from dataclasses import fields, is_dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import numpy as np
from cachetools import LRUCache

from .actions import Action, ActionCreator

Selector = Callable[[Mapping[str, Any]], Any]
Equality = Callable[[Any, Any], bool]

DEFAULT_SELECTOR_CACHE_SIZE = 16

PRIMITIVE_TYPES = (type(None), bool, int, float, complex, str, bytes, np.generic)


# ============================================================================
# EQUALITY
# ============================================================================


def is_same_value(a: Any, b: Any) -> bool:
    """
    Identity for objects, value equality for primitives.

    Primitives are None, bool, numbers, str, bytes and numpy scalars; two of
    them are equal when they have the same type and compare equal (NaN equals
    NaN). Anything else is only equal to itself.
    """
    if a is b:
        return True
    if not isinstance(a, PRIMITIVE_TYPES) or type(a) is not type(b):
        return False
    if bool(a == b):
        return True
    return _is_nan(a) and _is_nan(b)


def _is_nan(value: Any) -> bool:
    try:
        return bool(np.isnan(value))
    except TypeError:
        return False


def deep_equal(a: Any, b: Any) -> bool:
    """
    Structural equality, for selectors that return freshly built values.

    Mappings, sequences and dataclasses are compared member by member, numpy
    arrays with `numpy.array_equal`, everything else with ``==``.
    """
    if a is b:
        return True

    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        if type(a) is not type(b):
            return False
        return bool(np.array_equal(a, b))

    if isinstance(a, PRIMITIVE_TYPES):
        return is_same_value(a, b)

    if isinstance(a, Mapping):
        if not isinstance(b, Mapping) or len(a) != len(b):
            return False
        return all(key in b and deep_equal(a[key], b[key]) for key in a)

    if isinstance(a, (list, tuple)):
        if type(a) is not type(b) or len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b))

    if is_dataclass(a) and not isinstance(a, type):
        if type(a) is not type(b):
            return False
        return all(
            deep_equal(getattr(a, f.name), getattr(b, f.name)) for f in fields(a)
        )

    try:
        return bool(a == b)
    except (ValueError, TypeError):
        return False


# ============================================================================
# SELECTOR SUBSCRIPTIONS
# ============================================================================


class Subscription:
    """
    A selector, its last observed value and the callback to run on change.

    Created by `observe`. Dispose it (or use it as a context manager) to stop
    receiving calls; disposing twice is harmless.
    """

    def __init__(
        self,
        store: Any,
        selector: Selector,
        callback: Callable[[Any], Any],
        equality: Equality = is_same_value,
    ):
        self._store = store
        self._selector = selector
        self._callback = callback
        self._equality = equality
        self._last = selector(store.get_state())
        self._unsubscribe: Optional[Callable[[], None]] = store.subscribe(self._check)

    @property
    def value(self) -> Any:
        """The last value the selector produced."""
        return self._last

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def _check(self) -> None:
        if self._unsubscribe is None:
            return
        value = self._selector(self._store.get_state())
        if self._equality(value, self._last):
            return
        self._last = value
        self._callback(value)

    def dispose(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    __call__ = dispose

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.dispose()
        return False

    def __repr__(self) -> str:
        state = "active" if self.active else "disposed"
        return f"Subscription({self._selector!r}, {state}, value={self._last!r})"


def observe(
    store: Any,
    selector: Selector,
    callback: Callable[[Any], Any],
    equality: Equality = is_same_value,
    initial_call: bool = False,
) -> Subscription:
    """
    Call `callback(value)` whenever `selector(state)` changes.

    The selector runs immediately to seed the last value, then after every
    dispatch. With ``initial_call=True`` the callback also gets the seed value.

    Returns:
        A `Subscription`; call it or its ``dispose()`` to stop observing.
    """
    if not callable(selector) or not callable(callback):
        raise TypeError("observe needs a callable selector and a callable callback")
    subscription = Subscription(store, selector, callback, equality)
    if initial_call:
        callback(subscription.value)
    return subscription


# ============================================================================
# MEMOISED SELECTORS
# ============================================================================


def _cache_key(arg: Any) -> Tuple[Any, ...]:
    # Cached entries keep their args alive, so an id cannot be reused by
    # another object while its entry exists.
    if isinstance(arg, PRIMITIVE_TYPES):
        try:
            return (type(arg), hash(arg), arg)
        except TypeError:
            pass
    return (object, id(arg))


class MemoizedSelector:
    """
    Selector whose combiner reruns only when an input selector's result changed.

    Results are cached per tuple of input identities in an LRU cache, so a few
    alternating inputs (e.g. two filter settings) stay cached.
    """

    def __init__(
        self,
        inputs: Tuple[Selector, ...],
        combiner: Callable[..., Any],
        maxsize: int = DEFAULT_SELECTOR_CACHE_SIZE,
    ):
        self._inputs = inputs
        self._combiner = combiner
        self._cache: LRUCache = LRUCache(maxsize=maxsize)
        self._lock = threading.Lock()
        self.recomputations = 0

    def __call__(self, state: Mapping[str, Any]) -> Any:
        args = tuple(select(state) for select in self._inputs)
        key = tuple(_cache_key(arg) for arg in args)
        with self._lock:
            entry = self._cache.get(key)
            if entry is not None and all(
                is_same_value(a, b) for a, b in zip(entry[0], args)
            ):
                return entry[1]

        result = self._combiner(*args)
        with self._lock:
            self.recomputations += 1
            self._cache[key] = (args, result)
        return result

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def __repr__(self) -> str:
        return f"MemoizedSelector({self._combiner!r}, inputs={len(self._inputs)})"


def create_selector(
    *selectors: Callable[..., Any], maxsize: int = DEFAULT_SELECTOR_CACHE_SIZE
) -> MemoizedSelector:
    """
    Build a memoised selector: ``create_selector(input1, input2, combiner)``.

    Each input selector takes the state tree; the last argument combines their
    results. The combiner only runs when some input returns a new object.
    """
    if len(selectors) < 2:
        raise TypeError("create_selector needs at least one input selector and a combiner")
    if not all(callable(s) for s in selectors):
        raise TypeError("create_selector arguments must be callables")
    *inputs, combiner = selectors
    return MemoizedSelector(tuple(inputs), combiner, maxsize)


# ============================================================================
# DISPATCH BINDING
# ============================================================================


def bind_dispatch(store: Any) -> Callable[[Action], Any]:
    """The store's dispatch function, to hand to code that should not see the store."""
    return store.dispatch


def bind_action_creators(
    actions: Mapping[str, ActionCreator], dispatch: Callable[[Action], Any]
) -> Dict[str, Callable[..., Any]]:
    """
    Wrap action creators so that calling one dispatches its action.

    ``bound = bind_action_creators(todos.actions, store.dispatch)`` then
    ``bound["add"]("buy milk")``.
    """

    def bind(creator: ActionCreator) -> Callable[..., Any]:
        def bound(*args: Any, **kwargs: Any) -> Any:
            return dispatch(creator(*args, **kwargs))

        bound.__name__ = creator.kind.rsplit("/", 1)[-1]
        bound.__qualname__ = bound.__name__
        return bound

    logging.debug(f"Binding action creators {list(actions)}")
    return {key: bind(creator) for key, creator in actions.items()}


__all__ = [
    "DEFAULT_SELECTOR_CACHE_SIZE",
    "Equality",
    "MemoizedSelector",
    "Selector",
    "Subscription",
    "bind_action_creators",
    "bind_dispatch",
    "create_selector",
    "deep_equal",
    "is_same_value",
    "observe",
]
