"""
Strata Store - Predictable State Container
==========================================

The store holds one state tree and changes it only by dispatching actions
through a root reducer. Every successful dispatch swaps in a new tree and then
calls every subscriber, in the order they subscribed.

Basic Usage
-----------

```python
from strata import create_store, define_slice

todos = define_slice("todos", [], {
    "add": lambda state, action: state.append(action.payload),
})

store = create_store([todos])
unsubscribe = store.subscribe(lambda: print(store.get_state()))

store.dispatch(todos.actions.add("buy milk"))   # prints {'todos': ['buy milk']}
unsubscribe()
```

Guarantees
----------

- **Atomic dispatch**: if a transition raises, the previous tree stays current
  and the caller gets a `ReducerFault` carrying the action.
- **No re-entrancy**: dispatching from inside a transition, or from a
  subscriber that the in-flight dispatch is notifying, raises
  `ReentrantDispatchError` in the offending call. Like any other subscriber
  error it is logged, and the remaining subscribers are still notified.
- **Atomic reducer swap**: `replace_reducer` keeps the old reducer if the new
  one fails to initialise the tree.
- **Serialised dispatch**: calls from different threads are run one after the
  other under the store's lock. `get_state` never waits.
- **Snapshot notification**: subscribers are snapshotted before each
  notification pass; one unsubscribed mid-pass is not called afterwards, one
  subscribed mid-pass is first called on the next dispatch.

Middleware
----------

Middleware wraps the dispatch function, Redux style:

```python
def audit(api):
    def wrap(next_dispatch):
        def handle(action):
            print("before", api.get_state())
            return next_dispatch(action)
        return handle
    return wrap

store = create_store([todos], middleware=[audit])
```
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Sequence

from .actions import INIT, REPLACE, Action
from .combine import RootReducer, combine_reducers
from .errors import (
    ConstructionError,
    InvalidActionError,
    ReducerFault,
    ReentrantDispatchError,
)
from .slice import Slice

Dispatch = Callable[[Action], Any]
Middleware = Callable[["MiddlewareAPI"], Callable[[Dispatch], Dispatch]]

# Phases of an in-flight dispatch, used for misuse reporting.
_REDUCING = "reducing"
_NOTIFYING = "notifying"


# ============================================================================
# CONFIGURATION
# ============================================================================


@dataclass
class StoreConfig:
    """
    Everything `create_store` needs.

    Attributes:
        slices: Slices making up the state tree.
        preloaded_state: Optional tree (or partial tree) to start from, e.g.
            hydrated by the caller from storage. Missing slices get their
            initial state.
        middleware: Dispatch wrappers, outermost first.
        reducer: A ready-made root reducer, used instead of `slices`.
    """

    slices: Sequence[Slice] = field(default_factory=list)
    preloaded_state: Optional[Mapping[str, Any]] = None
    middleware: Sequence[Middleware] = ()
    reducer: Optional[RootReducer] = None


# ============================================================================
# SUBSCRIBERS
# ============================================================================


class _Listener:
    __slots__ = ("callback", "active")

    def __init__(self, callback: Callable[[], Any]):
        self.callback = callback
        self.active = True


class MiddlewareAPI:
    """The part of the store middleware gets to see."""

    __slots__ = ("_store",)

    def __init__(self, store: "Store"):
        self._store = store

    def get_state(self) -> Mapping[str, Any]:
        return self._store.get_state()

    def dispatch(self, action: Action) -> Any:
        return self._store.dispatch(action)


# ============================================================================
# STORE
# ============================================================================


class Store:
    """
    Single state tree, root reducer and subscriber list.

    Prefer `create_store` to building one directly.
    """

    def __init__(
        self,
        reducer: RootReducer,
        preloaded_state: Optional[Mapping[str, Any]] = None,
        middleware: Sequence[Middleware] = (),
    ):
        if not callable(reducer):
            raise ConstructionError(f"Root reducer is not callable: {reducer!r}")
        if preloaded_state is not None and not isinstance(preloaded_state, Mapping):
            raise ConstructionError(
                "preloaded_state must be a mapping of slice name to sub-state, "
                f"got {type(preloaded_state).__name__}"
            )

        self._reducer = reducer
        self._listeners: List[_Listener] = []
        self._lock = threading.RLock()
        self._owner: Optional[int] = None
        self._phase: Optional[str] = None

        initial = dict(preloaded_state) if preloaded_state is not None else None
        self._state = self._run_reducer(initial, Action(INIT))
        logging.debug(f"Store initialised with slices {list(self._state)}")

        self._dispatch = self._apply_middleware(list(middleware))

    # ========================================================================
    # CORE API
    # ========================================================================

    def get_state(self) -> Mapping[str, Any]:
        """The current state tree. Never blocks."""
        self._guard("read the state")
        return self._state

    def dispatch(self, action: Action) -> Any:
        """
        Apply `action` and notify subscribers.

        Returns:
            The action (or whatever the outermost middleware returns).

        Raises:
            InvalidActionError: If `action` is not an `Action`.
            ReducerFault: If a transition failed; the state is unchanged.
            ReentrantDispatchError: If called during an in-flight dispatch.
        """
        return self._dispatch(action)

    def subscribe(self, callback: Callable[[], Any]) -> Callable[[], None]:
        """
        Call `callback()` after every successful dispatch.

        Returns:
            A function that unsubscribes `callback`; calling it again is a no-op.
        """
        if not callable(callback):
            raise TypeError(f"Subscriber must be callable, got {callback!r}")
        self._guard("subscribe")

        listener = _Listener(callback)
        with self._lock:
            self._listeners = self._listeners + [listener]

        def unsubscribe() -> None:
            if not listener.active:
                return
            self._guard("unsubscribe")
            listener.active = False
            with self._lock:
                self._listeners = [l for l in self._listeners if l is not listener]

        return unsubscribe

    def replace_reducer(self, reducer: RootReducer) -> None:
        """
        Swap the root reducer, e.g. after loading more slices.

        Dispatches an internal replace action so newly added slices are
        initialised, then notifies subscribers as for any dispatch.
        """
        if not callable(reducer):
            raise ConstructionError(f"Root reducer is not callable: {reducer!r}")
        self._guard("replace the reducer", always=True)
        with self._lock:
            previous, self._reducer = self._reducer, reducer
            try:
                self._dispatch_core(Action(REPLACE))
            except Exception:
                self._reducer = previous
                raise

    @property
    def is_dispatching(self) -> bool:
        return self._owner is not None

    # ========================================================================
    # INTERNAL IMPLEMENTATION
    # ========================================================================

    def _guard(self, what: str, always: bool = False) -> None:
        # While notifying, only dispatch and replace_reducer are rejected.
        if self._owner != threading.get_ident():
            return
        if self._phase == _REDUCING or always:
            raise ReentrantDispatchError(
                f"Cannot {what} while the store is {self._phase} an action"
            )

    def _run_reducer(self, state: Any, action: Action) -> Mapping[str, Any]:
        try:
            next_state = self._reducer(state, action)
        except ReducerFault as fault:
            if fault.action is None:
                fault.action = action
            raise
        except ReentrantDispatchError:
            raise
        except Exception as exc:
            raise ReducerFault(
                f"Root reducer raised {type(exc).__name__}: {exc}", action=action
            ) from exc

        if not isinstance(next_state, Mapping):
            raise ReducerFault(
                f"Root reducer returned {type(next_state).__name__}, expected a mapping",
                action=action,
            )
        return next_state

    def _dispatch_core(self, action: Action) -> Action:
        if not isinstance(action, Action):
            raise InvalidActionError(
                f"Only Action instances can be dispatched, got {action!r}"
            )
        self._guard("dispatch", always=True)

        with self._lock:
            self._owner = threading.get_ident()
            self._phase = _REDUCING
            try:
                self._state = self._run_reducer(self._state, action)
                self._phase = _NOTIFYING
                self._notify(action)
            finally:
                self._owner = None
                self._phase = None
        return action

    def _notify(self, action: Action) -> None:
        for listener in self._listeners:
            if not listener.active:
                continue
            try:
                listener.callback()
            except Exception:
                logging.exception(
                    f"Subscriber {listener.callback!r} failed after {action.kind!r}"
                )

    def _apply_middleware(self, middleware: List[Middleware]) -> Dispatch:
        if not middleware:
            return self._dispatch_core

        def not_ready(action: Action) -> Any:
            raise ConstructionError(
                "Dispatching while middleware is being constructed is not allowed"
            )

        self._dispatch = not_ready
        api = MiddlewareAPI(self)
        dispatch: Dispatch = self._dispatch_core
        for mw in reversed(middleware):
            dispatch = mw(api)(dispatch)
        return dispatch

    def __repr__(self) -> str:
        return f"Store(slices={list(self._state)}, subscribers={len(self._listeners)})"


# ============================================================================
# MIDDLEWARE
# ============================================================================


class LoggingMiddleware:
    """Logs each dispatched action and the slices it changed."""

    def __init__(self, level: int = logging.DEBUG):
        self.level = level

    def __call__(self, api: MiddlewareAPI) -> Callable[[Dispatch], Dispatch]:
        def wrap(next_dispatch: Dispatch) -> Dispatch:
            def handle(action: Action) -> Any:
                before = api.get_state()
                try:
                    result = next_dispatch(action)
                except Exception as exc:
                    logging.log(
                        max(self.level, logging.WARNING),
                        f"{action!r} failed: {type(exc).__name__}: {exc}",
                    )
                    raise
                after = api.get_state()
                changed = [name for name in after if after[name] is not before.get(name)]
                logging.log(self.level, f"{action!r} changed {changed or 'nothing'}")
                return result

            return handle

        return wrap


logging_middleware = LoggingMiddleware()


# ============================================================================
# FACTORY
# ============================================================================


def create_store(
    slices: Any = None,
    *,
    preloaded_state: Optional[Mapping[str, Any]] = None,
    middleware: Sequence[Middleware] = (),
    reducer: Optional[RootReducer] = None,
) -> Store:
    """
    Create a store from slices (or a `StoreConfig`).

    Args:
        slices: A sequence of `Slice` objects, or a `StoreConfig`.
        preloaded_state: Tree to start from instead of the initial states.
        middleware: Dispatch wrappers, outermost first.
        reducer: A ready-made root reducer, used instead of `slices`.

    Raises:
        ConstructionError: If slices are missing, duplicated or malformed.
    """
    if isinstance(slices, StoreConfig):
        config = slices
    else:
        config = StoreConfig(
            slices=list(slices or []),
            preloaded_state=preloaded_state,
            middleware=middleware,
            reducer=reducer,
        )

    if config.reducer is not None and config.slices:
        raise ConstructionError("Pass either slices or a root reducer, not both")
    if config.reducer is None and not config.slices:
        raise ConstructionError("A store needs at least one slice")

    root = config.reducer or combine_reducers(config.slices)

    if config.preloaded_state is not None and config.slices:
        known = {s.name for s in config.slices}
        unknown = [key for key in config.preloaded_state if key not in known]
        if unknown:
            logging.warning(
                f"preloaded_state has keys with no slice: {unknown}; they are kept as-is"
            )

    return Store(root, config.preloaded_state, config.middleware)


__all__ = [
    "Dispatch",
    "LoggingMiddleware",
    "Middleware",
    "MiddlewareAPI",
    "Store",
    "StoreConfig",
    "create_store",
    "logging_middleware",
]
