"""
Strata Slices
=============

A slice is a named piece of the state tree together with the transitions that
update it. Defining a slice derives two things from the transition table:

- one action creator per transition key, producing ``"<name>/<key>"`` actions;
- a reducer that routes an action to the matching transition and leaves the
  sub-state untouched (same object) for every other kind.

```python
counter = define_slice(
    "counter",
    {"value": 0},
    {
        "increment": lambda state, action: state.update(value=state["value"] + 1),
        "set": lambda state, action: {"value": action.payload},
    },
)

counter.actions.increment()        # Action('counter/increment')
counter.reducer({"value": 1}, counter.actions.set(5))   # {'value': 5}
```

Transition bodies receive a draft (see `strata.draft`) and either mutate it or
return a replacement value. They must be pure: no I/O, no clocks, no random
numbers. Anything of that sort belongs in a `prepare` callback, which runs when
the action is created, not when it is reduced:

```python
add = Transition(
    reduce=lambda state, action: state["items"].append(action.payload),
    prepare=lambda text: {"id": uuid.uuid4().hex, "text": text},
)
```
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from .actions import INTERNAL_PREFIX, Action, ActionCreator, ActionCreators
from .draft import produce
from .errors import ConstructionError, ReducerFault, ReentrantDispatchError

TransitionBody = Callable[[Any, Action], Any]


@dataclass(frozen=True)
class Transition:
    """A transition body paired with the payload builder for its action creator."""

    reduce: TransitionBody
    prepare: Optional[Callable[..., Any]] = None


TransitionSpec = Union[TransitionBody, Transition]


class Slice:
    """
    A named sub-state with its transitions, action creators and reducer.

    Built by `define_slice`; not meant to be instantiated directly.
    """

    def __init__(
        self,
        name: str,
        initial_state: Any,
        handlers: Mapping[str, TransitionBody],
        actions: ActionCreators,
    ):
        self.name = name
        self.initial_state = initial_state
        self.actions = actions
        self._handlers = MappingProxyType(dict(handlers))

    @property
    def kinds(self) -> Tuple[str, ...]:
        """Every action kind this slice responds to."""
        return tuple(self._handlers)

    def handles(self, kind: str) -> bool:
        return kind in self._handlers

    def get_initial_state(self) -> Any:
        return self.initial_state

    def select(self, state: Mapping[str, Any]) -> Any:
        """This slice's sub-state within a full state tree."""
        return state[self.name]

    def reducer(self, state: Any, action: Action) -> Any:
        """
        Compute this slice's next sub-state.

        `state` of ``None`` means "not initialised yet" and is replaced by the
        initial state. Unknown kinds return `state` itself.
        """
        if state is None:
            state = self.initial_state

        kind = getattr(action, "kind", None)
        body = self._handlers.get(kind)
        if body is None:
            return state

        try:
            return produce(state, body, action)
        except ReentrantDispatchError:
            raise
        except ReducerFault as fault:
            if fault.action is None:
                fault.action = action
            if fault.slice_name is None:
                fault.slice_name = self.name
            raise
        except Exception as exc:
            raise ReducerFault(
                f"Transition {kind!r} of slice {self.name!r} raised "
                f"{type(exc).__name__}: {exc}",
                action=action,
                slice_name=self.name,
            ) from exc

    def __repr__(self) -> str:
        return f"Slice({self.name!r}, actions=[{', '.join(self.actions)}])"


def _transition_items(
    transitions: Union[Mapping[str, TransitionSpec], Iterable[Tuple[str, TransitionSpec]]],
) -> Iterable[Tuple[str, TransitionSpec]]:
    if isinstance(transitions, Mapping):
        return list(transitions.items())
    try:
        items = [tuple(item) for item in transitions]
    except TypeError:
        raise ConstructionError(
            "transitions must be a mapping or an iterable of (key, transition) pairs"
        ) from None
    for item in items:
        if len(item) != 2:
            raise ConstructionError(
                f"transition entries must be (key, transition) pairs, got {item!r}"
            )
    return items


def _check_body(kind: str, spec: Any) -> TransitionBody:
    body = spec.reduce if isinstance(spec, Transition) else spec
    if not callable(body):
        raise ConstructionError(f"Transition {kind!r} is not callable: {body!r}")
    if isinstance(spec, Transition) and spec.prepare is not None:
        if not callable(spec.prepare):
            raise ConstructionError(
                f"prepare callback of {kind!r} is not callable: {spec.prepare!r}"
            )
    return body


def define_slice(
    name: str,
    initial_state: Any,
    transitions: Union[
        Mapping[str, TransitionSpec], Iterable[Tuple[str, TransitionSpec]]
    ],
    extra_transitions: Optional[
        Mapping[Union[str, ActionCreator], TransitionBody]
    ] = None,
) -> Slice:
    """
    Define a slice.

    Args:
        name: Key of the slice in the state tree and prefix of its action kinds.
        initial_state: Sub-state before any action. Must not be ``None``.
        transitions: Transition key -> body (or `Transition`). A sequence of
            ``(key, body)`` pairs is accepted too; duplicate keys are rejected.
        extra_transitions: Bodies for actions defined elsewhere, keyed by their
            full kind or by their action creator.

    Returns:
        The `Slice`, exposing ``actions`` and ``reducer``.

    Raises:
        ConstructionError: If the name, a key or a body is malformed, or a key
            is defined twice.
    """
    if not isinstance(name, str) or not name:
        raise ConstructionError(f"Slice name must be a non-empty string, got {name!r}")
    if name.startswith(INTERNAL_PREFIX):
        raise ConstructionError(f"Slice name {name!r} uses the reserved prefix")
    if initial_state is None:
        raise ConstructionError(f"Slice {name!r} needs an initial state other than None")

    handlers: Dict[str, TransitionBody] = {}
    creators: Dict[str, ActionCreator] = {}

    for key, spec in _transition_items(transitions):
        if not isinstance(key, str) or not key:
            raise ConstructionError(
                f"Transition keys of slice {name!r} must be non-empty strings, got {key!r}"
            )
        if "/" in key:
            raise ConstructionError(f"Transition key {key!r} must not contain '/'")
        if key in creators:
            raise ConstructionError(f"Duplicate transition {key!r} in slice {name!r}")

        kind = f"{name}/{key}"
        handlers[kind] = _check_body(kind, spec)
        prepare = spec.prepare if isinstance(spec, Transition) else None
        creators[key] = ActionCreator(kind, prepare)

    for target, body in (extra_transitions or {}).items():
        kind = target.kind if isinstance(target, ActionCreator) else target
        if not isinstance(kind, str) or not kind:
            raise ConstructionError(
                f"Extra transitions of slice {name!r} need action kinds, got {target!r}"
            )
        if kind in handlers:
            raise ConstructionError(
                f"Slice {name!r} already handles {kind!r}; extra transitions "
                "cannot override its own"
            )
        handlers[kind] = _check_body(kind, body)

    logging.debug(f"Defined slice {name!r} handling {list(handlers)}")
    return Slice(name, initial_state, handlers, ActionCreators(creators))


__all__ = ["Slice", "Transition", "define_slice"]
