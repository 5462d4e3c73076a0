"""
Strata Actions
==============

An action is an opaque description of an intended state change: a `kind`
string plus an optional `payload`. The dispatcher never looks at anything else.

Action creators are built once per slice when the slice is defined. Each one
knows the fully qualified kind it produces (``"<slice>/<key>"``) and can
recognise its own actions:

```python
add = ActionCreator("todos/add")
action = add("buy milk")          # Action(kind='todos/add', payload='buy milk')
add.match(action)                 # True
```

A creator may carry a `prepare` callback that turns arbitrary call arguments
into the payload, which is where id generation and other argument massaging
belongs (never inside the transition itself).
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, Mapping, Optional

from .errors import InvalidActionError

# Internal action kinds. The prefix keeps them clear of any "<slice>/<key>" kind.
INTERNAL_PREFIX = "@@strata/"
INIT = INTERNAL_PREFIX + "INIT"
REPLACE = INTERNAL_PREFIX + "REPLACE"


@dataclass(frozen=True, slots=True)
class Action:
    """Immutable action with a kind and an optional payload."""

    kind: str
    payload: Any = None

    def to_dict(self) -> Dict[str, Any]:
        """Plain ``{"kind": ..., "payload": ...}`` form."""
        return {"kind": self.kind, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Action":
        """Build an action from its plain mapping form."""
        try:
            kind = data["kind"]
        except (KeyError, TypeError):
            raise InvalidActionError(
                f"Action mappings need a 'kind' entry, got {data!r}"
            ) from None
        if not isinstance(kind, str):
            raise InvalidActionError(f"Action kind must be a string, got {kind!r}")
        return cls(kind, data.get("payload"))

    @property
    def is_internal(self) -> bool:
        return self.kind.startswith(INTERNAL_PREFIX)

    def __repr__(self) -> str:
        if self.payload is None:
            return f"Action({self.kind!r})"
        return f"Action({self.kind!r}, {self.payload!r})"


class ActionCreator:
    """Callable that builds actions of a single kind."""

    __slots__ = ("kind", "_prepare")

    def __init__(self, kind: str, prepare: Optional[Callable[..., Any]] = None):
        self.kind = kind
        self._prepare = prepare

    def __call__(self, *args: Any, **kwargs: Any) -> Action:
        if self._prepare is not None:
            return Action(self.kind, self._prepare(*args, **kwargs))

        if kwargs or len(args) > 1:
            raise TypeError(
                f"Action creator {self.kind!r} takes at most one payload argument; "
                "configure a prepare callback to accept more"
            )
        return Action(self.kind, args[0] if args else None)

    def match(self, action: Any) -> bool:
        """True if `action` was produced for this creator's kind."""
        return isinstance(action, Action) and action.kind == self.kind

    def __repr__(self) -> str:
        return f"ActionCreator({self.kind!r})"


class ActionCreators(Mapping[str, ActionCreator]):
    """
    Fixed table of a slice's action creators, keyed by transition key.

    Readable as a mapping (``actions["add"]``) and by attribute
    (``actions.add``). The table is frozen once built.
    """

    __slots__ = ("_table",)

    def __init__(self, creators: Mapping[str, ActionCreator]):
        object.__setattr__(self, "_table", MappingProxyType(dict(creators)))

    def __getitem__(self, key: str) -> ActionCreator:
        return self._table[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def __getattr__(self, name: str) -> ActionCreator:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._table[name]
        except KeyError:
            raise AttributeError(f"No action creator named {name!r}") from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("ActionCreators tables are read-only")

    def __repr__(self) -> str:
        return f"ActionCreators({', '.join(self._table)})"


__all__ = [
    "Action",
    "ActionCreator",
    "ActionCreators",
    "INIT",
    "REPLACE",
    "INTERNAL_PREFIX",
]
