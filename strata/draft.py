"""
Strata Drafts - Copy-on-Write Transitions
=========================================

Transition bodies are written as if they mutate state in place:

```python
def add(state, action):
    state["items"].append(action.payload)
```

but the state they receive is a *draft*: a thin wrapper that records writes into
a private shallow copy and leaves the original object untouched. When the body
returns, the draft is finalised into a new value that shares every untouched
child with the original by reference. If nothing was written, finalisation
returns the original object itself, which is what lets the composer and the
selector subscriptions detect "no change" with a cheap identity check.

Draftable values:

- ``dict`` (and subclasses, copied with ``copy.copy``)
- ``list`` (and subclasses)
- dataclass instances, frozen or not (rebuilt with ``dataclasses.replace``)

Anything else (numbers, strings, tuples, numpy arrays, ...) is handed to the
body as-is and must be replaced by returning a new value.

Drafts are revoked once their transition finishes; touching one afterwards
raises `RuntimeError`.
"""

import copy
import dataclasses
from collections.abc import MutableMapping, MutableSequence
from typing import Any, Callable, Dict, Iterator, List, Optional

from .errors import ReducerFault

_UNSET = object()


def is_draftable(value: Any) -> bool:
    """True if `value` can be wrapped in a draft."""
    if isinstance(value, (dict, list)):
        return True
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def is_draft(value: Any) -> bool:
    return isinstance(value, Draft)


def create_draft(value: Any) -> "Draft":
    """Wrap a draftable value in the matching draft type."""
    if isinstance(value, dict):
        return DraftDict(value)
    if isinstance(value, list):
        return DraftList(value)
    if is_draftable(value):
        return DraftObject(value)
    raise TypeError(f"Cannot create a draft of {type(value).__name__}")


# ============================================================================
# DRAFT TYPES
# ============================================================================


class Draft:
    """
    Common machinery for copy-on-write drafts.

    `_base` is the original value and is never written to. `_copy` is created
    on the first write (or the first read of a draftable child, so the child
    draft can be remembered) and holds child drafts until finalisation.
    """

    __slots__ = ("_base", "_copy", "_revoked", "_result")

    def __init__(self, base: Any):
        object.__setattr__(self, "_base", base)
        object.__setattr__(self, "_copy", None)
        object.__setattr__(self, "_revoked", False)
        object.__setattr__(self, "_result", _UNSET)

    def _check(self) -> None:
        if self._revoked:
            raise RuntimeError(
                f"{type(self).__name__} used after its transition finished; "
                "transitions must not keep references to their draft"
            )

    def _finalize(self, revoke: bool = True) -> Any:
        # A draft placed at two positions in the tree is finalised once.
        if self._result is not _UNSET:
            return self._result
        if revoke:
            self._check()
        result = self._build(revoke)
        if revoke:
            object.__setattr__(self, "_result", result)
            object.__setattr__(self, "_revoked", True)
        return result

    def _build(self, revoke: bool) -> Any:
        raise NotImplementedError

    def _children(self) -> List["Draft"]:
        raise NotImplementedError

    def _revoke(self) -> None:
        if self._revoked:
            return
        object.__setattr__(self, "_revoked", True)
        for child in self._children():
            child._revoke()

    def _peek(self) -> Any:
        """Finalised view of the draft that keeps it usable."""
        return self._finalize(revoke=False)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Draft):
            other = other._peek()
        return self._peek() == other

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._peek()!r})"


class DraftDict(Draft, MutableMapping):
    """Draft of a dict."""

    __slots__ = ()

    def _current(self) -> dict:
        return self._base if self._copy is None else self._copy

    def _ensure_copy(self) -> dict:
        self._check()
        if self._copy is None:
            object.__setattr__(self, "_copy", copy.copy(self._base))
        return self._copy

    def __getitem__(self, key: Any) -> Any:
        self._check()
        value = self._current()[key]
        if isinstance(value, Draft) or not is_draftable(value):
            return value
        child = create_draft(value)
        self._ensure_copy()[key] = child
        return child

    def __setitem__(self, key: Any, value: Any) -> None:
        self._ensure_copy()[key] = value

    def __delitem__(self, key: Any) -> None:
        del self._ensure_copy()[key]

    def __iter__(self) -> Iterator[Any]:
        self._check()
        return iter(list(self._current()))

    def __len__(self) -> int:
        self._check()
        return len(self._current())

    def __contains__(self, key: Any) -> bool:
        self._check()
        return key in self._current()

    def _children(self) -> List[Draft]:
        if self._copy is None:
            return []
        return [v for v in self._copy.values() if isinstance(v, Draft)]

    def _build(self, revoke: bool) -> Any:
        base = self._base
        if self._copy is None:
            return base

        out = copy.copy(self._copy)
        for key in list(out):
            value = out[key]
            # Values still shared with the original hold no drafts.
            if key in base and base[key] is value:
                continue
            out[key] = finalize_value(value, revoke)

        if len(out) == len(base) and all(
            key in base and base[key] is value for key, value in out.items()
        ):
            return base
        return out


class DraftList(Draft, MutableSequence):
    """Draft of a list."""

    __slots__ = ()

    def _current(self) -> list:
        return self._base if self._copy is None else self._copy

    def _ensure_copy(self) -> list:
        self._check()
        if self._copy is None:
            object.__setattr__(self, "_copy", copy.copy(self._base))
        return self._copy

    def __getitem__(self, index: Any) -> Any:
        self._check()
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(len(self)))]
        value = self._current()[index]
        if isinstance(value, Draft) or not is_draftable(value):
            return value
        child = create_draft(value)
        self._ensure_copy()[index] = child
        return child

    def __setitem__(self, index: Any, value: Any) -> None:
        self._ensure_copy()[index] = value

    def __delitem__(self, index: Any) -> None:
        del self._ensure_copy()[index]

    def __len__(self) -> int:
        self._check()
        return len(self._current())

    def insert(self, index: int, value: Any) -> None:
        self._ensure_copy().insert(index, value)

    def sort(self, *, key: Optional[Callable[[Any], Any]] = None, reverse: bool = False):
        self._ensure_copy().sort(key=key, reverse=reverse)

    def _children(self) -> List[Draft]:
        if self._copy is None:
            return []
        return [v for v in self._copy if isinstance(v, Draft)]

    def _build(self, revoke: bool) -> Any:
        base = self._base
        if self._copy is None:
            return base

        shared = {id(item) for item in base}
        out = copy.copy(self._copy)
        for i, value in enumerate(out):
            if id(value) not in shared:
                out[i] = finalize_value(value, revoke)

        if len(out) == len(base) and all(a is b for a, b in zip(out, base)):
            return base
        return out


class DraftObject(Draft):
    """
    Draft of a dataclass instance.

    Field writes are collected in `_copy` (field name -> value) and applied with
    `dataclasses.replace` on finalisation, so frozen dataclasses work too.
    Methods and properties are looked up on the original instance.
    """

    __slots__ = ()

    def _fields(self) -> Dict[str, dataclasses.Field]:
        return {f.name: f for f in dataclasses.fields(self._base)}

    def __getattr__(self, name: str) -> Any:
        # Only reached for names that are not slots of the draft itself.
        if name.startswith("__"):
            raise AttributeError(name)
        self._check()
        changes = self._copy
        if changes is not None and name in changes:
            return changes[name]
        value = getattr(self._base, name)
        if name not in self._fields() or not is_draftable(value):
            return value
        child = create_draft(value)
        self._changes()[name] = child
        return child

    def __setattr__(self, name: str, value: Any) -> None:
        if name not in self._fields():
            raise AttributeError(
                f"{type(self._base).__name__} has no field {name!r}"
            )
        self._changes()[name] = value

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"Cannot delete field {name!r} of a dataclass draft")

    def _changes(self) -> Dict[str, Any]:
        self._check()
        if self._copy is None:
            object.__setattr__(self, "_copy", {})
        return self._copy

    def _children(self) -> List[Draft]:
        if self._copy is None:
            return []
        return [v for v in self._copy.values() if isinstance(v, Draft)]

    def _build(self, revoke: bool) -> Any:
        base = self._base
        if not self._copy:
            return base

        changes = {
            name: finalize_value(value, revoke) for name, value in self._copy.items()
        }
        changes = {
            name: value
            for name, value in changes.items()
            if getattr(base, name) is not value
        }
        if not changes:
            return base
        return _replace_fields(base, changes)


def _replace_fields(instance: Any, changes: Dict[str, Any]) -> Any:
    fields = {f.name: f for f in dataclasses.fields(instance)}
    init_changes = {k: v for k, v in changes.items() if fields[k].init}
    result = dataclasses.replace(instance, **init_changes)
    for name, value in changes.items():
        if not fields[name].init:
            object.__setattr__(result, name, value)
    return result


# ============================================================================
# FINALISATION
# ============================================================================


def finalize_value(value: Any, revoke: bool = True) -> Any:
    """
    Resolve any drafts contained in `value`.

    Drafts are finalised; plain containers built inside a transition are walked
    so that drafts placed into them (``[t for t in state["todos"] if ...]``)
    are replaced by their finalised values. Containers with no drafts inside are
    returned as the same object.
    """
    if isinstance(value, Draft):
        return value._finalize(revoke)

    if isinstance(value, MutableMapping):
        resolved = {k: finalize_value(v, revoke) for k, v in value.items()}
        if all(resolved[k] is v for k, v in value.items()):
            return value
        if type(value) is dict:
            return resolved
        # Subclasses (OrderedDict, defaultdict, ...) keep their type and extras.
        out = copy.copy(value)
        for k, v in resolved.items():
            if v is not value[k]:
                out[k] = v
        return out

    if isinstance(value, MutableSequence):
        resolved = [finalize_value(v, revoke) for v in value]
        if all(a is b for a, b in zip(resolved, value)):
            return value
        if type(value) is list:
            return resolved
        out = copy.copy(value)
        for i, v in enumerate(resolved):
            if v is not value[i]:
                out[i] = v
        return out

    if isinstance(value, tuple):
        items = [finalize_value(v, revoke) for v in value]
        if all(a is b for a, b in zip(items, value)):
            return value
        if hasattr(value, "_make"):
            return value._make(items)
        return type(value)(items)

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        changes = {}
        for field in dataclasses.fields(value):
            current = getattr(value, field.name)
            resolved = finalize_value(current, revoke)
            if resolved is not current:
                changes[field.name] = resolved
        return _replace_fields(value, changes) if changes else value

    return value


def current(draft: Any) -> Any:
    """Snapshot of a draft's current contents, leaving the draft usable."""
    if not isinstance(draft, Draft):
        return draft
    draft._check()
    return draft._peek()


def original(draft: Any) -> Any:
    """The value a draft was created from."""
    if not isinstance(draft, Draft):
        return draft
    return draft._base


def produce(state: Any, body: Callable[..., Any], *args: Any) -> Any:
    """
    Run `body(draft, *args)` against `state` with copy-on-write semantics.

    Returns the next value. The rules for the body's return value:

    - ``None`` (or the draft itself): the finalised draft is the result. For a
      non-draftable `state` this means "unchanged".
    - anything else: that value is the result, provided the draft was left
      untouched. Writing to the draft *and* returning a different value is a
      `ReducerFault`.
    """
    if not is_draftable(state):
        result = body(state, *args)
        return state if result is None else finalize_value(result)

    draft = create_draft(state)
    try:
        result = body(draft, *args)
        if result is None or result is draft:
            return draft._finalize()
        if draft._peek() is not state:
            raise ReducerFault(
                "Transition modified its draft and also returned a new value; "
                "do one or the other"
            )
        return finalize_value(result)
    finally:
        draft._revoke()


__all__ = [
    "Draft",
    "DraftDict",
    "DraftList",
    "DraftObject",
    "create_draft",
    "current",
    "finalize_value",
    "is_draft",
    "is_draftable",
    "original",
    "produce",
]
