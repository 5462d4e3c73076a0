"""
Strata Errors
=============

Every failure the store reports derives from `StrataError`, so callers can catch
the whole family at once or pick the one they care about:

- `ConstructionError`: a slice or store was defined incorrectly. Raised by
  `define_slice`, `combine_reducers` and `create_store`, before any dispatch.
- `ReducerFault`: a transition raised or produced an invalid result. The stored
  state is left exactly as it was before the failed dispatch.
- `ReentrantDispatchError`: `dispatch` was called while a dispatch was already
  in flight on the same store and thread.
- `InvalidActionError`: something that is not an `Action` was dispatched.

Dispatching an action no slice knows about is never an error.
"""

from typing import Any, Optional


class StrataError(Exception):
    """Base class for all errors raised by strata."""

    pass


class ConstructionError(StrataError, ValueError):
    """Raised when a slice, reducer map or store is defined incorrectly."""

    pass


class ReducerFault(StrataError):
    """
    Raised when a transition function fails during dispatch.

    The original exception (if any) is chained as ``__cause__``.

    Attributes:
        action: The action that was being dispatched.
        slice_name: Name of the slice whose transition failed, when known.
    """

    def __init__(
        self, message: str, action: Any = None, slice_name: Optional[str] = None
    ):
        super().__init__(message)
        self.action = action
        self.slice_name = slice_name

    def __str__(self) -> str:
        base = super().__str__()
        kind = getattr(self.action, "kind", None)
        if kind is None:
            return base
        return f"{base} (while reducing {kind!r})"


class ReentrantDispatchError(StrataError, RuntimeError):
    """Raised when the store is used from inside its own in-flight dispatch."""

    pass


class InvalidActionError(StrataError, TypeError):
    """Raised when dispatch receives something that is not an Action."""

    pass


__all__ = [
    "StrataError",
    "ConstructionError",
    "ReducerFault",
    "ReentrantDispatchError",
    "InvalidActionError",
]
