"""
Strata - Predictable State Containers

A single state tree, updated only by pure transitions that are written as
in-place edits of a copy-on-write draft, with subscriptions that fire only when
the part of the tree an observer selects actually changed.
"""

from .actions import Action, ActionCreator, ActionCreators
from .combine import CombinedReducer, combine_reducers
from .draft import current, is_draft, original, produce
from .errors import (
    ConstructionError,
    InvalidActionError,
    ReducerFault,
    ReentrantDispatchError,
    StrataError,
)
from .selectors import (
    MemoizedSelector,
    Subscription,
    bind_action_creators,
    bind_dispatch,
    create_selector,
    deep_equal,
    is_same_value,
    observe,
)
from .slice import Slice, Transition, define_slice
from .store import (
    LoggingMiddleware,
    MiddlewareAPI,
    Store,
    StoreConfig,
    create_store,
    logging_middleware,
)

__version__ = "0.1.0"

__all__ = [
    # Actions
    "Action",
    "ActionCreator",
    "ActionCreators",
    # Slices and composition
    "Slice",
    "Transition",
    "define_slice",
    "CombinedReducer",
    "combine_reducers",
    # Drafts
    "produce",
    "current",
    "original",
    "is_draft",
    # Store
    "Store",
    "StoreConfig",
    "create_store",
    "MiddlewareAPI",
    "LoggingMiddleware",
    "logging_middleware",
    # Selectors
    "Subscription",
    "observe",
    "bind_dispatch",
    "bind_action_creators",
    "MemoizedSelector",
    "create_selector",
    "is_same_value",
    "deep_equal",
    # Exceptions
    "StrataError",
    "ConstructionError",
    "ReducerFault",
    "ReentrantDispatchError",
    "InvalidActionError",
]
