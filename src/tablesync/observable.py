from __future__ import annotations

import dataclasses
from contextlib import contextmanager
from typing import Any, Callable, Generic, Iterator, TypeVar

from .logger import get_logger

logger = get_logger(__name__)

StateT = TypeVar("StateT")
Listener = Callable[[StateT, StateT], None]


class StateContainer(Generic[StateT]):
    """Holds an immutable state snapshot and notifies subscribers on change.

    Every transition swaps the whole snapshot, so listeners never observe a
    half-applied update. Updates made inside ``batch()`` are coalesced into a
    single notification when the outermost batch exits.
    """

    def __init__(self, initial: StateT) -> None:
        self._state = initial
        self._listeners: list[Listener[StateT]] = []
        self._batch_depth = 0
        self._batch_origin: StateT | None = None

    @property
    def state(self) -> StateT:
        return self._state

    def subscribe(self, listener: Listener[StateT]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update(self, **changes: Any) -> StateT:
        previous = self._state
        updated = dataclasses.replace(previous, **changes)
        if updated == previous:
            return previous
        self._state = updated
        if self._batch_depth == 0:
            self._emit(updated, previous)
        return updated

    @contextmanager
    def batch(self) -> Iterator[StateT]:
        if self._batch_depth == 0:
            self._batch_origin = self._state
        self._batch_depth += 1
        try:
            yield self._state
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                origin = self._batch_origin
                self._batch_origin = None
                if origin is not None and origin != self._state:
                    self._emit(self._state, origin)

    def _emit(self, new_state: StateT, old_state: StateT) -> None:
        for listener in list(self._listeners):
            try:
                listener(new_state, old_state)
            except Exception:
                logger.exception("State listener %r failed", listener)
