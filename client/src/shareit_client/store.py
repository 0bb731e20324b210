"""Application store: owns the state tree and serializes every change."""

import logging
from typing import Callable

from .actions import Action
from .reducers import reduce
from .state import AppState

logger = logging.getLogger(__name__)

Listener = Callable[[AppState], None]
Reducer = Callable[[AppState, Action], AppState]


class Store:
    """Holds one AppState. The only way to change it is dispatch()."""

    def __init__(self, reducer: Reducer = reduce, initial_state: AppState | None = None):
        self._reducer = reducer
        self._state = initial_state or AppState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> AppState:
        return self._state

    def dispatch(self, action: Action) -> AppState:
        """Apply an action and notify listeners if the state changed."""
        try:
            new_state = self._reducer(self._state, action)
        except Exception:
            logger.exception("Reducer failed on %s, state left unchanged", action.type)
            return self._state

        if new_state is self._state:
            return new_state
        self._state = new_state
        logger.debug("Applied %s", action.type)

        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("State listener failed")
        return new_state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
