"""
Client transport adapter.

A Store holds the local state and runs the reducer; Multiplayer hooks the
store to a socket so that moves and events are forwarded to the master and
full-state "sync" messages from the master replace the local state.

The socket is anything with:
    emit(event: str, message: dict)
    on(event: str, handler: Callable[[Any], None])

It receives "sync" (full view after a resync request) and "update" (view
after any player's action) messages shaped like Master.on_sync().
"""

from __future__ import annotations
from dataclasses import replace
from typing import Any, Callable, Protocol
import logging

from ..engine_core.action import Action, ActionType
from ..engine_core.reducer import GameReducer
from ..engine_core.state import State

logger = logging.getLogger(__name__)

# Actions forwarded to the master when dispatched locally.
WHITELISTED_ACTIONS = frozenset({ActionType.MAKE_MOVE, ActionType.GAME_EVENT})


class Socket(Protocol):
    def emit(self, event: str, message: dict[str, Any]) -> Any: ...
    def on(self, event: str, handler: Callable[[Any], None]) -> Any: ...


class Store:
    """Local state container: dispatch runs the reducer and notifies listeners."""

    def __init__(self, reducer: Callable[[State | None, Action], State], state: State | None = None):
        self._reducer = reducer
        self._state = state if state is not None else reducer(None, Action.init())
        self._listeners: list[Callable[[State], None]] = []
        self._middleware: list[Callable[[State, Action, State], None]] = []

    def get_state(self) -> State:
        return self._state

    def dispatch(self, action: Action) -> State:
        before = self._state
        self._state = self._reducer(before, action)
        for hook in self._middleware:
            hook(before, action, self._state)
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    def subscribe(self, listener: Callable[[State], None]) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def use(self, hook: Callable[[State, Action, State], None]) -> None:
        """Run hook(before, action, after) after every dispatch."""
        self._middleware.append(hook)


class Multiplayer:
    """
    Connects a Store to the master over a socket.

    Usage:
        transport = Multiplayer(socket, game_id="abc123", player_id="0")
        store = transport.create_store(GameReducer(game, multiplayer=True))
        store.dispatch(Action.make_move("click_cell", [4], player_id="0"))
    """

    def __init__(self, socket: Socket, game_id: str = "default", player_id: str | None = None):
        self.socket = socket
        self.game_id = game_id
        self.player_id = None if player_id is None else str(player_id)
        self.store: Store | None = None

    def create_store(self, reducer: GameReducer | Callable) -> Store:
        store = Store(reducer)
        store.use(self._forward)
        self.socket.on("sync", self.on_sync)
        self.socket.on("update", self.on_update)
        self.store = store
        return store

    def _forward(self, before: State, action: Action, after: State) -> None:
        # Forwarded even when rejected locally: server-only moves are skipped
        # on the client and still have to reach the master.
        if action.action_type not in WHITELISTED_ACTIONS:
            return
        tagged = replace(action, state_id=before._state_id, game_id=self.game_id)
        self.socket.emit("action", {
            "action": tagged.to_dict(),
            "state_id": before._state_id,
            "game_id": self.game_id,
            "player_id": self.player_id,
        })

    def on_sync(self, message: Any) -> None:
        """Replace local state with the master's view."""
        if self.store is None:
            return
        state = message
        if isinstance(state, dict) and "state" in state:
            state = state["state"]
        if isinstance(state, dict):
            state = State.from_dict(state)
        logger.debug("Sync for game %s at state %s", self.game_id, state._state_id)
        self.store.dispatch(Action.sync(state))

    def on_update(self, message: dict[str, Any]) -> None:
        """Apply a state the master broadcast after someone's action."""
        if self.store is None:
            return
        state = message["state"]
        if isinstance(state, dict):
            state = State.from_dict(state)
        self.store.dispatch(Action.update(state))

    def _request_sync(self) -> None:
        self.socket.emit("sync", {"game_id": self.game_id, "player_id": self.player_id})

    def update_game_id(self, game_id: str) -> None:
        self.game_id = game_id
        self._request_sync()

    def update_player_id(self, player_id: str | None) -> None:
        self.player_id = None if player_id is None else str(player_id)
        self._request_sync()
