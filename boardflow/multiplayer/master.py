"""
Master - The authoritative side of a multiplayer game.

Clients send the actions they dispatched together with the state_id they
applied them to. The master:
1. Rejects actions from a connection that does not own the acting player
2. Answers stale actions with a full resync
3. Runs everything else through the GameReducer and stores the result

Actions are applied one at a time per master.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any
import logging
import threading

from ..engine_core.action import Action, ActionType, ErrorCode
from ..engine_core.game import GameDefinition, create_game
from ..engine_core.reducer import GameReducer
from ..engine_core.state import LogEntry, State
from ..errors import GameNotFoundError
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)

# Actions a client may forward to the master.
FORWARDED_ACTIONS = frozenset({ActionType.MAKE_MOVE, ActionType.GAME_EVENT})


@dataclass
class UpdateResult:
    """
    Outcome of Master.on_update.

    On STALE_STATE, resync holds the view the client must replace its
    state with.
    """
    success: bool
    state: State | None = None
    error: str | None = None
    error_code: ErrorCode | None = None
    resync: dict[str, Any] | None = None


def redact_log(log: list[LogEntry], player_id: str | None) -> list[LogEntry]:
    """Hide the arguments of redacted moves from everybody but their author."""
    result = []
    for entry in log:
        if entry.redact and entry.action.player_id != player_id:
            action = replace(
                entry.action, payload=replace(entry.action.payload, args=[])
            )
            entry = replace(entry, action=action)
        result.append(entry)
    return result


class Master:
    """
    Authoritative game host.

    Usage:
        master = Master(tic_tac_toe, num_players=2)
        game_id = master.create()
        result = master.on_update(action, state_id=0, game_id=game_id, player_id="0")
    """

    def __init__(
        self,
        game: GameDefinition | dict,
        storage: InMemoryStorage | None = None,
        num_players: int = 2,
    ):
        self.game = create_game(game)
        self.storage = storage or InMemoryStorage()
        self.num_players = num_players
        self.reducer = GameReducer(self.game, num_players=num_players)
        self._lock = threading.Lock()

    def create(self, game_id: str | None = None) -> str:
        """Start a new game and return its id."""
        state = self.reducer(None, Action.init())
        return self.storage.create(state, game_id=game_id)

    def on_update(
        self,
        action: Action,
        state_id: int | None,
        game_id: str,
        player_id: str | None,
    ) -> UpdateResult:
        """Apply an action forwarded by the connection owning player_id."""
        if action.action_type not in FORWARDED_ACTIONS:
            return UpdateResult(
                success=False,
                error=f"{action.action_type.value} cannot be sent to the master",
                error_code=ErrorCode.NO_HANDLER,
            )
        if player_id is not None:
            if action.player_id is None:
                # Acts as the connection's player; the reducer checks the turn
                action = replace(
                    action, payload=replace(action.payload, player_id=str(player_id))
                )
            elif str(player_id) != action.player_id:
                logger.warning(
                    "Connection for player %s sent an action as player %s in game %s",
                    player_id, action.player_id, game_id,
                )
                return UpdateResult(
                    success=False,
                    error=f"Connection is not player {action.player_id}",
                    error_code=ErrorCode.UNAUTHORIZED_PLAYER,
                )

        with self._lock:
            try:
                stored = self.storage.get(game_id)
            except GameNotFoundError as e:
                return UpdateResult(
                    success=False, error=str(e), error_code=ErrorCode.GAME_NOT_FOUND
                )

            state = stored.state
            if state_id is not None and state_id != state._state_id:
                logger.info(
                    "Stale action in game %s: client at %s, master at %d",
                    game_id, state_id, state._state_id,
                )
                return UpdateResult(
                    success=False,
                    state=state,
                    error="Stale state; resync required",
                    error_code=ErrorCode.STALE_STATE,
                    resync=self.on_sync(game_id, player_id),
                )

            action = replace(action, state_id=state._state_id, game_id=game_id)
            result = self.reducer.apply(state, action)
            if not result.success:
                return UpdateResult(
                    success=False,
                    state=state,
                    error=result.error,
                    error_code=result.error_code,
                )

            new_state = result.new_state
            self.storage.set(game_id, new_state, log=new_state.deltalog)
            logger.debug(
                "Game %s advanced to state %d (turn %d, player %s)",
                game_id, new_state._state_id, new_state.ctx.turn,
                new_state.ctx.current_player,
            )
            return UpdateResult(success=True, state=new_state)

    def player_state(self, state: State, player_id: str | None) -> State:
        """State as seen by player_id: player_view applied, redacted log."""
        return state._copy_with(
            G=self.game.player_view(state.G, state.ctx, player_id),
            deltalog=redact_log(state.deltalog, player_id),
            _undo=[],
            _redo=[],
        )

    def on_sync(self, game_id: str, player_id: str | None) -> dict[str, Any]:
        """
        Full view of a game for one player.

        Raises GameNotFoundError for unknown ids.
        """
        stored = self.storage.get(game_id)
        view = self.player_state(stored.state, player_id)
        return {
            "game_id": game_id,
            "state": view.to_dict(),
            "log": [entry.to_dict() for entry in redact_log(stored.log, player_id)],
        }

