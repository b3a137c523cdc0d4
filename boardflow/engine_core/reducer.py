"""
Reducer - Applies actions to game state.

The reducer is the single point of state mutation.
All state changes must go through GameReducer.apply().

Design principles:
- Pure function: (state, action) -> new_state
- Validates before applying
- Returns ActionResult with success/failure
- Delegates phase/turn/stage progression to the Flow
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any
import logging

from .. import plugins
from .action import Action, ActionType, ActionResult, ErrorCode
from .game import GameDefinition, create_game
from .moves import move_options
from .state import LogEntry, Snapshot, State

logger = logging.getLogger(__name__)


@dataclass
class GameReducer:
    """
    Reducer for one game definition.

    Stateless - all state is in State.

    Usage:
        reducer = GameReducer(game, num_players=3)
        state = reducer(None, Action.init())
        state = reducer(state, Action.make_move("click_cell", [4], player_id="0"))

    multiplayer=True is client mode: moves that must run on the server
    (client=False, or a plugin such as the PRNG reporting no_client) are not
    applied locally.
    """
    game: GameDefinition | dict
    num_players: int = 2
    multiplayer: bool = False

    def __post_init__(self):
        self.game = create_game(self.game)

    def __call__(self, state: State | None, action: Action) -> State:
        """New state, or the input state when the action is rejected."""
        result = self.apply(state, action)
        if result.success:
            return result.new_state
        return state

    def apply(self, state: State | None, action: Action) -> ActionResult:
        """
        Apply an action to the game state.

        Returns ActionResult with new state or error.
        """
        if state is None or action.action_type == ActionType.INIT:
            return ActionResult.success_with_state(self.initial_state())

        handler = self._get_handler(action.action_type)
        if not handler:
            return ActionResult.failure(
                f"No handler for action type: {action.action_type}",
                error_code=ErrorCode.NO_HANDLER,
                state=state,
            )

        try:
            result = handler(state, action)
        except Exception as e:
            logger.exception(
                "%s '%s' raised", action.action_type.value, action.payload.type
            )
            return ActionResult.failure(str(e), error_code=ErrorCode.HANDLER_ERROR, state=state)

        if not result.success:
            logger.debug(
                "Rejected %s '%s' from player %s: %s",
                action.action_type.value, action.payload.type,
                action.player_id, result.error,
            )
        return result

    def initial_state(self) -> State:
        """Run plugin setup, game setup and the flow's first phase."""
        game = self.game
        ctx = game.flow.ctx(self.num_players)
        ctx = plugins.setup(ctx, game, game.plugins)

        setup_ctx = plugins.enhance(ctx, game.plugins)
        G = game.setup(setup_ctx)
        ctx = plugins.flush(setup_ctx, game.plugins).detached()

        state = game.flow.init(State(G=G, ctx=ctx))
        logger.debug(
            "Game '%s' initialized for %d players; phase '%s', player %s",
            game.name, self.num_players, state.ctx.phase, state.ctx.current_player,
        )
        return state._copy_with(deltalog=[], _undo=[], _redo=[], _state_id=0)

    def _get_handler(self, action_type: ActionType):
        """Get the handler function for an action type."""
        handlers = {
            ActionType.MAKE_MOVE: self._handle_make_move,
            ActionType.GAME_EVENT: self._handle_game_event,
            ActionType.UNDO: self._handle_undo,
            ActionType.REDO: self._handle_redo,
            ActionType.SYNC: self._handle_sync,
            ActionType.UPDATE: self._handle_update,
        }
        return handlers.get(action_type)

    @staticmethod
    def _is_stale(state: State, action: Action) -> bool:
        return action.state_id is not None and action.state_id != state._state_id

    @staticmethod
    def _settle_stacks(before: State, after: State) -> State:
        """Undo/redo history does not survive a turn change."""
        if after.ctx.turn != before.ctx.turn:
            return after._copy_with(_undo=[], _redo=[])
        return after

    def _handle_make_move(self, state: State, action: Action) -> ActionResult:
        """Handle a move."""
        G, ctx = state.G, state.ctx
        flow = self.game.flow
        name = action.payload.type

        if ctx.is_over:
            return ActionResult.failure("Game is over", ErrorCode.GAME_OVER, state)

        move = self.game.get_move(ctx, name, action.player_id)
        if move is None:
            return ActionResult.failure(
                f"Unknown move '{name}' in phase '{ctx.phase}'",
                ErrorCode.UNKNOWN_MOVE,
                state,
            )
        if not flow.can_make_move(G, ctx, name):
            return ActionResult.failure(
                f"Move '{name}' is not allowed now", ErrorCode.MOVE_NOT_ALLOWED, state
            )
        if self._is_stale(state, action):
            return ActionResult.failure(
                f"Stale action: expected state {state._state_id}, got {action.state_id}",
                ErrorCode.STALE_STATE,
                state,
            )
        if action.player_id is not None and not flow.can_player_make_move(
            G, ctx, action.player_id
        ):
            return ActionResult.failure(
                f"Player {action.player_id} may not move now",
                ErrorCode.NOT_ACTIVE_PLAYER,
                state,
            )

        options = move_options(move)
        if self.multiplayer and options is not None and not options.client:
            return ActionResult.failure(
                f"Move '{name}' runs on the server only", ErrorCode.CLIENT_SKIPPED, state
            )

        outcome = self.game.run_move(G, action, ctx)
        if self.multiplayer and outcome.no_client:
            return ActionResult.failure(
                f"Move '{name}' used server-side randomness", ErrorCode.CLIENT_SKIPPED, state
            )

        snapshot = Snapshot(G=G, ctx=ctx, move_type=name)
        if options is not None and options.undoable is False:
            undo = []
        else:
            undo = [*state._undo, snapshot]

        entry = LogEntry(
            action=action,
            _state_id=state._state_id,
            turn=ctx.turn,
            phase=ctx.phase,
            redact=options.is_redacted(G, ctx) if options is not None else False,
        )
        new_state = state._copy_with(
            G=outcome.G,
            ctx=outcome.ctx,
            deltalog=[entry],
            _undo=undo,
            _redo=[],
        )
        new_state = flow.process_move(new_state, action, outcome.events)
        new_state = self._settle_stacks(state, new_state)
        return ActionResult.success_with_state(
            new_state._copy_with(_state_id=state._state_id + 1)
        )

    def _handle_game_event(self, state: State, action: Action) -> ActionResult:
        """Handle a directly dispatched event (end_turn, end_phase, ...)."""
        flow = self.game.flow
        name = action.payload.type

        if state.ctx.is_over:
            return ActionResult.failure("Game is over", ErrorCode.GAME_OVER, state)
        if name not in flow.event_names:
            return ActionResult.failure(
                f"Unknown event '{name}'", ErrorCode.UNKNOWN_EVENT, state
            )
        if name not in flow.enabled_events:
            return ActionResult.failure(
                f"Event '{name}' is disabled", ErrorCode.EVENT_DISABLED, state
            )
        if self._is_stale(state, action):
            return ActionResult.failure(
                f"Stale action: expected state {state._state_id}, got {action.state_id}",
                ErrorCode.STALE_STATE,
                state,
            )
        if action.player_id is not None and not flow.can_player_call_event(
            state.G, state.ctx, action.player_id
        ):
            return ActionResult.failure(
                f"Player {action.player_id} may not call '{name}' now",
                ErrorCode.NOT_ACTIVE_PLAYER,
                state,
            )

        entry = LogEntry(
            action=action,
            _state_id=state._state_id,
            turn=state.ctx.turn,
            phase=state.ctx.phase,
        )
        base = state._copy_with(deltalog=[entry])
        new_state = flow.process_game_event(base, action)
        if new_state is base:
            return ActionResult.failure(
                f"Event '{name}' had no effect", ErrorCode.EVENT_IGNORED, state
            )
        new_state = self._settle_stacks(state, new_state)
        return ActionResult.success_with_state(
            new_state._copy_with(_state_id=state._state_id + 1)
        )

    def _check_history_player(self, state: State, action: Action) -> ActionResult | None:
        if action.player_id is not None and not self.game.flow.can_player_make_move(
            state.G, state.ctx, action.player_id
        ):
            return ActionResult.failure(
                f"Player {action.player_id} may not undo or redo now",
                ErrorCode.NOT_ACTIVE_PLAYER,
                state,
            )
        return None

    def _handle_undo(self, state: State, action: Action) -> ActionResult:
        """Restore the snapshot taken before the last move."""
        if state.ctx.is_over:
            return ActionResult.failure("Game is over", ErrorCode.GAME_OVER, state)
        if not state._undo:
            return ActionResult.failure("Nothing to undo", ErrorCode.NOTHING_TO_UNDO, state)
        rejected = self._check_history_player(state, action)
        if rejected:
            return rejected

        last = state._undo[-1]
        options = move_options(self.game.get_move(last.ctx, last.move_type))
        if options is not None and not options.is_undoable(state.G, state.ctx):
            return ActionResult.failure(
                f"Move '{last.move_type}' cannot be undone", ErrorCode.NOT_UNDOABLE, state
            )

        current = Snapshot(G=state.G, ctx=state.ctx, move_type=last.move_type)
        return ActionResult.success_with_state(state._copy_with(
            G=last.G,
            ctx=last.ctx,
            deltalog=[self._history_entry(state, action)],
            _undo=state._undo[:-1],
            _redo=[*state._redo, current],
            _state_id=state._state_id + 1,
        ))

    def _handle_redo(self, state: State, action: Action) -> ActionResult:
        """Re-apply the most recently undone move."""
        if state.ctx.is_over:
            return ActionResult.failure("Game is over", ErrorCode.GAME_OVER, state)
        if not state._redo:
            return ActionResult.failure("Nothing to redo", ErrorCode.NOTHING_TO_REDO, state)
        rejected = self._check_history_player(state, action)
        if rejected:
            return rejected

        last = state._redo[-1]
        current = Snapshot(G=state.G, ctx=state.ctx, move_type=last.move_type)
        return ActionResult.success_with_state(state._copy_with(
            G=last.G,
            ctx=last.ctx,
            deltalog=[self._history_entry(state, action)],
            _undo=[*state._undo, current],
            _redo=state._redo[:-1],
            _state_id=state._state_id + 1,
        ))

    @staticmethod
    def _history_entry(state: State, action: Action) -> LogEntry:
        return LogEntry(
            action=action,
            _state_id=state._state_id,
            turn=state.ctx.turn,
            phase=state.ctx.phase,
        )

    @staticmethod
    def _incoming_state(action: Action) -> State | None:
        incoming: Any = action.payload.state
        if isinstance(incoming, dict):
            incoming = State.from_dict(incoming)
        return incoming if isinstance(incoming, State) else None

    def _handle_sync(self, state: State, action: Action) -> ActionResult:
        """Replace local state with the server's."""
        incoming = self._incoming_state(action)
        if incoming is None:
            return ActionResult.failure("SYNC carries no state", ErrorCode.INVALID_STATE, state)
        return ActionResult.success_with_state(incoming)

    def _handle_update(self, state: State, action: Action) -> ActionResult:
        """Replace local state with a server update unless it is older."""
        incoming = self._incoming_state(action)
        if incoming is None:
            return ActionResult.failure("UPDATE carries no state", ErrorCode.INVALID_STATE, state)
        if incoming._state_id < state._state_id:
            return ActionResult.failure(
                f"Update for state {incoming._state_id} is older than {state._state_id}",
                ErrorCode.STALE_STATE,
                state,
            )
        if action.payload.deltalog is not None:
            incoming = incoming._copy_with(deltalog=list(action.payload.deltalog))
        return ActionResult.success_with_state(incoming)


def create_game_reducer(
    game: GameDefinition | dict, num_players: int = 2, multiplayer: bool = False
) -> GameReducer:
    """
    Convenience function to build a reducer.

    Normalizes the game (idempotently) and wraps it in a GameReducer.
    """
    return GameReducer(game=game, num_players=num_players, multiplayer=multiplayer)
