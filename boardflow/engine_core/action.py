"""
Action System - Actions, payloads, and results.

Actions represent:
1. Player moves (MAKE_MOVE, payload.type is the move name)
2. Game events (GAME_EVENT, payload.type is the event name)
3. History navigation (UNDO / REDO)
4. Transport actions (SYNC / UPDATE replace local state from the server)

All state changes flow through actions.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ActionType(str, Enum):
    """Types of actions understood by the reducer."""
    INIT = "init"
    MAKE_MOVE = "MAKE_MOVE"
    GAME_EVENT = "GAME_EVENT"
    UNDO = "UNDO"
    REDO = "REDO"

    # Transport
    SYNC = "SYNC"
    UPDATE = "UPDATE"


class ErrorCode(str, Enum):
    """Why an action was rejected."""
    GAME_OVER = "GAME_OVER"
    UNKNOWN_MOVE = "UNKNOWN_MOVE"
    MOVE_NOT_ALLOWED = "MOVE_NOT_ALLOWED"
    UNKNOWN_EVENT = "UNKNOWN_EVENT"
    EVENT_DISABLED = "EVENT_DISABLED"
    EVENT_IGNORED = "EVENT_IGNORED"
    STALE_STATE = "STALE_STATE"
    NOT_ACTIVE_PLAYER = "NOT_ACTIVE_PLAYER"
    CLIENT_SKIPPED = "CLIENT_SKIPPED"
    NOTHING_TO_UNDO = "NOTHING_TO_UNDO"
    NOTHING_TO_REDO = "NOTHING_TO_REDO"
    NOT_UNDOABLE = "NOT_UNDOABLE"
    INVALID_STATE = "INVALID_STATE"
    NO_HANDLER = "NO_HANDLER"
    HANDLER_ERROR = "HANDLER_ERROR"
    UNAUTHORIZED_PLAYER = "UNAUTHORIZED_PLAYER"
    GAME_NOT_FOUND = "GAME_NOT_FOUND"


@dataclass
class ActionPayload:
    """
    Payload for an action.

    For MAKE_MOVE / GAME_EVENT, `type` is the move or event name and `args`
    the positional arguments passed after (G, ctx). SYNC / UPDATE carry a
    full state in `state`.
    """
    type: str | None = None
    args: list[Any] = field(default_factory=list)
    player_id: str | None = None
    state: Any | None = None  # State
    deltalog: list[Any] | None = None


@dataclass
class Action:
    """
    A complete action to be applied to the game state.

    state_id is the _state_id the sender believed current; the reducer
    rejects the action when it does not match. game_id is stamped on by the
    transport.
    """
    action_type: ActionType
    payload: ActionPayload = field(default_factory=ActionPayload)
    state_id: int | None = None
    game_id: str | None = None

    @classmethod
    def init(cls) -> Action:
        """Factory for the initial action."""
        return cls(action_type=ActionType.INIT)

    @classmethod
    def make_move(
        cls,
        name: str,
        args: list[Any] | tuple | None = None,
        player_id: str | int | None = None,
        state_id: int | None = None,
    ) -> Action:
        """Factory for a move."""
        return cls(
            action_type=ActionType.MAKE_MOVE,
            payload=ActionPayload(
                type=name,
                args=_as_args(args),
                player_id=_as_player(player_id),
            ),
            state_id=state_id,
        )

    @classmethod
    def game_event(
        cls,
        name: str,
        args: list[Any] | tuple | None = None,
        player_id: str | int | None = None,
        state_id: int | None = None,
    ) -> Action:
        """Factory for a game event (end_turn, end_phase, ...)."""
        return cls(
            action_type=ActionType.GAME_EVENT,
            payload=ActionPayload(
                type=name,
                args=_as_args(args),
                player_id=_as_player(player_id),
            ),
            state_id=state_id,
        )

    @classmethod
    def undo(cls, player_id: str | int | None = None) -> Action:
        return cls(
            action_type=ActionType.UNDO,
            payload=ActionPayload(player_id=_as_player(player_id)),
        )

    @classmethod
    def redo(cls, player_id: str | int | None = None) -> Action:
        return cls(
            action_type=ActionType.REDO,
            payload=ActionPayload(player_id=_as_player(player_id)),
        )

    @classmethod
    def sync(cls, state: Any) -> Action:
        """Factory for a full-state resync from the server."""
        return cls(action_type=ActionType.SYNC, payload=ActionPayload(state=state))

    @classmethod
    def update(cls, state: Any, deltalog: list[Any] | None = None) -> Action:
        """Factory for a server-pushed state update."""
        return cls(
            action_type=ActionType.UPDATE,
            payload=ActionPayload(state=state, deltalog=deltalog),
        )

    @property
    def player_id(self) -> str | None:
        return self.payload.player_id

    def to_dict(self) -> dict[str, Any]:
        """Wire form. Transport actions carrying a state are not serialized here."""
        return {
            "type": self.action_type.value,
            "payload": {
                "type": self.payload.type,
                "args": list(self.payload.args),
                "player_id": self.payload.player_id,
            },
            "state_id": self.state_id,
            "game_id": self.game_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Action:
        payload = data.get("payload") or {}
        return cls(
            action_type=ActionType(data["type"]),
            payload=ActionPayload(
                type=payload.get("type"),
                args=_as_args(payload.get("args")),
                player_id=_as_player(payload.get("player_id")),
            ),
            state_id=data.get("state_id"),
            game_id=data.get("game_id"),
        )


@dataclass
class ActionResult:
    """
    Result of applying an action.

    Contains:
    - Whether the action was applied
    - New state (the input state when rejected)
    - Error text and code when rejected
    """
    success: bool
    new_state: Any | None = None  # State
    error: str | None = None
    error_code: ErrorCode | None = None

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: ErrorCode | None = None,
        state: Any | None = None,
    ) -> ActionResult:
        """Create a failure result."""
        return cls(success=False, new_state=state, error=error, error_code=error_code)

    @classmethod
    def success_with_state(cls, state: Any) -> ActionResult:
        """Create a success result with new state."""
        return cls(success=True, new_state=state)


def _as_args(args: Any) -> list[Any]:
    if args is None:
        return []
    if isinstance(args, (list, tuple)):
        return list(args)
    return [args]


def _as_player(player_id: Any) -> str | None:
    return None if player_id is None else str(player_id)
