"""
Game State - Engine-owned context plus the opaque game payload.

Design principles:
- Immutable-friendly: transitions build new Ctx/State objects via _copy_with
- Serializable: to_dict/from_dict for the transport and for replays
- Game-agnostic: G belongs to the game's moves, the engine never inspects it
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from .action import Action


@dataclass
class Ctx:
    """
    Engine-owned control state.

    The underscored fields are bookkeeping for the active-players set and
    plugin data. player_id, events and api are only attached while a move or
    hook runs and are never part of a stored Ctx.
    """
    num_players: int
    play_order: list[str] = field(default_factory=list)
    play_order_pos: int = 0
    current_player: str = "0"
    active_players: dict[str, str | None] | None = None
    turn: int = 0
    phase: str = "default"
    num_moves: int = 0
    gameover: Any = None

    _active_players_move_limit: dict[str, int] | None = None
    _active_players_num_moves: dict[str, int] = field(default_factory=dict)
    _prev_active_players: dict[str, Any] | None = None
    _plugins: dict[str, Any] = field(default_factory=dict)

    # Attached while user code runs
    player_id: str | None = field(default=None, compare=False, repr=False)
    events: Any = field(default=None, compare=False, repr=False)
    api: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def action_players(self) -> list[str]:
        """Players currently allowed to submit moves."""
        if self.active_players:
            return list(self.active_players)
        return [self.current_player]

    @property
    def random(self) -> Any:
        """PRNG API injected by the random plugin (only inside moves/hooks)."""
        return self.api.get("random")

    @property
    def _random(self) -> Any:
        return self._plugins.get("random")

    @property
    def is_over(self) -> bool:
        return self.gameover is not None

    def _copy_with(self, **kwargs) -> Ctx:
        """Create a copy with some fields replaced."""
        return replace(self, **kwargs)

    def detached(self) -> Ctx:
        """Drop the attachments that only exist while user code runs."""
        if self.player_id is None and self.events is None and not self.api:
            return self
        return replace(self, player_id=None, events=None, api={})

    def to_dict(self) -> dict[str, Any]:
        return {
            "num_players": self.num_players,
            "play_order": list(self.play_order),
            "play_order_pos": self.play_order_pos,
            "current_player": self.current_player,
            "active_players": (
                dict(self.active_players) if self.active_players is not None else None
            ),
            "turn": self.turn,
            "phase": self.phase,
            "num_moves": self.num_moves,
            "gameover": self.gameover,
            "_active_players_move_limit": self._active_players_move_limit,
            "_active_players_num_moves": dict(self._active_players_num_moves),
            "_prev_active_players": self._prev_active_players,
            "_plugins": dict(self._plugins),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Ctx:
        return cls(
            num_players=data["num_players"],
            play_order=[str(p) for p in data.get("play_order", [])],
            play_order_pos=data.get("play_order_pos", 0),
            current_player=str(data.get("current_player", "0")),
            active_players=data.get("active_players"),
            turn=data.get("turn", 0),
            phase=data.get("phase", "default"),
            num_moves=data.get("num_moves", 0),
            gameover=data.get("gameover"),
            _active_players_move_limit=data.get("_active_players_move_limit"),
            _active_players_num_moves=data.get("_active_players_num_moves") or {},
            _prev_active_players=data.get("_prev_active_players"),
            _plugins=data.get("_plugins") or {},
        )


@dataclass
class Snapshot:
    """An undo/redo stack entry."""
    G: Any
    ctx: Ctx
    move_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"G": self.G, "ctx": self.ctx.to_dict(), "move_type": self.move_type}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Snapshot:
        return cls(G=data["G"], ctx=Ctx.from_dict(data["ctx"]), move_type=data.get("move_type"))


@dataclass
class LogEntry:
    """
    One applied action, for replay and audit.

    redact marks entries whose arguments must be hidden from other players;
    automatic marks transitions the engine triggered on its own.
    """
    action: Action
    _state_id: int
    turn: int
    phase: str
    redact: bool = False
    automatic: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.to_dict(),
            "_state_id": self._state_id,
            "turn": self.turn,
            "phase": self.phase,
            "redact": self.redact,
            "automatic": self.automatic,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LogEntry:
        from .action import Action

        return cls(
            action=Action.from_dict(data["action"]),
            _state_id=data["_state_id"],
            turn=data["turn"],
            phase=data["phase"],
            redact=data.get("redact", False),
            automatic=data.get("automatic", False),
        )


@dataclass
class State:
    """
    Complete authoritative state at a point in time.

    All state changes go through the GameReducer.
    """
    G: Any
    ctx: Ctx
    deltalog: list[LogEntry] = field(default_factory=list)
    _undo: list[Snapshot] = field(default_factory=list)
    _redo: list[Snapshot] = field(default_factory=list)
    _state_id: int = 0

    def _copy_with(self, **kwargs) -> State:
        """Create a copy with some fields replaced."""
        return replace(self, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "G": self.G,
            "ctx": self.ctx.to_dict(),
            "deltalog": [entry.to_dict() for entry in self.deltalog],
            "_undo": [snap.to_dict() for snap in self._undo],
            "_redo": [snap.to_dict() for snap in self._redo],
            "_state_id": self._state_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> State:
        return cls(
            G=data.get("G"),
            ctx=Ctx.from_dict(data["ctx"]),
            deltalog=[LogEntry.from_dict(e) for e in data.get("deltalog", [])],
            _undo=[Snapshot.from_dict(s) for s in data.get("_undo", [])],
            _redo=[Snapshot.from_dict(s) for s in data.get("_redo", [])],
            _state_id=data.get("_state_id", 0),
        )
