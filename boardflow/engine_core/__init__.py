"""
Engine Core - Deterministic turn/phase progression and move dispatch.

The engine is the runtime that:
1. Normalizes a game config (create_game)
2. Manages State (G plus the engine-owned ctx)
3. Dispatches moves through the plugin chain
4. Advances phases, turns and stages (Flow)
5. Applies actions via the reducer
"""

from .state import Ctx, State, Snapshot, LogEntry
from .action import Action, ActionType, ActionPayload, ActionResult, ErrorCode
from .events import EventQueue, GameEvent
from .moves import LongFormMove
from .turn_order import TurnOrder, TurnOrderPolicy, pass_move
from .flow import Flow
from .game import GameDefinition, create_game
from .reducer import GameReducer, create_game_reducer

__all__ = [
    "Ctx",
    "State",
    "Snapshot",
    "LogEntry",
    "Action",
    "ActionType",
    "ActionPayload",
    "ActionResult",
    "ErrorCode",
    "EventQueue",
    "GameEvent",
    "LongFormMove",
    "TurnOrder",
    "TurnOrderPolicy",
    "pass_move",
    "Flow",
    "GameDefinition",
    "create_game",
    "GameReducer",
    "create_game_reducer",
]
