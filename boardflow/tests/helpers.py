"""
Shared helpers for boardflow tests.
"""

from ..engine_core.action import Action
from ..engine_core.flow import Flow
from ..engine_core.state import State


def start_flow(flow: Flow, num_players: int, G=None) -> State:
    """Initial state for a bare Flow (no reducer involved)."""
    return flow.init(State(G={} if G is None else G, ctx=flow.ctx(num_players)))


def event(name: str, *args, player_id=None) -> Action:
    """GAME_EVENT action shorthand."""
    return Action.game_event(name, list(args), player_id=player_id)


def move(name: str, *args, player_id=None, state_id=None) -> Action:
    """MAKE_MOVE action shorthand."""
    return Action.make_move(name, list(args), player_id=player_id, state_id=state_id)


def add(G, ctx, amount=1):
    """Test move: add to a counter."""
    G["count"] = G.get("count", 0) + amount
