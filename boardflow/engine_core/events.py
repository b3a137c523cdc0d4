"""
Events - The ctx.events API exposed to moves and hooks.

Calling an event method inside user code does not touch any state: it
records a GameEvent intent. The flow applies the recorded intents, in
order, once the move or hook has returned.
"""

from __future__ import annotations
from dataclasses import dataclass
from copy import deepcopy
from typing import Any, Callable, Iterable
import logging

from ..plugins.base import Plugin, fn_wrap, enhance, flush, no_client

logger = logging.getLogger(__name__)

END_TURN = "end_turn"
END_PHASE = "end_phase"
END_GAME = "end_game"
SET_PHASE = "set_phase"
END_STAGE = "end_stage"
SET_STAGE = "set_stage"
PASS = "pass"
CHANGE_ACTION_PLAYERS = "change_action_players"
SET_ACTIVE_PLAYERS = "set_active_players"

EVENT_NAMES = (
    END_TURN,
    END_PHASE,
    END_GAME,
    SET_PHASE,
    END_STAGE,
    SET_STAGE,
    PASS,
    CHANGE_ACTION_PLAYERS,
    SET_ACTIVE_PLAYERS,
)

# Events that must be switched on explicitly in the game's "events" config.
OPT_IN_EVENTS = frozenset({END_GAME, CHANGE_ACTION_PLAYERS, SET_ACTIVE_PLAYERS})


def enabled_events(flags: dict[str, bool] | None) -> list[str]:
    """Resolve per-event enable flags against the defaults."""
    flags = flags or {}
    unknown = set(flags) - set(EVENT_NAMES)
    if unknown:
        logger.warning("Ignoring unknown event flags: %s", sorted(unknown))
    return [
        name for name in EVENT_NAMES
        if flags.get(name, name not in OPT_IN_EVENTS)
    ]


@dataclass
class GameEvent:
    """
    A recorded intent to run a flow event.

    turn and phase are stamped with the context the intent was recorded in;
    end_turn, pass and end_phase intents are dropped once that context has
    moved on.
    """
    type: str
    args: tuple = ()
    player_id: str | None = None
    automatic: bool = False
    turn: int | None = None
    phase: str | None = None


def _trim(args: tuple) -> tuple:
    """Drop trailing None arguments so omitted and default args log alike."""
    while args and args[-1] is None:
        args = args[:-1]
    return tuple(args)


class EventQueue:
    """
    Recorder handed to user code as ctx.events.

    Usage (inside a move):
        ctx.events.end_turn()
        ctx.events.change_action_players(["1", "2"])
    """

    def __init__(self, enabled: Iterable[str], player_id: str | None = None):
        self._enabled = frozenset(enabled)
        self._player_id = player_id
        self.pending: list[GameEvent] = []

    def _record(self, name: str, *args) -> None:
        if name not in self._enabled:
            logger.warning("Event '%s' is disabled for this game; ignored", name)
            return
        self.pending.append(
            GameEvent(
                type=name,
                args=_trim(args),
                player_id=self._player_id,
                automatic=True,
            )
        )

    def end_turn(self, next: str | int | None = None) -> None:
        self._record(END_TURN, next)

    def end_phase(self) -> None:
        self._record(END_PHASE)

    def end_game(self, result: Any = None) -> None:
        self._record(END_GAME, result)

    def set_phase(self, name: str) -> None:
        self._record(SET_PHASE, name)

    def end_stage(self) -> None:
        self._record(END_STAGE)

    def set_stage(self, name: str) -> None:
        self._record(SET_STAGE, name)

    def pass_(self, remove: bool = False) -> None:
        self._record(PASS, remove or None)

    def change_action_players(self, players: Any, move_limit: int | None = None) -> None:
        self._record(CHANGE_ACTION_PLAYERS, players, move_limit)

    def set_active_players(self, arg: Any) -> None:
        self._record(SET_ACTIVE_PLAYERS, arg)


@dataclass
class Invocation:
    """What running a move or hook produced."""
    G: Any
    ctx: Any  # Ctx, detached
    events: list[GameEvent]
    no_client: bool = False


def _returning_g(fn: Callable) -> Callable:
    def call(G, ctx, *args):
        result = fn(G, ctx, *args)
        return G if result is None else result
    return call


def invoke(
    fn: Callable,
    G: Any,
    ctx: Any,
    args: Iterable[Any] = (),
    plugins: Iterable[Plugin] = (),
    enabled: Iterable[str] = (),
    player_id: str | None = None,
) -> Invocation:
    """
    Run a move or hook through the plugin chain.

    The function receives a deep copy of G, so it may either mutate it and
    return None or return a new object. ctx carries player_id, a fresh
    EventQueue and the plugin APIs; the returned ctx is detached again.
    """
    plugins = list(plugins)
    queue = EventQueue(enabled, player_id=player_id)
    call_ctx = enhance(ctx, plugins)._copy_with(player_id=player_id, events=queue)

    wrapped = fn_wrap(_returning_g(fn), plugins)
    new_G = wrapped(deepcopy(G), call_ctx, *args)

    hidden = no_client(call_ctx, plugins)
    new_ctx = flush(call_ctx, plugins).detached()
    return Invocation(G=new_G, ctx=new_ctx, events=list(queue.pending), no_client=hidden)
