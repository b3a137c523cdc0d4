"""
Flow - Phase, turn and stage progression.

The flow is a nested state machine:

    phase -> turn -> stage

Every transition is driven by a GameEvent (end_turn, end_phase, set_stage,
...). Events come from three places:
1. A player dispatching a GAME_EVENT action directly
2. Intents recorded by a move or hook through ctx.events
3. Automatic end conditions (end_if, end_game_if, move_limit)

Recorded intents are applied in order once the move or hook has returned.
When the queue is empty the end conditions are checked, and whatever they
trigger is processed the same way, until the state settles.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping
import logging

from ..errors import GameConfigError
from .action import Action
from .events import (
    EVENT_NAMES,
    END_TURN,
    END_PHASE,
    END_GAME,
    SET_PHASE,
    END_STAGE,
    SET_STAGE,
    PASS,
    CHANGE_ACTION_PLAYERS,
    SET_ACTIVE_PLAYERS,
    GameEvent,
    enabled_events,
    invoke,
)
from .moves import Move, normalize_moves
from .state import Ctx, LogEntry, State
from .turn_order import ALL_PLAYERS, ANY_PLAYER, TurnOrder, TurnOrderPolicy

logger = logging.getLogger(__name__)

DEFAULT_PHASE = "default"

# Upper bound on events processed for a single action.
MAX_CASCADE = 100

# Events after which turn.end_if and turn.move_limit are re-checked.
TURN_CHECK_EVENTS = frozenset({
    SET_STAGE,
    END_STAGE,
    CHANGE_ACTION_PLAYERS,
    SET_ACTIVE_PLAYERS,
})

PHASE_ENDING_EVENTS = frozenset({END_PHASE, SET_PHASE})


@dataclass
class StageConfig:
    name: str
    moves: dict[str, Move] | None = None
    next: str | None = None


@dataclass
class TurnConfig:
    order: TurnOrderPolicy = TurnOrder.DEFAULT
    move_limit: int | None = None
    on_begin: Callable | None = None
    on_end: Callable | None = None
    on_move: Callable | None = None
    end_if: Callable | None = None
    stages: dict[str, StageConfig] = field(default_factory=dict)
    active_players: Any = None


@dataclass
class PhaseConfig:
    name: str
    moves: dict[str, Move] | None = None
    turn: TurnConfig = field(default_factory=TurnConfig)
    on_begin: Callable | None = None
    on_end: Callable | None = None
    end_if: Callable | None = None
    end_game_if: Callable | None = None
    next: str | None = None
    start: bool = False


def _arg(event: GameEvent, index: int, default: Any = None) -> Any:
    if len(event.args) > index and event.args[index] is not None:
        return event.args[index]
    return default


def _build_turn(conf: Mapping[str, Any], where: str, errors: list[str]) -> TurnConfig:
    turn = TurnConfig()
    if conf.get("order") is not None:
        try:
            turn.order = TurnOrderPolicy.coerce(conf["order"])
        except TypeError as e:
            errors.append(f"{where}: {e}")
    move_limit = conf.get("move_limit")
    if move_limit is not None:
        if not isinstance(move_limit, int) or move_limit < 1:
            errors.append(f"{where}: move_limit must be a positive integer")
        else:
            turn.move_limit = move_limit
    for hook in ("on_begin", "on_end", "on_move", "end_if"):
        fn = conf.get(hook)
        if fn is not None and not callable(fn):
            errors.append(f"{where}: turn {hook} is not callable")
        else:
            setattr(turn, hook, fn)
    turn.active_players = conf.get("active_players")

    stages = conf.get("stages") or {}
    for name, stage_conf in stages.items():
        stage_conf = stage_conf or {}
        moves = stage_conf.get("moves")
        turn.stages[name] = StageConfig(
            name=name,
            moves=(
                normalize_moves(moves, f"{where}, stage '{name}'", errors)
                if moves is not None else None
            ),
            next=stage_conf.get("next"),
        )
    for stage in turn.stages.values():
        if stage.next is not None and stage.next not in turn.stages:
            errors.append(
                f"{where}: stage '{stage.name}' has unknown next stage '{stage.next}'"
            )
    return turn


def _build_phase(
    name: str,
    conf: Mapping[str, Any],
    global_turn: Mapping[str, Any],
    errors: list[str],
) -> PhaseConfig:
    where = f"phase '{name}'"
    moves = conf.get("moves")
    phase = PhaseConfig(
        name=name,
        moves=normalize_moves(moves, where, errors) if moves is not None else None,
        turn=_build_turn({**global_turn, **(conf.get("turn") or {})}, where, errors),
        next=conf.get("next"),
        start=bool(conf.get("start", False)),
    )
    for hook in ("on_begin", "on_end", "end_if", "end_game_if"):
        fn = conf.get(hook)
        if fn is not None and not callable(fn):
            errors.append(f"{where}: {hook} is not callable")
        else:
            setattr(phase, hook, fn)
    return phase


def _phase_items(phases: Any, errors: list[str]) -> list[tuple[str, dict]]:
    """Phases as (name, config) pairs; list form gets implicit successors."""
    if isinstance(phases, Mapping):
        return [(name, dict(conf or {})) for name, conf in phases.items()]

    items = []
    for i, conf in enumerate(phases):
        conf = dict(conf)
        name = conf.get("name")
        if not name:
            errors.append(f"phase #{i} has no name")
            continue
        items.append((name, conf))
    for (name, conf), following in zip(items, items[1:]):
        conf.setdefault("next", following[0])
    return items


class Flow:
    """
    Phase/turn/stage state machine for one game definition.

    Usage:
        flow = Flow({"phases": {...}, "turn": {"order": TurnOrder.SKIP}})
        state = flow.init(State(G=G, ctx=flow.ctx(3)))
        state = flow.process_game_event(state, Action.game_event("end_turn"))

    Raises GameConfigError when the configuration is malformed.
    """

    def __init__(self, config: Mapping[str, Any] | None = None, **kwargs):
        config = {**(config or {}), **kwargs}
        errors: list[str] = []

        self.plugins = list(config.get("plugins") or [])
        self.end_if = config.get("end_if")
        self.event_names = list(EVENT_NAMES)
        self.enabled_events = enabled_events(config.get("events"))

        global_turn = config.get("turn") or {}
        self.phase_map: dict[str, PhaseConfig] = {
            DEFAULT_PHASE: _build_phase(DEFAULT_PHASE, {}, global_turn, errors),
        }
        configured = _phase_items(config.get("phases") or {}, errors)
        for name, conf in configured:
            self.phase_map[name] = _build_phase(name, conf, global_turn, errors)

        starts = [name for name, _ in configured if self.phase_map[name].start]
        if len(starts) > 1:
            errors.append(f"more than one start phase: {starts}")
        if starts:
            self.start_phase = starts[0]
        elif configured:
            self.start_phase = configured[0][0]
        else:
            self.start_phase = DEFAULT_PHASE

        for phase in self.phase_map.values():
            if phase.next is not None and phase.next not in self.phase_map:
                errors.append(f"phase '{phase.name}' has unknown next phase '{phase.next}'")

        if errors:
            raise GameConfigError(errors)

        self.move_map: dict[str, Move] = {}
        for phase in self.phase_map.values():
            for move_name, move in (phase.moves or {}).items():
                self.move_map[f"{phase.name}.{move_name}"] = move
            for stage in phase.turn.stages.values():
                for move_name, move in (stage.moves or {}).items():
                    self.move_map[f"{phase.name}.{stage.name}.{move_name}"] = move

        logger.debug(
            "Flow built: phases=%s start=%s events=%s",
            list(self.phase_map), self.start_phase, self.enabled_events,
        )

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------

    def ctx(self, num_players: int) -> Ctx:
        """Initial context, before any phase or turn has begun."""
        return Ctx(
            num_players=num_players,
            play_order=[str(i) for i in range(num_players)],
            play_order_pos=0,
            current_player="0",
            phase=self.start_phase,
        )

    def init(self, state: State) -> State:
        """Enter the start phase and run its first turn."""
        follow_ups: list[GameEvent] = []
        G, ctx = self._start_phase(state.G, state.ctx, follow_ups)
        log: list[LogEntry] = []
        G, ctx, _ = self._process(G, ctx, follow_ups, log, state._state_id)
        return state._copy_with(G=G, ctx=ctx, deltalog=state.deltalog + log)

    def process_move(
        self, state: State, action: Action, events: Iterable[GameEvent] = ()
    ) -> State:
        """
        Account for a move already applied to state.G.

        Counts the move, updates the active-players set, runs turn.on_move,
        then applies the move's recorded intents and the end conditions.
        """
        ctx = state.ctx
        player = action.player_id if action.player_id is not None else ctx.current_player

        ctx = ctx._copy_with(num_moves=ctx.num_moves + 1)
        ctx = self._count_active_move(ctx, player)

        follow_ups = self._stamp(list(events), ctx)
        conf = self._phase(ctx)
        G, ctx = self._hook(conf.turn.on_move, state.G, ctx, follow_ups)

        log: list[LogEntry] = []
        G, ctx, _ = self._process(
            G, ctx, follow_ups, log, state._state_id, check_turn=True
        )
        return state._copy_with(G=G, ctx=ctx, deltalog=state.deltalog + log)

    def process_game_event(self, state: State, action: Action) -> State:
        """
        Apply a directly dispatched event.

        Returns the input state object unchanged when the event is disabled,
        unknown, or ignored (e.g. a held turn).
        """
        name = action.payload.type
        if name not in self.enabled_events:
            logger.debug("Event '%s' is not enabled; ignored", name)
            return state
        if state.ctx.is_over:
            return state

        event = GameEvent(
            type=name,
            args=tuple(action.payload.args),
            player_id=action.player_id,
        )
        log: list[LogEntry] = []
        G, ctx, applied = self._process(
            state.G, state.ctx, [event], log, state._state_id
        )
        if not applied or applied[0] is not event:
            return state
        return state._copy_with(G=G, ctx=ctx, deltalog=state.deltalog + log)

    def can_make_move(self, G: Any, ctx: Ctx, name: str) -> bool:
        if ctx.is_over:
            return False
        move_limit = self._phase(ctx).turn.move_limit
        if move_limit is not None and ctx.num_moves >= move_limit:
            return False
        return True

    def can_player_make_move(self, G: Any, ctx: Ctx, player_id: str | None) -> bool:
        players = ctx.action_players
        return str(player_id) in players or ANY_PLAYER in players

    def can_player_call_event(self, G: Any, ctx: Ctx, player_id: str | None) -> bool:
        return self.can_player_make_move(G, ctx, player_id)

    def stage_of(self, ctx: Ctx, player_id: str | None) -> StageConfig | None:
        """The stage config the player is currently in, if any."""
        if not ctx.active_players:
            return None
        player = player_id if player_id is not None else ctx.current_player
        stage = ctx.active_players.get(str(player))
        if stage is None:
            return None
        return self._phase(ctx).turn.stages.get(stage)

    # -------------------------------------------------------------------
    # Processing loop
    # -------------------------------------------------------------------

    def _process(
        self,
        G: Any,
        ctx: Ctx,
        events: Iterable[GameEvent],
        log: list[LogEntry],
        state_id: int,
        check_turn: bool = False,
    ) -> tuple[Any, Ctx, list[GameEvent]]:
        """Apply queued events, then end conditions, until nothing fires."""
        queue = deque(events)
        applied: list[GameEvent] = []
        phases_ended: set[str] = set()
        steps = 0

        while not ctx.is_over:
            from_condition = not queue
            if queue:
                event = queue.popleft()
            else:
                event = self._automatic_event(G, ctx, check_turn)
                if event is None:
                    break

            steps += 1
            if steps > MAX_CASCADE:
                logger.warning(
                    "Stopping event cascade after %d events (turn %d, phase '%s')",
                    MAX_CASCADE, ctx.turn, ctx.phase,
                )
                break

            if event.type in PHASE_ENDING_EVENTS and ctx.phase in phases_ended:
                logger.warning(
                    "Phase '%s' would end twice in one cascade; holding it", ctx.phase
                )
                break

            outcome = self._dispatch(G, ctx, event)
            if outcome is None:
                if from_condition:
                    break
                continue

            if event.automatic:
                log.append(LogEntry(
                    action=Action.game_event(
                        event.type, list(event.args), player_id=event.player_id
                    ),
                    _state_id=state_id,
                    turn=ctx.turn,
                    phase=ctx.phase,
                    automatic=True,
                ))
            before_turn, before_phase = ctx.turn, ctx.phase
            G, ctx, follow_ups = outcome
            if event.type in PHASE_ENDING_EVENTS:
                phases_ended.add(before_phase)
            applied.append(event)
            queue.extend(follow_ups)
            check_turn = ctx.turn == before_turn and (
                check_turn or event.type in TURN_CHECK_EVENTS
            )

        return G, ctx, applied

    def _automatic_event(self, G: Any, ctx: Ctx, check_turn: bool) -> GameEvent | None:
        """The first end condition that fires, as an automatic event."""
        conf = self._phase(ctx)

        def automatic(name: str, *args) -> GameEvent:
            logger.debug("Condition triggered %s in phase '%s'", name, ctx.phase)
            return GameEvent(
                type=name, args=args, automatic=True, turn=ctx.turn, phase=ctx.phase
            )

        if self.end_if is not None:
            result = self.end_if(G, ctx)
            if result:
                return automatic(END_GAME, result)
        if conf.end_game_if is not None:
            result = conf.end_game_if(G, ctx)
            if result:
                return automatic(END_GAME, result)
        if conf.end_if is not None and conf.end_if(G, ctx):
            return automatic(END_PHASE)
        if check_turn:
            move_limit = conf.turn.move_limit
            if move_limit is not None and ctx.num_moves >= move_limit:
                return automatic(END_TURN)
            if conf.turn.end_if is not None and conf.turn.end_if(G, ctx):
                return automatic(END_TURN)
        return None

    def _dispatch(
        self, G: Any, ctx: Ctx, event: GameEvent
    ) -> tuple[Any, Ctx, list[GameEvent]] | None:
        """Run one event. None means the event was ignored."""
        if self._is_stale(ctx, event):
            logger.debug(
                "Dropping %s recorded in turn %s, phase '%s'",
                event.type, event.turn, event.phase,
            )
            return None
        handlers = {
            END_TURN: self._end_turn,
            PASS: self._pass,
            END_PHASE: self._end_phase,
            SET_PHASE: self._set_phase,
            END_GAME: self._end_game,
            SET_STAGE: self._set_stage,
            END_STAGE: self._end_stage,
            CHANGE_ACTION_PLAYERS: self._change_action_players,
            SET_ACTIVE_PLAYERS: self._set_active_players,
        }
        handler = handlers.get(event.type)
        if handler is None:
            logger.warning("Unknown event '%s'; ignored", event.type)
            return None
        return handler(G, ctx, event)

    @staticmethod
    def _is_stale(ctx: Ctx, event: GameEvent) -> bool:
        if event.turn is None:
            return False
        if event.type in (END_TURN, PASS):
            return event.turn != ctx.turn
        if event.type == END_PHASE:
            return event.turn != ctx.turn or event.phase != ctx.phase
        return False

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------

    def _phase(self, ctx: Ctx) -> PhaseConfig:
        return self.phase_map.get(ctx.phase) or self.phase_map[DEFAULT_PHASE]

    @staticmethod
    def _stamp(events: list[GameEvent], ctx: Ctx) -> list[GameEvent]:
        for event in events:
            event.turn = ctx.turn
            event.phase = ctx.phase
        return events

    def _hook(
        self, fn: Callable | None, G: Any, ctx: Ctx, follow_ups: list[GameEvent]
    ) -> tuple[Any, Ctx]:
        """Run a hook; intents it records are appended to follow_ups."""
        if fn is None:
            return G, ctx
        result = invoke(fn, G, ctx, plugins=self.plugins, enabled=self.enabled_events)
        follow_ups.extend(self._stamp(result.events, result.ctx))
        return result.G, result.ctx

    @staticmethod
    def _select(ctx: Ctx, player: Any) -> Ctx:
        """Make player current; unknown IDs keep play_order_pos as is."""
        player = str(player)
        order = [str(p) for p in ctx.play_order]
        pos = order.index(player) if player in order else ctx.play_order_pos
        return ctx._copy_with(current_player=player, play_order_pos=pos)

    # -------------------------------------------------------------------
    # Phases and turns
    # -------------------------------------------------------------------

    def _start_phase(
        self, G: Any, ctx: Ctx, follow_ups: list[GameEvent]
    ) -> tuple[Any, Ctx]:
        conf = self._phase(ctx)
        logger.debug("Phase '%s' begins", ctx.phase)
        G, ctx = self._hook(conf.on_begin, G, ctx, follow_ups)
        return self._start_turn(G, ctx, follow_ups, first=True)

    def _start_turn(
        self, G: Any, ctx: Ctx, follow_ups: list[GameEvent], first: bool = False
    ) -> tuple[Any, Ctx]:
        conf = self._phase(ctx)
        if first:
            player = conf.turn.order.first(G, ctx)
            if player is not None:
                ctx = self._select(ctx, player)
            else:
                logger.info(
                    "Turn order returned no first player in phase '%s'; keeping %s",
                    ctx.phase, ctx.current_player,
                )

        ctx = ctx._copy_with(
            turn=ctx.turn + 1,
            num_moves=0,
            active_players=None,
            _active_players_move_limit=None,
            _active_players_num_moves={},
            _prev_active_players=None,
        )
        if conf.turn.active_players is not None:
            ctx = self._activate(ctx, conf.turn.active_players) or ctx

        G, ctx = self._hook(conf.turn.on_begin, G, ctx, follow_ups)
        logger.debug(
            "Turn %d begins for player %s (phase '%s')",
            ctx.turn, ctx.current_player, ctx.phase,
        )
        return G, ctx

    def _end_turn(self, G: Any, ctx: Ctx, event: GameEvent):
        conf = self._phase(ctx)
        follow_ups: list[GameEvent] = []
        G, new_ctx = self._hook(conf.turn.on_end, G, ctx, follow_ups)

        player = _arg(event, 0)
        if player is None:
            player = conf.turn.order.next(G, new_ctx)
        if player is None:
            logger.info(
                "No eligible player after %s in phase '%s'; holding turn %d",
                ctx.current_player, ctx.phase, ctx.turn,
            )
            return None

        new_ctx = self._select(new_ctx, player)
        G, new_ctx = self._start_turn(G, new_ctx, follow_ups)
        return G, new_ctx, follow_ups

    def _pass(self, G: Any, ctx: Ctx, event: GameEvent):
        if _arg(event, 0, False):
            order = [str(p) for p in ctx.play_order]
            if ctx.current_player in order:
                if len(order) == 1:
                    logger.info(
                        "Last player %s left play_order; ending phase '%s'",
                        ctx.current_player, ctx.phase,
                    )
                    return self._end_phase(G, ctx, GameEvent(type=END_PHASE))
                idx = order.index(ctx.current_player)
                del order[idx]
                ctx = ctx._copy_with(
                    play_order=order, play_order_pos=(idx - 1) % len(order)
                )
        return self._end_turn(G, ctx, GameEvent(type=END_TURN))

    def _end_phase(self, G: Any, ctx: Ctx, event: GameEvent, target: str | None = None):
        conf = self._phase(ctx)
        follow_ups: list[GameEvent] = []
        G, ctx = self._hook(conf.turn.on_end, G, ctx, follow_ups)
        G, ctx = self._hook(conf.on_end, G, ctx, follow_ups)

        target = target or conf.next
        if target is None:
            logger.info("Phase '%s' has no successor; game over", ctx.phase)
            return G, ctx._copy_with(gameover=True), follow_ups

        logger.debug("Phase '%s' ends; next is '%s'", ctx.phase, target)
        ctx = ctx._copy_with(phase=target)
        G, ctx = self._start_phase(G, ctx, follow_ups)
        return G, ctx, follow_ups

    def _set_phase(self, G: Any, ctx: Ctx, event: GameEvent):
        name = _arg(event, 0)
        if name not in self.phase_map:
            logger.warning("set_phase to unknown phase '%s'; ignored", name)
            return None
        return self._end_phase(G, ctx, event, target=name)

    def _end_game(self, G: Any, ctx: Ctx, event: GameEvent):
        result = _arg(event, 0, True)
        logger.info("Game over at turn %d: %r", ctx.turn, result)
        return G, ctx._copy_with(gameover=result), []

    # -------------------------------------------------------------------
    # Stages and active players
    # -------------------------------------------------------------------

    def _set_stage(self, G: Any, ctx: Ctx, event: GameEvent):
        name = _arg(event, 0)
        stages = self._phase(ctx).turn.stages
        if name not in stages:
            logger.warning("set_stage to unknown stage '%s'; ignored", name)
            return None
        player = event.player_id if event.player_id is not None else ctx.current_player
        active = dict(ctx.active_players or {})
        active[player] = name
        return G, ctx._copy_with(active_players=active), []

    def _end_stage(self, G: Any, ctx: Ctx, event: GameEvent):
        player = event.player_id if event.player_id is not None else ctx.current_player
        if not ctx.active_players or player not in ctx.active_players:
            return None
        stage = self._phase(ctx).turn.stages.get(ctx.active_players[player])
        active = dict(ctx.active_players)
        if stage is not None and stage.next is not None:
            active[player] = stage.next
        else:
            del active[player]
        return G, self._settle(ctx, active), []

    def _change_action_players(self, G: Any, ctx: Ctx, event: GameEvent):
        players = self._resolve_players(ctx, _arg(event, 0, []))
        if not players:
            logger.info("change_action_players with no eligible players; ignored")
            return None
        move_limit = _arg(event, 1)
        ctx = self._activate(ctx, {
            "value": {player: None for player in players},
            "move_limit": move_limit,
            "revert": move_limit is not None,
        })
        return G, ctx, []

    def _set_active_players(self, G: Any, ctx: Ctx, event: GameEvent):
        new_ctx = self._activate(ctx, _arg(event, 0, {}))
        if new_ctx is None:
            logger.info("set_active_players produced an empty set; ignored")
            return None
        return G, new_ctx, []

    @staticmethod
    def _resolve_players(ctx: Ctx, players: Any) -> list[str]:
        """Requested IDs that are in play_order (or are the current pseudo-player)."""
        order = [str(p) for p in ctx.play_order]
        if players == ALL_PLAYERS:
            return order
        if isinstance(players, (str, int)):
            players = [players]
        eligible = set(order) | {ctx.current_player}
        result = []
        for player in players:
            player = str(player)
            if player in eligible and player not in result:
                result.append(player)
        return result

    def _activate(self, ctx: Ctx, arg: Any) -> Ctx | None:
        """
        Install a new active-players set.

        arg is a list of IDs (or ALL_PLAYERS) or a dict with any of:
        current_player, others, all (stage names), value ({id: stage}),
        move_limit and revert. Returns None when the set would be empty.
        """
        if arg == ALL_PLAYERS or isinstance(arg, (list, tuple)):
            arg = {"value": {p: None for p in self._resolve_players(ctx, arg)}}

        order = [str(p) for p in ctx.play_order]
        active: dict[str, str | None] = {}
        if "all" in arg:
            for player in order:
                active[player] = arg["all"]
        if "others" in arg:
            for player in order:
                if player != ctx.current_player:
                    active[player] = arg["others"]
        if "current_player" in arg:
            active[ctx.current_player] = arg["current_player"]
        for player, stage in (arg.get("value") or {}).items():
            active[str(player)] = stage
        if not active:
            return None

        move_limit = arg.get("move_limit")
        prev = None
        if arg.get("revert"):
            prev = {
                "active_players": ctx.active_players,
                "move_limit": ctx._active_players_move_limit,
                "num_moves": ctx._active_players_num_moves,
            }
        return ctx._copy_with(
            active_players=active,
            _active_players_move_limit=(
                {player: move_limit for player in active}
                if move_limit is not None else None
            ),
            _active_players_num_moves={player: 0 for player in active},
            _prev_active_players=prev,
        )

    @staticmethod
    def _settle(ctx: Ctx, active: dict[str, str | None]) -> Ctx:
        """Apply a shrunken set; an empty one restores the saved set or clears."""
        if active:
            return ctx._copy_with(active_players=active)
        prev = ctx._prev_active_players
        if prev is not None:
            return ctx._copy_with(
                active_players=prev["active_players"],
                _active_players_move_limit=prev["move_limit"],
                _active_players_num_moves=dict(prev["num_moves"] or {}),
                _prev_active_players=None,
            )
        return ctx._copy_with(
            active_players=None,
            _active_players_move_limit=None,
            _active_players_num_moves={},
        )

    def _count_active_move(self, ctx: Ctx, player: str) -> Ctx:
        if not ctx.active_players or player not in ctx.active_players:
            return ctx
        counts = dict(ctx._active_players_num_moves)
        counts[player] = counts.get(player, 0) + 1
        ctx = ctx._copy_with(_active_players_num_moves=counts)

        limits = ctx._active_players_move_limit
        if limits and player in limits and counts[player] >= limits[player]:
            active = {p: s for p, s in ctx.active_players.items() if p != player}
            ctx = self._settle(ctx, active)
        return ctx
