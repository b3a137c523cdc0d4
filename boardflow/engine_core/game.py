"""
Game Definition - Normalizes a game config into something the reducer runs.

    game = create_game(
        name="tic-tac-toe",
        setup=lambda ctx: {"cells": [None] * 9},
        moves={"click_cell": click_cell},
        end_if=victory,
    )

create_game fills in defaults, builds the Flow, and wraps move lookup and
dispatch. It is idempotent: passing an existing GameDefinition returns the
same object.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping
import logging

from ..errors import GameConfigError
from ..plugins import Plugin, PluginRandom
from .action import Action
from .events import Invocation, invoke
from .flow import DEFAULT_PHASE, Flow
from .moves import Move, move_function, normalize_moves
from .state import Ctx

logger = logging.getLogger(__name__)


def _default_setup(ctx: Ctx) -> dict:
    return {}


def _default_player_view(G: Any, ctx: Ctx, player_id: str | None) -> Any:
    return G


@dataclass
class GameDefinition:
    """A normalized game. Build with create_game()."""
    name: str
    setup: Callable[[Ctx], Any]
    moves: dict[str, Move]
    flow: Flow
    player_view: Callable[[Any, Ctx, str | None], Any] = _default_player_view
    plugins: list[Plugin] = field(default_factory=list)
    seed: Any = None

    @property
    def move_names(self) -> list[str]:
        """Global move names plus every phase and stage move name."""
        names = list(self.moves)
        for key in self.flow.move_map:
            name = key.split(".")[-1]
            if name not in names:
                names.append(name)
        return names

    def get_move(self, ctx: Ctx, name: str, player_id: str | None = None) -> Move | None:
        """
        Resolve a move name against the current phase and stage.

        Lookup order:
        1. The stage the player is in, when that stage declares moves
        2. The current phase, when it is not "default" and declares moves
           (no fallback to the global moves in that case)
        3. The global moves
        """
        stage = self.flow.stage_of(ctx, player_id)
        if stage is not None and stage.moves is not None:
            return stage.moves.get(name)

        phase = self.flow.phase_map.get(ctx.phase)
        if ctx.phase != DEFAULT_PHASE and phase is not None and phase.moves is not None:
            return self.flow.move_map.get(f"{ctx.phase}.{name}")

        return self.moves.get(name)

    def run_move(self, G: Any, action: Action, ctx: Ctx) -> Invocation | None:
        """
        Run the move named by action against G.

        Returns None when the move cannot be resolved. Otherwise the
        Invocation carries the new G, the flushed ctx, the event intents the
        move recorded and whether a plugin asked to keep it off clients.
        """
        move = self.get_move(ctx, action.payload.type, action.player_id)
        fn = move_function(move)
        if fn is None:
            return None
        return invoke(
            fn,
            G,
            ctx,
            args=action.payload.args,
            plugins=self.plugins,
            enabled=self.flow.enabled_events,
            player_id=action.player_id,
        )

    def process_move(self, G: Any, action: Action, ctx: Ctx) -> Any:
        """New G after the move; G itself when the move is unknown."""
        outcome = self.run_move(G, action, ctx)
        if outcome is None:
            logger.debug("Unknown move '%s' in phase '%s'", action.payload.type, ctx.phase)
            return G
        return outcome.G


def create_game(
    config: GameDefinition | Mapping[str, Any] | None = None, **kwargs
) -> GameDefinition:
    """
    Build a GameDefinition from a config dict and/or keyword arguments.

    Recognized keys: name, setup, moves, phases, turn, end_if, events,
    player_view, plugins, seed, flow. "flow" may be a built Flow or a dict
    of flow options merged over the rest of the config.

    Raises GameConfigError when the configuration is malformed.
    """
    if isinstance(config, GameDefinition):
        return config

    config = {**(config or {}), **kwargs}
    errors: list[str] = []

    moves = normalize_moves(config.get("moves"), "global moves", errors)
    plugins = [PluginRandom, *(config.get("plugins") or [])]
    for plugin in plugins:
        if not isinstance(plugin, Plugin):
            errors.append(f"plugin {plugin!r} is not a Plugin")
    if errors:
        raise GameConfigError(errors)

    flow = config.get("flow")
    if not isinstance(flow, Flow):
        flow_config = {k: v for k, v in config.items() if k != "flow"}
        flow_config.update(flow or {})
        flow_config["plugins"] = plugins
        flow = Flow(flow_config)

    game = GameDefinition(
        name=config.get("name") or "default",
        setup=config.get("setup") or _default_setup,
        moves=moves,
        flow=flow,
        player_view=config.get("player_view") or _default_player_view,
        plugins=plugins,
        seed=config.get("seed"),
    )
    logger.debug("Game '%s' created with moves %s", game.name, game.move_names)
    return game
