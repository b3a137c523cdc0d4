"""
Tic-tac-toe - Minimal example game.

G:
    cells: list of 9 entries, None or the ID of the player who took it

One move per turn (turn.move_limit), so the engine ends each turn on its
own. The game ends through end_if with {"winner": id} or {"draw": True}.
"""

from __future__ import annotations
from typing import Any

from ..engine_core.game import create_game

LINES = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),
    (0, 3, 6), (1, 4, 7), (2, 5, 8),
    (0, 4, 8), (2, 4, 6),
)


def setup(ctx) -> dict[str, Any]:
    return {"cells": [None] * 9}


def click_cell(G, ctx, cell: int):
    """Claim an empty cell for the current player."""
    if not isinstance(cell, int) or not 0 <= cell < 9 or G["cells"][cell] is not None:
        return G
    G["cells"][cell] = ctx.current_player


def winner(cells: list) -> str | None:
    for a, b, c in LINES:
        if cells[a] is not None and cells[a] == cells[b] == cells[c]:
            return cells[a]
    return None


def end_if(G, ctx):
    player = winner(G["cells"])
    if player is not None:
        return {"winner": player}
    if all(cell is not None for cell in G["cells"]):
        return {"draw": True}
    return None


tic_tac_toe = create_game(
    name="tic-tac-toe",
    setup=setup,
    moves={"click_cell": click_cell},
    turn={"move_limit": 1},
    end_if=end_if,
)
