"""
Tests for the bundled tic-tac-toe game.
"""

import pytest

from ..engine_core.action import Action
from ..engine_core.reducer import GameReducer
from ..games import GAMES
from ..games.tic_tac_toe import end_if, winner
from .helpers import move


@pytest.fixture
def reducer():
    return GameReducer(GAMES["tic-tac-toe"], num_players=2)


def play(reducer, cells):
    state = reducer(None, Action.init())
    for cell in cells:
        state = reducer(state, move("click_cell", cell, player_id=state.ctx.current_player))
    return state


class TestTicTacToe:
    """Tests for tic-tac-toe rules."""

    def test_turns_alternate(self, reducer):
        state = play(reducer, [4])
        assert state.G["cells"][4] == "0"
        assert state.ctx.current_player == "1"
        assert state.ctx.turn == 2

    def test_win(self, reducer):
        state = play(reducer, [0, 3, 1, 4, 2])
        assert state.ctx.gameover == {"winner": "0"}

    def test_draw(self, reducer):
        state = play(reducer, [0, 1, 2, 4, 3, 5, 7, 6, 8])
        assert state.ctx.gameover == {"draw": True}

    def test_taken_cell_unchanged(self, reducer):
        state = play(reducer, [4, 4])
        assert state.G["cells"][4] == "0"

    def test_winner_helper(self):
        assert winner(["1", "1", "1"] + [None] * 6) == "1"
        assert winner([None] * 9) is None
        assert end_if({"cells": [None] * 9}, None) is None
