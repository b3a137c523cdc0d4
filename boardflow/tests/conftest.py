"""
Pytest fixtures for boardflow tests.
"""

import pytest

from ..engine_core.action import Action
from ..engine_core.game import create_game
from ..engine_core.reducer import GameReducer
from ..engine_core.state import State
from .helpers import add


@pytest.fixture
def counter_game():
    """Game with a single counting move in the default phase."""
    return create_game(
        name="counter",
        setup=lambda ctx: {"count": 0},
        moves={"add": add},
    )


@pytest.fixture
def counter_reducer(counter_game) -> GameReducer:
    """Three-player reducer for the counter game."""
    return GameReducer(counter_game, num_players=3)


@pytest.fixture
def counter_state(counter_reducer) -> State:
    """Initialized counter game state."""
    return counter_reducer(None, Action.init())
