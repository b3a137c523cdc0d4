"""
Games module - Example game definitions.

Each game is a module exposing a GameDefinition built with create_game().
"""

from .tic_tac_toe import tic_tac_toe

GAMES = {
    tic_tac_toe.name: tic_tac_toe,
}

__all__ = ["GAMES", "tic_tac_toe"]
