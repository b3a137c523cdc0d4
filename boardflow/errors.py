"""
boardflow.errors - Exception classes
====================================

Configuration problems are fatal and raised while a game definition is
being built. Runtime rejections (stale actions, out-of-turn moves, unknown
moves) are not exceptions: the reducer reports them as ActionResult values.
"""

from __future__ import annotations


class BoardflowError(Exception):
    """Base exception for all boardflow errors."""
    pass


class GameConfigError(BoardflowError):
    """Raised when a game configuration is malformed."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        detail = "; ".join(errors)
        super().__init__(
            f"Game configuration is invalid ({len(errors)} error(s)): {detail}"
        )


class GameNotFoundError(BoardflowError):
    """Raised when a game_id has no stored state."""

    def __init__(self, game_id: str):
        self.game_id = game_id
        super().__init__(f"Game '{game_id}' not found")
