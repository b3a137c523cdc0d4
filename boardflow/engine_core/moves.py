"""
Moves - The two shapes a move can take.

    def click_cell(G, ctx, cell): ...            # plain function
    LongFormMove(move=click_cell, undoable=False)  # function plus options

Dicts with a "move" key are converted to LongFormMove when a game is built.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Union


@dataclass(frozen=True)
class LongFormMove:
    """
    A move with options.

    redact: hide the move's arguments from other players in the log
    client: False keeps a multiplayer client from running the move locally
    undoable: bool, or callable(G, ctx) evaluated when an undo is requested
    """
    move: Callable
    redact: bool | Callable = False
    client: bool = True
    undoable: bool | Callable = True

    def is_undoable(self, G: Any, ctx: Any) -> bool:
        if callable(self.undoable):
            return bool(self.undoable(G, ctx))
        return bool(self.undoable)

    def is_redacted(self, G: Any, ctx: Any) -> bool:
        if callable(self.redact):
            return bool(self.redact(G, ctx))
        return bool(self.redact)


Move = Union[Callable, LongFormMove]


def move_function(move: Move | None) -> Callable | None:
    """The callable behind a move, or None."""
    if isinstance(move, LongFormMove):
        return move.move
    if callable(move):
        return move
    return None


def move_options(move: Move | None) -> LongFormMove | None:
    """Options of a long-form move; plain functions have none."""
    return move if isinstance(move, LongFormMove) else None


def normalize_moves(
    moves: Mapping[str, Any] | None, where: str, errors: list[str]
) -> dict[str, Move]:
    """Validate a move table, converting dict entries to LongFormMove."""
    result: dict[str, Move] = {}
    for name, value in (moves or {}).items():
        if isinstance(value, LongFormMove):
            result[name] = value
        elif isinstance(value, Mapping):
            fn = value.get("move")
            if not callable(fn):
                errors.append(f"{where}: move '{name}' has no callable 'move'")
                continue
            result[name] = LongFormMove(
                move=fn,
                redact=value.get("redact", False),
                client=value.get("client", True),
                undoable=value.get("undoable", True),
            )
        elif callable(value):
            result[name] = value
        else:
            errors.append(f"{where}: move '{name}' is not callable")
    return result
