"""
Turn Order - Policies that pick the first and the next current player.

A policy is a pair of functions:

    first(G, ctx) -> player ID   called once when a phase begins
    next(G, ctx)  -> player ID   called once per turn advance

IDs may be ints or strings (normalized with str()). Returning None means no
player is eligible; the flow then holds the current turn.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Mapping

# Sentinel accepted by change_action_players: every entry of play_order.
ALL_PLAYERS = "__all__"

# Pseudo-player used by TurnOrder.ANY.
ANY_PLAYER = "any"


@dataclass(frozen=True)
class TurnOrderPolicy:
    """A named first/next pair."""
    first: Callable[[Any, Any], Any]
    next: Callable[[Any, Any], Any]
    name: str = "custom"

    @classmethod
    def coerce(cls, value: Any) -> TurnOrderPolicy:
        """Accept a policy, or a mapping / object exposing first and next."""
        if isinstance(value, TurnOrderPolicy):
            return value
        if isinstance(value, Mapping):
            first, nxt = value.get("first"), value.get("next")
        else:
            first, nxt = getattr(value, "first", None), getattr(value, "next", None)
        if not callable(first) or not callable(nxt):
            raise TypeError("turn order needs callable 'first' and 'next'")
        return cls(first=first, next=nxt)


def _default_first(G, ctx):
    return ctx.play_order[ctx.play_order_pos]


def _default_next(G, ctx):
    pos = (ctx.play_order_pos + 1) % len(ctx.play_order)
    return ctx.play_order[pos]


def _any(G, ctx):
    return ANY_PLAYER


def _skip_next(G, ctx):
    """Next player who has not passed yet; None once everybody passed."""
    if G.get("all_passed"):
        return None
    passed = {str(p) for p in G.get("pass_order", [])}
    pos = ctx.play_order_pos
    for _ in range(len(ctx.play_order)):
        pos = (pos + 1) % len(ctx.play_order)
        candidate = str(ctx.play_order[pos])
        if candidate not in passed:
            return candidate
    return None


class TurnOrder:
    """Built-in turn-order policies."""

    # Cycles play_order one position per turn.
    DEFAULT = TurnOrderPolicy(first=_default_first, next=_default_next, name="default")

    # Anybody may move; current_player is always "any".
    ANY = TurnOrderPolicy(first=_any, next=_any, name="any")

    # Like DEFAULT but skips players listed in G["pass_order"].
    SKIP = TurnOrderPolicy(first=_default_first, next=_skip_next, name="skip")

    ALL = ALL_PLAYERS


def pass_move(G, ctx):
    """
    Move that records the acting player as passed.

    Pass bookkeeping lives in G: "pass_order" lists who passed, in order,
    and "all_passed" is set once every player has passed. TurnOrder.SKIP
    reads both.
    """
    player = ctx.player_id if ctx.player_id is not None else ctx.current_player
    pass_order = list(G.get("pass_order", []))
    if player not in pass_order:
        pass_order.append(player)
    G = {**G, "pass_order": pass_order}
    if len(pass_order) >= ctx.num_players:
        G["all_passed"] = True
    return G
