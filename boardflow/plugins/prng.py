"""
Random plugin - Seeded, replayable randomness for moves.

Inside a move:
    roll = ctx.random.d6()
    deck = ctx.random.shuffle(G["deck"])

The generator state is flushed into ctx._random after every move, so the
server and every client produce the same numbers for the same history.
"""

from __future__ import annotations
from typing import Any
import random
import uuid

from .base import Plugin


class Random:
    """PRNG API object handed to user code as ctx.random."""

    def __init__(self, data: dict[str, Any] | None = None):
        data = data or {}
        self.seed = data.get("seed")
        self._prngstate = data.get("prngstate")
        self._rng: random.Random | None = None
        self._used = False

    @staticmethod
    def make_seed() -> str:
        return uuid.uuid4().hex[:10]

    def _generator(self) -> random.Random:
        if self._rng is None:
            self._rng = random.Random(self.seed)
            if self._prngstate is not None:
                version, internal, gauss_next = self._prngstate
                self._rng.setstate((version, tuple(internal), gauss_next))
        return self._rng

    def is_used(self) -> bool:
        return self._used

    def get_state(self) -> dict[str, Any]:
        if self._rng is None:
            return {"seed": self.seed, "prngstate": self._prngstate}
        version, internal, gauss_next = self._rng.getstate()
        return {"seed": self.seed, "prngstate": [version, list(internal), gauss_next]}

    def number(self) -> float:
        """Float in [0, 1)."""
        self._used = True
        return self._generator().random()

    def die(self, spotvalue: int = 6, dice_count: int | None = None) -> int | list[int]:
        """Roll one die, or a list of dice_count dice."""
        self._used = True
        rng = self._generator()
        if dice_count is None:
            return rng.randint(1, spotvalue)
        return [rng.randint(1, spotvalue) for _ in range(dice_count)]

    def d4(self, dice_count: int | None = None):
        return self.die(4, dice_count)

    def d6(self, dice_count: int | None = None):
        return self.die(6, dice_count)

    def d8(self, dice_count: int | None = None):
        return self.die(8, dice_count)

    def d10(self, dice_count: int | None = None):
        return self.die(10, dice_count)

    def d12(self, dice_count: int | None = None):
        return self.die(12, dice_count)

    def d20(self, dice_count: int | None = None):
        return self.die(20, dice_count)

    def shuffle(self, deck: list[Any]) -> list[Any]:
        """Return a shuffled copy of deck."""
        self._used = True
        shuffled = list(deck)
        self._generator().shuffle(shuffled)
        return shuffled


def _setup(game: Any, ctx: Any) -> dict[str, Any]:
    seed = getattr(game, "seed", None)
    if seed is None:
        seed = Random.make_seed()
    return {"seed": seed}


PluginRandom = Plugin(
    name="random",
    setup=_setup,
    api=lambda data, ctx: Random(data),
    flush=lambda api: api.get_state(),
    no_client=lambda api: api.is_used(),
)
