"""
Plugins - Middleware around moves and hooks.

Plugins are an explicit ordered list; their fn_wrap functions are composed
left to right. PluginRandom is always installed first by the game
normalizer.
"""

from .base import Plugin, fn_wrap, setup, enhance, flush, no_client
from .prng import PluginRandom, Random

__all__ = [
    "Plugin",
    "fn_wrap",
    "setup",
    "enhance",
    "flush",
    "no_client",
    "PluginRandom",
    "Random",
]
