"""
Boardflow - Turn-based game engine

A deterministic engine for turn-based multiplayer games.
A game supplies its setup, moves and phase structure; the engine provides:
- Phase / turn / stage progression
- Pluggable turn orders and active-player sets
- Move dispatch with undo/redo
- A seeded PRNG plugin
- An authoritative master and HTTP/WebSocket transport
"""

__version__ = "0.1.0"
