"""
In-memory game storage for the master.

PERSISTENCE RULES:
- Games live in process memory only
- A game is gone when the process exits or the game is deleted
- The stored log is the full history of applied actions (for replays)
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
import time
import uuid

from ..engine_core.state import LogEntry, State
from ..errors import GameNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class StoredGame:
    """One game's authoritative state and accumulated log."""
    game_id: str
    state: State
    created_at: float
    updated_at: float
    log: list[LogEntry] = field(default_factory=list)


class InMemoryStorage:
    """
    Stores games by game_id.

    Usage:
        storage = InMemoryStorage()
        game_id = storage.create(initial_state)
        stored = storage.get(game_id)
    """

    def __init__(self):
        self._games: dict[str, StoredGame] = {}

    def create(self, state: State, game_id: str | None = None) -> str:
        """Store a new game and return its id."""
        game_id = game_id or str(uuid.uuid4())[:8]
        now = time.time()
        self._games[game_id] = StoredGame(
            game_id=game_id,
            state=state,
            created_at=now,
            updated_at=now,
        )
        logger.info("Created game %s", game_id)
        return game_id

    def has(self, game_id: str) -> bool:
        return game_id in self._games

    def get(self, game_id: str) -> StoredGame:
        """Raises GameNotFoundError for unknown ids."""
        stored = self._games.get(game_id)
        if stored is None:
            raise GameNotFoundError(game_id)
        return stored

    def set(self, game_id: str, state: State, log: list[LogEntry] | None = None) -> StoredGame:
        """Replace the state of an existing game, appending log entries."""
        stored = self.get(game_id)
        stored.state = state
        stored.log.extend(log or [])
        stored.updated_at = time.time()
        return stored

    def delete(self, game_id: str) -> bool:
        removed = self._games.pop(game_id, None)
        if removed is not None:
            logger.info("Deleted game %s", game_id)
        return removed is not None

    def list_games(self) -> list[str]:
        return list(self._games)

    def cleanup_stale_games(self, max_age_seconds: int = 3600) -> list[str]:
        """Delete games not updated within max_age_seconds."""
        cutoff = time.time() - max_age_seconds
        stale = [
            game_id for game_id, stored in self._games.items()
            if stored.updated_at < cutoff
        ]
        for game_id in stale:
            self.delete(game_id)
        return stale
