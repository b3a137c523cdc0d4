"""
API Module - HTTP/WebSocket interface to the master.

Clients:
1. Start games
2. Fetch their own view of a game
3. Submit moves and events tagged with the state_id they saw
4. Receive sync/update messages over a WebSocket

All games are held in memory.
"""

from .schemas import (
    # Requests
    CreateGameRequest,
    ActionRequest,
    # Responses
    GameStateResponse,
    ActionResponse,
    GameListResponse,
    ErrorResponse,
    HealthResponse,
    # Shared
    CtxInfo,
    LogEntryInfo,
)
from .app import create_app

__all__ = [
    # Requests
    "CreateGameRequest",
    "ActionRequest",
    # Responses
    "GameStateResponse",
    "ActionResponse",
    "GameListResponse",
    "ErrorResponse",
    "HealthResponse",
    # Shared
    "CtxInfo",
    "LogEntryInfo",
    "create_app",
]
