"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the contract between clients and the master.

Error Codes:
- GAME_NOT_FOUND: game_id does not exist
- UNKNOWN_GAME_TYPE: no registered game with that name
- STALE_STATE: the action was built against an old state; resync
- UNAUTHORIZED_PLAYER: the connection does not own the acting player
- ACTION_REJECTED: the engine rejected the action (see details)
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class ErrorCode(str, Enum):
    """Structured error codes."""
    GAME_NOT_FOUND = "GAME_NOT_FOUND"
    UNKNOWN_GAME_TYPE = "UNKNOWN_GAME_TYPE"
    STALE_STATE = "STALE_STATE"
    UNAUTHORIZED_PLAYER = "UNAUTHORIZED_PLAYER"
    ACTION_REJECTED = "ACTION_REJECTED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ActionKind(str, Enum):
    """Actions a client may submit."""
    MAKE_MOVE = "MAKE_MOVE"
    GAME_EVENT = "GAME_EVENT"


# =============================================================================
# Nested models
# =============================================================================

class CtxInfo(BaseModel):
    """Public part of the engine context."""
    num_players: int
    play_order: list[str]
    play_order_pos: int
    current_player: str
    active_players: Optional[dict[str, Optional[str]]] = None
    action_players: list[str] = Field(default_factory=list)
    turn: int
    phase: str
    num_moves: int
    gameover: Any = None


class LogEntryInfo(BaseModel):
    """One applied action."""
    type: str = Field(description="MAKE_MOVE or GAME_EVENT")
    name: Optional[str] = Field(None, description="Move or event name")
    args: list[Any] = Field(default_factory=list)
    player_id: Optional[str] = None
    state_id: int
    turn: int
    phase: str
    automatic: bool = False


# =============================================================================
# Requests
# =============================================================================

class CreateGameRequest(BaseModel):
    """Start a new game."""
    game_type: str = Field("tic-tac-toe", description="Registered game name")
    num_players: Optional[int] = Field(
        None, ge=1, le=16, description="Defaults to BOARDFLOW_NUM_PLAYERS"
    )
    game_id: Optional[str] = Field(None, description="Explicit id (generated if omitted)")


class ActionRequest(BaseModel):
    """A move or event submitted over HTTP."""
    type: ActionKind = ActionKind.MAKE_MOVE
    name: str = Field(..., description="Move or event name, e.g. click_cell, end_turn")
    args: list[Any] = Field(default_factory=list)
    player_id: Optional[str] = None
    state_id: Optional[int] = Field(
        None, description="State the client applied the action to; omit to skip the check"
    )


# =============================================================================
# Responses
# =============================================================================

class GameStateResponse(BaseModel):
    """A game as seen by one player."""
    game_id: str
    game_type: str
    state_id: int
    G: Any = None
    ctx: CtxInfo
    log: list[LogEntryInfo] = Field(default_factory=list)
    api_version: str = "v1"


class ActionResponse(BaseModel):
    """Response after submitting an action."""
    success: bool
    game_id: str
    state: Optional[GameStateResponse] = None
    api_version: str = "v1"


class GameListResponse(BaseModel):
    """Response listing stored games."""
    games: list[str]
    count: int


class ErrorResponse(BaseModel):
    """Standard error body."""
    error: str
    error_code: ErrorCode
    details: Optional[dict[str, Any]] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
