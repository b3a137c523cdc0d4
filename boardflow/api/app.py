"""
FastAPI Application - HTTP/WebSocket transport for the master.

Endpoints:
    GET    /api/v1/health                   Health check
    GET    /api/v1/games                    List stored games
    POST   /api/v1/games                    Start a game
    GET    /api/v1/games/{id}               Game as seen by ?player_id=
    POST   /api/v1/games/{id}/actions       Submit a move or event
    WS     /api/v1/games/{id}/ws            Real-time sync/update messages

The connection's player is given by the X-Player-ID header (HTTP) or the
player_id query parameter (WebSocket). Actions naming another player are
rejected with UNAUTHORIZED_PLAYER.

All responses are JSON with explicit Pydantic schemas.
"""

from typing import Annotated, Optional, Union
import logging

from .. import __version__
from ..config import Settings, load_settings

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, games: Optional[dict] = None):
    """
    Create the FastAPI application.

    Args:
        settings: Optional Settings (read from the environment if not provided)
        games: Optional {game_type: GameDefinition} registry (built-in games if not provided)

    Returns:
        FastAPI application instance
    """
    try:
        from fastapi import FastAPI, Header, Query, WebSocket, WebSocketDisconnect
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import JSONResponse
    except ImportError:
        raise ImportError(
            "FastAPI not installed. Install with: pip install fastapi uvicorn"
        )

    from ..engine_core.action import Action, ActionType, ErrorCode as EngineErrorCode
    from ..errors import GameNotFoundError
    from ..games import GAMES
    from ..multiplayer import InMemoryStorage, Master, redact_log
    from .schemas import (
        # Request models
        CreateGameRequest,
        ActionRequest,
        # Response models
        GameStateResponse,
        ActionResponse,
        GameListResponse,
        ErrorResponse,
        HealthResponse,
        # Enums
        ErrorCode,
        ActionKind,
        # Nested models
        CtxInfo,
        LogEntryInfo,
    )

    settings = settings or load_settings()
    games = games if games is not None else GAMES

    app = FastAPI(
        title="Boardflow API",
        description="""
Turn-based game engine - authoritative master over HTTP and WebSocket.

## Action Flow

1. `POST /games` starts a game and returns its `game_id`
2. Clients submit moves and events with the `state_id` they last saw
3. A stale `state_id` is answered with `409 STALE_STATE` and a full resync
4. Every applied action is broadcast to the game's WebSocket connections

## Error Codes

| Code | Description |
|------|-------------|
| `GAME_NOT_FOUND` | Game does not exist |
| `UNKNOWN_GAME_TYPE` | No game registered under that name |
| `STALE_STATE` | Action built against an old state |
| `UNAUTHORIZED_PLAYER` | Connection does not own the acting player |
| `ACTION_REJECTED` | Engine rejected the action |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    storage = InMemoryStorage()
    # One master per (game_type, num_players), all sharing the storage
    masters: dict[tuple[str, int], Master] = {}
    game_index: dict[str, tuple[str, Master]] = {}

    # WebSocket connections: game_id -> [(socket, player_id)]
    ws_connections: dict[str, list[tuple[WebSocket, Optional[str]]]] = {}

    app.state.settings = settings
    app.state.storage = storage

    # =========================================================================
    # Helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    def get_master(game_type: str, num_players: int) -> Master:
        key = (game_type, num_players)
        if key not in masters:
            masters[key] = Master(games[game_type], storage=storage, num_players=num_players)
        return masters[key]

    def game_state_response(game_id: str, player_id: Optional[str]) -> GameStateResponse:
        game_type, master = game_index[game_id]
        stored = storage.get(game_id)
        view = master.player_state(stored.state, player_id)
        ctx = view.ctx
        return GameStateResponse(
            game_id=game_id,
            game_type=game_type,
            state_id=view._state_id,
            G=view.G,
            ctx=CtxInfo(
                num_players=ctx.num_players,
                play_order=[str(p) for p in ctx.play_order],
                play_order_pos=ctx.play_order_pos,
                current_player=ctx.current_player,
                active_players=ctx.active_players,
                action_players=ctx.action_players,
                turn=ctx.turn,
                phase=ctx.phase,
                num_moves=ctx.num_moves,
                gameover=ctx.gameover,
            ),
            log=[
                LogEntryInfo(
                    type=entry.action.action_type.value,
                    name=entry.action.payload.type,
                    args=list(entry.action.payload.args),
                    player_id=entry.action.player_id,
                    state_id=entry._state_id,
                    turn=entry.turn,
                    phase=entry.phase,
                    automatic=entry.automatic,
                )
                for entry in redact_log(stored.log, player_id)
            ],
        )

    def rejection_response(game_id: str, result) -> JSONResponse:
        """Map an engine rejection to an HTTP error."""
        if result.error_code == EngineErrorCode.STALE_STATE:
            return make_error_response(
                ErrorCode.STALE_STATE, result.error, status_code=409,
                details={"resync": result.resync},
            )
        if result.error_code == EngineErrorCode.UNAUTHORIZED_PLAYER:
            return make_error_response(
                ErrorCode.UNAUTHORIZED_PLAYER, result.error, status_code=403
            )
        if result.error_code == EngineErrorCode.GAME_NOT_FOUND:
            return make_error_response(ErrorCode.GAME_NOT_FOUND, result.error, status_code=404)
        return make_error_response(
            ErrorCode.ACTION_REJECTED,
            result.error or "Action rejected",
            details={
                "game_id": game_id,
                "engine_error_code": result.error_code.value if result.error_code else None,
            },
        )

    async def send_view(ws: WebSocket, message_type: str, game_id: str, player_id: Optional[str]):
        _, master = game_index[game_id]
        await ws.send_json({"type": message_type, "payload": master.on_sync(game_id, player_id)})

    async def broadcast_to_game(game_id: str):
        """Send every connection of a game its own view of the new state."""
        if game_id not in ws_connections:
            return
        dead_connections = []
        for ws, player_id in ws_connections[game_id]:
            try:
                await send_view(ws, "update", game_id, player_id)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.debug("Dropping WebSocket for game %s: %s", game_id, e)
                dead_connections.append((ws, player_id))
        for connection in dead_connections:
            ws_connections[game_id].remove(connection)

    def to_action(request: ActionRequest) -> Action:
        if request.type == ActionKind.GAME_EVENT:
            return Action.game_event(request.name, request.args, player_id=request.player_id)
        return Action.make_move(request.name, request.args, player_id=request.player_id)

    # =========================================================================
    # Game Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/games",
        response_model=GameStateResponse,
        responses={400: {"model": ErrorResponse, "description": "Unknown game type"}},
        tags=["Games"],
        summary="Start a new game",
    )
    async def create_game(request: CreateGameRequest) -> Union[GameStateResponse, JSONResponse]:
        """Start a game of a registered type and return its initial state."""
        if request.game_type not in games:
            return make_error_response(
                ErrorCode.UNKNOWN_GAME_TYPE,
                f"Unknown game type '{request.game_type}'",
                details={"available": sorted(games)},
            )
        if request.game_id is not None and storage.has(request.game_id):
            return make_error_response(
                ErrorCode.VALIDATION_ERROR,
                f"Game '{request.game_id}' already exists",
                status_code=409,
            )
        num_players = request.num_players or settings.default_num_players
        master = get_master(request.game_type, num_players)
        game_id = master.create(game_id=request.game_id)
        game_index[game_id] = (request.game_type, master)
        return game_state_response(game_id, None)

    @app.get(
        "/api/v1/games",
        response_model=GameListResponse,
        tags=["Games"],
        summary="List stored games",
    )
    async def list_games() -> GameListResponse:
        games_list = storage.list_games()
        return GameListResponse(games=games_list, count=len(games_list))

    @app.get(
        "/api/v1/games/{game_id}",
        response_model=GameStateResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Games"],
        summary="Get a game as seen by one player",
    )
    async def get_game(
        game_id: str,
        player_id: Annotated[Optional[str], Query(description="Viewing player")] = None,
    ) -> Union[GameStateResponse, JSONResponse]:
        """Return the player's view: player_view applied, redacted log args hidden."""
        if game_id not in game_index:
            return make_error_response(
                ErrorCode.GAME_NOT_FOUND, f"Game '{game_id}' not found", status_code=404
            )
        return game_state_response(game_id, player_id)

    @app.post(
        "/api/v1/games/{game_id}/actions",
        response_model=ActionResponse,
        responses={
            400: {"model": ErrorResponse, "description": "Action rejected"},
            403: {"model": ErrorResponse, "description": "Not this connection's player"},
            404: {"model": ErrorResponse, "description": "Game not found"},
            409: {"model": ErrorResponse, "description": "Stale state_id; resync"},
        },
        tags=["Games"],
        summary="Submit a move or event",
    )
    async def submit_action(
        game_id: str,
        request: ActionRequest,
        x_player_id: Annotated[Optional[str], Header(description="Connection's player")] = None,
    ) -> Union[ActionResponse, JSONResponse]:
        """Apply a move or event through the master and broadcast the result."""
        if game_id not in game_index:
            return make_error_response(
                ErrorCode.GAME_NOT_FOUND, f"Game '{game_id}' not found", status_code=404
            )
        _, master = game_index[game_id]
        result = master.on_update(
            to_action(request),
            state_id=request.state_id,
            game_id=game_id,
            player_id=x_player_id,
        )
        if not result.success:
            return rejection_response(game_id, result)

        await broadcast_to_game(game_id)
        return ActionResponse(
            success=True,
            game_id=game_id,
            state=game_state_response(game_id, x_player_id),
        )

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/api/v1/games/{game_id}/ws")
    async def websocket_endpoint(websocket: WebSocket, game_id: str, player_id: Optional[str] = None):
        """
        WebSocket for real-time updates.

        Messages from server:
        - sync: Full view (on connect, on request, after a stale action)
        - update: View after an applied action
        - error: Action rejected
        - pong: Keep-alive reply

        Messages from client:
        - action: {"action": <Action.to_dict()>, "state_id": int}
        - sync: Request a full view
        - ping: Keep-alive
        """
        await websocket.accept()
        if game_id not in game_index:
            await websocket.send_json({
                "type": "error",
                "payload": {"error_code": ErrorCode.GAME_NOT_FOUND.value,
                            "message": f"Game '{game_id}' not found"},
            })
            await websocket.close()
            return

        connection = (websocket, player_id)
        ws_connections.setdefault(game_id, []).append(connection)
        _, master = game_index[game_id]

        try:
            await send_view(websocket, "sync", game_id, player_id)

            while True:
                message = await websocket.receive_json()
                message_type = message.get("type")

                if message_type == "ping":
                    await websocket.send_json({"type": "pong"})
                elif message_type == "sync":
                    await send_view(websocket, "sync", game_id, player_id)
                elif message_type == "action":
                    try:
                        action = Action.from_dict(message["action"])
                    except (KeyError, ValueError, TypeError) as e:
                        await websocket.send_json({
                            "type": "error",
                            "payload": {"error_code": ErrorCode.VALIDATION_ERROR.value,
                                        "message": f"Malformed action: {e}"},
                        })
                        continue
                    if action.action_type not in (ActionType.MAKE_MOVE, ActionType.GAME_EVENT):
                        await websocket.send_json({
                            "type": "error",
                            "payload": {"error_code": ErrorCode.VALIDATION_ERROR.value,
                                        "message": "Only moves and events can be sent"},
                        })
                        continue
                    result = master.on_update(
                        action,
                        state_id=message.get("state_id"),
                        game_id=game_id,
                        player_id=player_id,
                    )
                    if result.success:
                        await broadcast_to_game(game_id)
                    elif result.error_code == EngineErrorCode.STALE_STATE:
                        await websocket.send_json({"type": "sync", "payload": result.resync})
                    else:
                        await websocket.send_json({
                            "type": "error",
                            "payload": {
                                "error_code": result.error_code.value if result.error_code else None,
                                "message": result.error,
                            },
                        })
                else:
                    await websocket.send_json({
                        "type": "error",
                        "payload": {"error_code": ErrorCode.VALIDATION_ERROR.value,
                                    "message": f"Unknown message type '{message_type}'"},
                    })

        except WebSocketDisconnect:
            logger.debug("WebSocket for game %s (player %s) disconnected", game_id, player_id)
        except GameNotFoundError:
            logger.info("Game %s was deleted while player %s was connected", game_id, player_id)
        finally:
            if connection in ws_connections.get(game_id, []):
                ws_connections[game_id].remove(connection)

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/api/v1/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="boardflow",
            version=__version__,
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Boardflow API",
            "version": __version__,
            "docs": "/api/docs",
            "health": "/api/v1/health",
            "games": sorted(games),
        }

    return app
