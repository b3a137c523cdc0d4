"""
Tests for API layer.

Tests:
- Game lifecycle over HTTP
- Action submission and error mapping
- WebSocket sync/update messages
"""

import pytest
from fastapi.testclient import TestClient

from ..api import create_app
from ..config import Settings
from ..engine_core.action import Action


@pytest.fixture
def client():
    """Test client over a fresh app with the built-in games."""
    return TestClient(create_app(settings=Settings()))


@pytest.fixture
def game_id(client):
    response = client.post("/api/v1/games", json={"game_type": "tic-tac-toe"})
    return response.json()["game_id"]


def click(client, game_id, cell, player, state_id=None, header=None):
    return client.post(
        f"/api/v1/games/{game_id}/actions",
        json={"name": "click_cell", "args": [cell], "player_id": player, "state_id": state_id},
        headers={"X-Player-ID": header if header is not None else player},
    )


class TestSystem:
    """Tests for health and info endpoints."""

    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "boardflow"

    def test_root_lists_games(self, client):
        assert "tic-tac-toe" in client.get("/").json()["games"]


class TestGames:
    """Tests for game creation and retrieval."""

    def test_create(self, client):
        response = client.post("/api/v1/games", json={"game_type": "tic-tac-toe"})

        assert response.status_code == 200
        data = response.json()
        assert data["game_type"] == "tic-tac-toe"
        assert data["state_id"] == 0
        assert data["G"] == {"cells": [None] * 9}
        assert data["ctx"]["current_player"] == "0"
        assert data["ctx"]["play_order"] == ["0", "1"]
        assert data["ctx"]["turn"] == 1

    def test_create_with_id_and_players(self, client):
        response = client.post(
            "/api/v1/games", json={"game_id": "room", "num_players": 3}
        )
        assert response.json()["game_id"] == "room"
        assert response.json()["ctx"]["num_players"] == 3

    def test_duplicate_id(self, client):
        client.post("/api/v1/games", json={"game_id": "room"})
        response = client.post("/api/v1/games", json={"game_id": "room"})
        assert response.status_code == 409

    def test_unknown_game_type(self, client):
        response = client.post("/api/v1/games", json={"game_type": "chess"})
        assert response.status_code == 400
        data = response.json()
        assert data["error_code"] == "UNKNOWN_GAME_TYPE"
        assert data["details"]["available"] == ["tic-tac-toe"]

    def test_list(self, client, game_id):
        data = client.get("/api/v1/games").json()
        assert data["games"] == [game_id]
        assert data["count"] == 1

    def test_get(self, client, game_id):
        response = client.get(f"/api/v1/games/{game_id}", params={"player_id": "1"})
        assert response.status_code == 200
        assert response.json()["game_id"] == game_id

    def test_get_unknown(self, client):
        response = client.get("/api/v1/games/missing")
        assert response.status_code == 404
        assert response.json()["error_code"] == "GAME_NOT_FOUND"


class TestActions:
    """Tests for POST /games/{id}/actions."""

    def test_move(self, client, game_id):
        response = click(client, game_id, 4, "0", state_id=0)

        assert response.status_code == 200
        state = response.json()["state"]
        assert state["G"]["cells"][4] == "0"
        assert state["state_id"] == 1
        assert state["ctx"]["current_player"] == "1"
        assert [entry["automatic"] for entry in state["log"]] == [False, True]
        assert state["log"][1]["name"] == "end_turn"

    def test_stale_state(self, client, game_id):
        click(client, game_id, 4, "0", state_id=0)
        response = click(client, game_id, 0, "1", state_id=0)

        assert response.status_code == 409
        data = response.json()
        assert data["error_code"] == "STALE_STATE"
        assert data["details"]["resync"]["state"]["_state_id"] == 1

    def test_unauthorized_player(self, client, game_id):
        response = click(client, game_id, 4, "0", header="1")
        assert response.status_code == 403
        assert response.json()["error_code"] == "UNAUTHORIZED_PLAYER"

    def test_out_of_turn(self, client, game_id):
        response = click(client, game_id, 4, "1")
        assert response.status_code == 400
        data = response.json()
        assert data["error_code"] == "ACTION_REJECTED"
        assert data["details"]["engine_error_code"] == "NOT_ACTIVE_PLAYER"

    def test_player_from_header_when_omitted(self, client, game_id):
        response = client.post(
            f"/api/v1/games/{game_id}/actions",
            json={"name": "click_cell", "args": [4], "state_id": 0},
            headers={"X-Player-ID": "1"},
        )
        assert response.status_code == 400
        assert response.json()["details"]["engine_error_code"] == "NOT_ACTIVE_PLAYER"
        cells = client.get(f"/api/v1/games/{game_id}").json()["G"]["cells"]
        assert cells[4] is None

    def test_unknown_game(self, client):
        response = click(client, "missing", 4, "0")
        assert response.status_code == 404

    def test_event(self, client, game_id):
        response = client.post(
            f"/api/v1/games/{game_id}/actions",
            json={"type": "GAME_EVENT", "name": "end_turn", "player_id": "0"},
            headers={"X-Player-ID": "0"},
        )
        assert response.json()["state"]["ctx"]["current_player"] == "1"

    def test_play_to_win(self, client, game_id):
        for cell, player in [(0, "0"), (3, "1"), (1, "0"), (4, "1"), (2, "0")]:
            response = click(client, game_id, cell, player)
            assert response.status_code == 200

        assert response.json()["state"]["ctx"]["gameover"] == {"winner": "0"}
        response = click(client, game_id, 8, "1")
        assert response.json()["details"]["engine_error_code"] == "GAME_OVER"

    def test_missing_name(self, client, game_id):
        response = client.post(f"/api/v1/games/{game_id}/actions", json={"args": [1]})
        assert response.status_code == 422


class TestWebSocket:
    """Tests for the WebSocket endpoint."""

    def test_sync_on_connect(self, client, game_id):
        with client.websocket_connect(f"/api/v1/games/{game_id}/ws?player_id=0") as ws:
            message = ws.receive_json()
            assert message["type"] == "sync"
            assert message["payload"]["game_id"] == game_id
            assert message["payload"]["state"]["_state_id"] == 0

            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_action_broadcasts_update(self, client, game_id):
        with client.websocket_connect(f"/api/v1/games/{game_id}/ws?player_id=0") as ws:
            ws.receive_json()
            ws.send_json({
                "type": "action",
                "action": Action.make_move("click_cell", [4], player_id="0").to_dict(),
                "state_id": 0,
            })

            message = ws.receive_json()
            assert message["type"] == "update"
            assert message["payload"]["state"]["G"]["cells"][4] == "0"

            ws.send_json({
                "type": "action",
                "action": Action.make_move("click_cell", [0], player_id="0").to_dict(),
                "state_id": 0,
            })
            assert ws.receive_json()["type"] == "sync"

    def test_http_action_reaches_socket(self, client, game_id):
        with client.websocket_connect(f"/api/v1/games/{game_id}/ws?player_id=1") as ws:
            ws.receive_json()
            click(client, game_id, 4, "0")
            message = ws.receive_json()
            assert message["type"] == "update"
            assert message["payload"]["state"]["ctx"]["current_player"] == "1"

    def test_unknown_game(self, client):
        with client.websocket_connect("/api/v1/games/missing/ws") as ws:
            message = ws.receive_json()
            assert message["type"] == "error"
            assert message["payload"]["error_code"] == "GAME_NOT_FOUND"

    def test_unknown_message_type(self, client, game_id):
        with client.websocket_connect(f"/api/v1/games/{game_id}/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "dance"})
            assert ws.receive_json()["payload"]["error_code"] == "VALIDATION_ERROR"
