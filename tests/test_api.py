import uuid

import pytest
from fastapi.testclient import TestClient

from main import app
from database import get_db
from models import Player, Role
from api.websocket import get_change_feed, get_session_factory


@pytest.fixture
def client(session_factory, feed):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_change_feed] = lambda: feed
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create_room(client, **settings):
    body = {"max_players": 6, "impostor_count": 1, "max_rounds": 5, **settings}
    response = client.post("/api/rooms", json=body)
    assert response.status_code == 200
    return response.json()


def _join(client, code, name):
    response = client.post(f"/api/rooms/{code}/join", json={"name": name})
    assert response.status_code == 200
    return response.json()


def _roles(session_factory, room_id):
    db = session_factory()
    try:
        return {str(p.id): p.role for p in db.query(Player).filter(Player.room_id == uuid.UUID(room_id))}
    finally:
        db.close()


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy", "live_views": 0}


def test_create_room_validates_settings(client):
    response = client.post("/api/rooms", json={"max_players": 6, "impostor_count": 6, "max_rounds": 5})
    assert response.status_code == 400


def test_join_errors(client):
    assert client.post("/api/rooms/NOPE00/join", json={"name": "Ann"}).status_code == 404

    room = _create_room(client, max_players=3)
    for name in ("Ann", "Ben", "Cid"):
        _join(client, room["code"], name)

    full = client.post(f"/api/rooms/{room['code']}/join", json={"name": "Dee"})
    assert full.status_code == 409
    blank = client.post(f"/api/rooms/{room['code']}/join", json={"name": "  "})
    assert blank.status_code == 400


def test_start_without_enough_players(client):
    room = _create_room(client)
    _join(client, room["code"], "Ann")

    response = client.post(f"/api/rooms/{room['id']}/start")
    assert response.status_code == 400


def test_full_game_over_http(client, session_factory):
    room = _create_room(client)
    assert room["status"] == "waiting"

    players = [_join(client, room["code"].lower(), name) for name in ("Ann", "Ben", "Cid")]
    assert [p["is_host"] for p in players] == [True, False, False]

    started = client.post(f"/api/rooms/{room['id']}/start")
    assert started.status_code == 200
    assert started.json()["status"] == "playing"
    assert client.post(f"/api/rooms/{room['id']}/start").status_code == 409

    # Each player only sees their own role
    roles = _roles(session_factory, room["id"])
    ann_id = players[0]["player_id"]
    state = client.get(f"/api/rooms/{room['code']}/state", params={"player_id": ann_id}).json()
    visible = {p["id"]: p["role"] for p in state["players"]}
    assert visible[ann_id] == roles[ann_id].value
    assert [role for pid, role in visible.items() if pid != ann_id] == [None, None]
    assert (state["room"]["secret_word"] is None) == (roles[ann_id] == Role.IMPOSTOR)

    # Clues in turn order
    current = client.get(f"/api/rooms/{room['id']}/rounds/current").json()
    round_id = current["id"]
    out_of_turn = client.post(
        f"/api/rounds/{round_id}/clues",
        json={"player_id": players[1]["player_id"], "text": "early"}
    )
    assert out_of_turn.status_code == 409

    for _ in players:
        turn = client.get(f"/api/rooms/{room['id']}/rounds/current").json()["current_turn_player_id"]
        response = client.post(f"/api/rounds/{round_id}/clues", json={"player_id": turn, "text": "hint"})
        assert response.status_code == 200
        assert response.json()["created"] is True
    assert response.json()["round_status"] == "voting"

    # Votes: everybody turns on the impostor
    impostor_id = next(pid for pid, role in roles.items() if role == Role.IMPOSTOR)
    crew_ids = [pid for pid, role in roles.items() if role == Role.CREW]

    self_vote = client.post(f"/api/rounds/{round_id}/votes", json={"voter_id": impostor_id, "target_id": impostor_id})
    assert self_vote.status_code == 400

    for voter_id in crew_ids:
        client.post(f"/api/rounds/{round_id}/votes", json={"voter_id": voter_id, "target_id": impostor_id})
    last = client.post(f"/api/rounds/{round_id}/votes", json={"voter_id": impostor_id, "target_id": crew_ids[0]})
    assert last.json()["round_status"] == "finished"

    assert client.post(f"/api/rounds/{round_id}/resolve").json()["resolved"] is False

    final = client.get(f"/api/rooms/{room['code']}/state").json()
    assert final["room"]["status"] == "finished"
    assert final["room"]["winner"] == "crew"
    assert all(p["role"] is not None for p in final["players"])

    # Play again, then go back to the lobby
    assert client.post(f"/api/rooms/{room['id']}/restart").json()["current_round"] == 1
    lobby = client.post(f"/api/rooms/{room['id']}/lobby").json()
    assert lobby["status"] == "waiting"
    assert client.get(f"/api/rooms/{room['id']}/rounds/current").status_code == 404


def test_websocket_pushes_room_updates(client):
    room = _create_room(client)

    with client.websocket_connect(f"/ws/rooms/{room['code']}") as websocket:
        initial = websocket.receive_json()
        assert initial["room"]["code"] == room["code"]
        assert initial["players"] == []

        _join(client, room["code"], "Ann")

        update = websocket.receive_json()
        assert [p["name"] for p in update["players"]] == ["Ann"]


def test_websocket_unknown_room(client):
    with client.websocket_connect("/ws/rooms/NOPE00") as websocket:
        assert "error" in websocket.receive_json()
