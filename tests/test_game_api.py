from __future__ import annotations

import uuid


def _game(client, headers, **extra):  # type: ignore[no-untyped-def]
    res = client.post("/games", json={"name": "Crypt run", "description": "A test game", **extra}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


def test_create_game_with_character_then_strength_roll(client, register, make_character) -> None:
    dm = register("dm")
    hero = make_character(dm["headers"], "Brakka", strength=16)
    gid = _game(client, dm["headers"], character_id=hero["character_id"])["game_id"]

    res = client.post(f"/games/{gid}/roll", json={"dice_type": "d20", "reason": "strength check"}, headers=dm["headers"])
    assert res.status_code == 200, res.text
    roll = res.json()["roll"]
    assert roll["total"] == roll["raw"] + 3
    assert roll["character_id"] == hero["character_id"]


def test_joined_player_strength_roll(client, register, make_character) -> None:
    dm = register("dm")
    player = register("player")
    hero = make_character(player["headers"], "Brakka", strength=16)
    assert hero["modifiers"]["strength"] == 3

    game = _game(client, dm["headers"])
    gid = game["game_id"]

    res = client.post(f"/games/{gid}/characters", json={"character_id": hero["character_id"]}, headers=player["headers"])
    assert res.status_code == 200, res.text
    assert [c["name"] for c in res.json()["characters"]] == ["Brakka"]

    res = client.post(f"/games/{gid}/roll", json={"dice_type": "d20", "reason": "strength check"}, headers=player["headers"])
    assert res.status_code == 200, res.text
    body = res.json()

    roll = body["roll"]
    assert 1 <= roll["raw"] <= 20
    assert roll["ability"] == "strength"
    assert roll["total"] == roll["raw"] + 3
    assert [m["type"] for m in body["messages"]] == ["roll", "dm"]
    assert body["messages"][0]["sender"] == "Brakka"


def test_message_turn(client, register, agents) -> None:
    dm = register("dm")
    gid = _game(client, dm["headers"])["game_id"]
    agents.analyzer.queue('{"needsRoll": true, "diceType": "d20", "skillCheck": "Stealth"}')
    agents.narrator.queue('{"narration": "You slip into the shadows."}')

    res = client.post(f"/games/{gid}/message", json={"message": "I hide"}, headers=dm["headers"])
    assert res.status_code == 200, res.text
    body = res.json()
    assert [m["type"] for m in body["messages"]] == ["player", "dm"]
    assert body["messages"][0]["sender"] == "dm"
    assert body["messages"][1]["content"] == "You slip into the shadows."
    assert body["action_analysis"]["needsRoll"] is True
    assert body["action_analysis"]["skillCheck"] == "Stealth"

    game = client.get(f"/games/{gid}", headers=dm["headers"]).json()
    assert [m["type"] for m in game["messages"]] == ["dm", "player", "dm"]


def test_narrator_failure_returns_500_with_partial_messages(client, register, agents) -> None:
    dm = register("dm")
    gid = _game(client, dm["headers"])["game_id"]
    agents.narrator.queue(RuntimeError("provider exploded with sk-secret"))

    res = client.post(f"/games/{gid}/message", json={"message": "I open the chest"}, headers=dm["headers"])
    assert res.status_code == 500
    body = res.json()
    assert body["detail"] == "AI service error. Please try again later."
    assert "sk-secret" not in res.text
    assert [m["type"] for m in body["messages"]] == ["player", "system"]

    game = client.get(f"/games/{gid}", headers=dm["headers"]).json()
    assert [m["type"] for m in game["messages"]] == ["dm", "player", "system"]


def test_non_participant_is_forbidden(client, register) -> None:
    dm = register("dm")
    outsider = register("outsider")
    gid = _game(client, dm["headers"])["game_id"]

    assert client.get(f"/games/{gid}", headers=outsider["headers"]).status_code == 403
    assert client.post(f"/games/{gid}/message", json={"message": "hi"}, headers=outsider["headers"]).status_code == 403
    assert client.post(f"/games/{gid}/roll", json={}, headers=outsider["headers"]).status_code == 403
    assert client.get(f"/games/{gid}/characters", headers=outsider["headers"]).status_code == 403
    assert client.get("/games", headers=outsider["headers"]).json()["games"] == []


def test_only_dm_can_delete(client, register, make_character) -> None:
    dm = register("dm")
    player = register("player")
    hero = make_character(player["headers"], "Pip")
    gid = _game(client, dm["headers"])["game_id"]
    client.post(f"/games/{gid}/characters", json={"character_id": hero["character_id"]}, headers=player["headers"])

    assert client.delete(f"/games/{gid}", headers=player["headers"]).status_code == 403
    assert client.delete(f"/games/{gid}", headers=dm["headers"]).status_code == 204
    assert client.get(f"/games/{gid}", headers=dm["headers"]).status_code == 404


def test_auth_is_required(client, register) -> None:
    dm = register("dm")
    gid = _game(client, dm["headers"])["game_id"]

    assert client.get(f"/games/{gid}").status_code == 401
    assert client.get(f"/games/{gid}", headers={"Authorization": "Bearer nope"}).status_code == 401
    assert client.get(f"/games/{gid}", headers={"Authorization": "Token abc"}).status_code == 401


def test_bad_requests(client, register) -> None:
    dm = register("dm")
    gid = _game(client, dm["headers"])["game_id"]

    assert client.post(f"/games/{gid}/message", json={"message": "   "}, headers=dm["headers"]).status_code == 400
    assert client.post(f"/games/{gid}/message", json={}, headers=dm["headers"]).status_code == 400
    assert client.post(f"/games/{gid}/roll", json={"dice_type": "d0"}, headers=dm["headers"]).status_code == 400
    assert client.post("/games", json={"name": ""}, headers=dm["headers"]).status_code == 400
    assert client.get(f"/games/{uuid.uuid4()}", headers=dm["headers"]).status_code == 404
    assert client.post("/games", json={"name": "x", "description": "y", "adventure_id": "nope"}, headers=dm["headers"]).status_code == 404


def test_game_from_adventure_uses_its_opening(client, register, agents) -> None:
    dm = register("dm")
    game = _game(client, dm["headers"], adventure_id="test-crypt")

    assert game["adventure_id"] == "test-crypt"
    assert game["game_state"]["current_scene"] == "At the sealed door of the Test Crypt"
    assert game["game_state"]["memory"]["world_state"]["active_quests"][0]["title"] == "Test Crypt"
    assert "Test Crypt" in game["messages"][0]["content"]

    client.post(f"/games/{game['game_id']}/message", json={"message": "I knock"}, headers=dm["headers"])
    system_prompt = agents.narrator.calls[0]["ctx"].system_prompt
    assert "ADVENTURE CONTEXT:" in system_prompt
    assert "Gravekeeper" in system_prompt


def test_status_lifecycle(client, register) -> None:
    dm = register("dm")
    player = register("player")
    gid = _game(client, dm["headers"])["game_id"]

    res = client.patch(f"/games/{gid}/status", json={"status": "paused"}, headers=dm["headers"])
    assert res.status_code == 200
    assert res.json()["status"] == "paused"

    assert client.post(f"/games/{gid}/message", json={"message": "hi"}, headers=dm["headers"]).status_code == 400
    assert client.patch(f"/games/{gid}/status", json={"status": "active"}, headers=player["headers"]).status_code == 403

    assert client.patch(f"/games/{gid}/status", json={"status": "completed"}, headers=dm["headers"]).status_code == 200
    res = client.patch(f"/games/{gid}/status", json={"status": "active"}, headers=dm["headers"])
    assert res.status_code == 400
    assert "completed" in res.json()["detail"]


def test_roster_join_replace_and_remove(client, register, make_character) -> None:
    dm = register("dm")
    player = register("player")
    dm_hero = make_character(dm["headers"], "Aldric")
    first = make_character(player["headers"], "Pip")
    second = make_character(player["headers"], "Wren")
    gid = _game(client, dm["headers"], character_id=dm_hero["character_id"])["game_id"]

    client.post(f"/games/{gid}/characters", json={"character_id": first["character_id"]}, headers=player["headers"])
    res = client.post(f"/games/{gid}/characters", json={"character_id": second["character_id"]}, headers=player["headers"])
    assert sorted(c["name"] for c in res.json()["characters"]) == ["Aldric", "Wren"]

    # Someone else's character can't be used to join.
    res = client.post(f"/games/{gid}/characters", json={"character_id": dm_hero["character_id"]}, headers=player["headers"])
    assert res.status_code == 403

    # Players can't remove other players' characters.
    res = client.delete(f"/games/{gid}/characters/{dm_hero['character_id']}", headers=player["headers"])
    assert res.status_code == 403

    res = client.delete(f"/games/{gid}/characters/{second['character_id']}", headers=player["headers"])
    assert res.status_code == 200
    assert [c["name"] for c in res.json()["characters"]] == ["Aldric"]
    assert client.get(f"/games/{gid}", headers=player["headers"]).status_code == 403

    # The DM keeps their seat without a character.
    res = client.delete(f"/games/{gid}/characters/{dm_hero['character_id']}", headers=dm["headers"])
    assert res.status_code == 200
    assert res.json()["characters"] == []
    game = client.get(f"/games/{gid}", headers=dm["headers"]).json()
    assert game["players"] == [{"user_id": dm["user"]["user_id"], "character_id": None}]


def test_list_games_newest_first(client, register) -> None:
    dm = register("dm")
    first = _game(client, dm["headers"], name="first")
    second = _game(client, dm["headers"], name="second")

    games = client.get("/games", headers=dm["headers"]).json()["games"]
    assert [g["game_id"] for g in games] == [second["game_id"], first["game_id"]]


def test_healthcheck(client) -> None:
    assert client.get("/healthcheck").json() == {"status": "ok"}
