ADMIN = {"X-Admin-Id": "admin-1"}
OTHER_ADMIN = {"X-Admin-Id": "admin-2"}

GAME = {
    "name": "Office party",
    "teams": ["Red", "Blue"],
    "question_pairs": [{"real_q": "Q", "fake_q": "F"}],
}


def create_game(client, body=GAME):
    response = client.post("/imposters/games", json=body, headers=ADMIN)
    assert response.status_code == 201, response.text
    return response.json()


def join(client, game_id, name, team, role):
    response = client.post(
        f"/imposters/games/{game_id}/join",
        json={"name": name, "team_name": team, "role": role},
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_full_round_over_http(client):
    game = create_game(client)
    gid = game["id"]
    assert game["current_mode"] == "signup"

    ann = join(client, gid, "Ann", "Red", "participant")
    bob = join(client, gid, "Bob", "Blue", "participant")
    vic = join(client, gid, "Vic", "Red", "voter")

    assert client.post(f"/imposters/games/{gid}/close-signups", headers=ADMIN).json()["current_mode"] == "game"
    started = client.post(f"/imposters/games/{gid}/questions/1/start", headers=ADMIN).json()
    assert started["current_mode"] == "question-1"

    polled = client.get(f"/imposters/games/{gid}")
    assert polled.status_code == 200
    assert polled.headers["cache-control"] == "no-store"
    state = polled.json()
    assert len([p for p in state["participants"] if p["has_fake_question"]]) == 1
    assert [p["name"] for p in state["participants"]] == ["Ann", "Bob", "Vic"]

    response = client.post(f"/imposters/participants/{ann['id']}/answer",
                           json={"answer": "hello", "question_number": 1})
    assert response.json()["status"] == "success"

    client.post(f"/imposters/games/{gid}/reveal-votes", headers=ADMIN)
    vote = {"game_id": gid, "voted_for_id": bob["id"], "question_number": 1}
    assert client.post(f"/imposters/participants/{vic['id']}/vote", json=vote).status_code == 200

    duplicate = client.post(f"/imposters/participants/{vic['id']}/vote", json=vote)
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["error"] == "already_voted"

    client.post(f"/imposters/games/{gid}/show-results", headers=ADMIN)
    results = client.get(f"/imposters/games/{gid}/results").json()
    assert results["vote_counts"] == {bob["id"]: 1}
    assert results["answered"] == 1

    assert client.post(f"/imposters/games/{gid}/end", headers=ADMIN).json()["current_mode"] == "finished"

    participant = client.get(f"/imposters/participants/{vic['id']}", params={"game_id": gid}).json()
    assert participant["game"]["current_mode"] == "finished"
    assert len(participant["votes_cast"]) == 1


def test_admin_routes_need_identity(client):
    assert client.post("/imposters/games", json=GAME).status_code == 401
    game = create_game(client)
    response = client.post(f"/imposters/games/{game['id']}/close-signups")
    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "unauthorized"


def test_only_owner_can_delete(client):
    game = create_game(client)
    response = client.delete(f"/imposters/games/{game['id']}", headers=OTHER_ADMIN)
    assert response.status_code == 403
    assert response.json()["detail"]["error"] == "not_owner"

    assert client.delete(f"/imposters/games/{game['id']}", headers=ADMIN).status_code == 200
    assert client.get(f"/imposters/games/{game['id']}").status_code == 404
    assert client.delete(f"/imposters/games/{game['id']}", headers=ADMIN).status_code == 404


def test_list_games(client):
    create_game(client)
    create_game(client, {**GAME, "name": "Second"})
    games = client.get("/imposters/games", headers=ADMIN).json()
    assert sorted(g["name"] for g in games) == ["Office party", "Second"]
    assert client.get("/imposters/games", headers=OTHER_ADMIN).json() == []


def test_create_game_validation_errors(client):
    response = client.post("/imposters/games", json={**GAME, "teams": ["Solo"]}, headers=ADMIN)
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "validation_error"

    response = client.post("/imposters/games", json={"name": "No teams"}, headers=ADMIN)
    assert response.status_code == 422


def test_join_errors(client):
    game = create_game(client)
    gid = game["id"]
    join(client, gid, "Ann", "Red", "participant")

    taken = client.post(f"/imposters/games/{gid}/join",
                        json={"name": "Ann", "team_name": "Blue", "role": "voter"})
    assert taken.status_code == 409
    assert taken.json()["detail"]["error"] == "name_taken"

    bad_role = client.post(f"/imposters/games/{gid}/join",
                           json={"name": "Zed", "team_name": "Blue", "role": "host"})
    assert bad_role.status_code == 422

    client.post(f"/imposters/games/{gid}/close-signups", headers=ADMIN)
    late = client.post(f"/imposters/games/{gid}/join",
                       json={"name": "Zed", "team_name": "Blue", "role": "voter"})
    assert late.status_code == 409
    assert late.json()["detail"]["error"] == "game_already_started"

    missing = client.post("/imposters/games/nope/join",
                          json={"name": "Zed", "team_name": "Blue", "role": "voter"})
    assert missing.status_code == 404


def test_illegal_transition_is_rejected(client):
    game = create_game(client)
    response = client.patch(f"/imposters/games/{game['id']}/mode", json={"mode": "finished"}, headers=ADMIN)
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "invalid_state"

    response = client.patch(f"/imposters/games/{game['id']}/mode", json={"mode": "game"}, headers=ADMIN)
    assert response.json()["current_mode"] == "game"


def test_scores(client):
    game = create_game(client)
    gid = game["id"]
    teams = {"teams": [{"name": "Red", "score": 10}, {"name": "Blue", "score": 0}]}
    assert client.put(f"/imposters/games/{gid}/teams", json=teams, headers=ADMIN).status_code == 200

    adjusted = client.post(f"/imposters/games/{gid}/teams/Blue/adjust", json={"delta": -10}, headers=ADMIN)
    assert adjusted.json()["teams"] == [{"name": "Red", "score": 10}, {"name": "Blue", "score": -10}]

    missing = client.post(f"/imposters/games/{gid}/teams/Green/adjust", json={"delta": 10}, headers=ADMIN)
    assert missing.status_code == 404


def test_remove_participant(client):
    game = create_game(client)
    ann = join(client, game["id"], "Ann", "Red", "participant")

    response = client.delete(f"/imposters/games/{game['id']}/participants/{ann['id']}", headers=ADMIN)
    assert response.status_code == 200
    assert client.get(f"/imposters/participants/{ann['id']}").status_code == 404


def test_stale_answer_is_rejected(client):
    body = {**GAME, "question_pairs": [{"real_q": "Q1", "fake_q": "F1"}, {"real_q": "Q2", "fake_q": "F2"}]}
    game = create_game(client, body)
    gid = game["id"]
    ann = join(client, gid, "Ann", "Red", "participant")
    client.post(f"/imposters/games/{gid}/close-signups", headers=ADMIN)
    client.post(f"/imposters/games/{gid}/questions/1/start", headers=ADMIN)
    client.post(f"/imposters/games/{gid}/reveal-votes", headers=ADMIN)
    client.post(f"/imposters/games/{gid}/show-results", headers=ADMIN)
    client.post(f"/imposters/games/{gid}/questions/2/start", headers=ADMIN)

    response = client.post(f"/imposters/participants/{ann['id']}/answer",
                           json={"answer": "late", "question_number": 1})
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "stale_round"
