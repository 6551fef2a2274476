"""Admin JSON endpoints: players, games, queue and escalations."""
from conftest import ADMIN_PHONE, reload
from pokerbot.extensions import db
from pokerbot.helpers.escalations import record_escalation
from pokerbot.helpers.messages import create_message
from pokerbot.models import EscalationStatus, Game, GameStatus, Invitation, InvitationStatus, MessageDirection, Player


def test_admin_endpoints_require_login(client):
    for path in ("/admin/players", "/admin/games", "/admin/escalations", "/admin/dashboard"):
        res = client.get(path)
        assert res.status_code == 401
        assert res.get_json()["ok"] is False


def test_login_and_logout(client):
    assert client.post("/admin/login", json={"password": "wrong"}).status_code == 401
    assert client.post("/admin/login", json={"password": "hunter2"}).status_code == 200
    assert client.get("/admin/players").status_code == 200

    client.post("/admin/logout")
    assert client.get("/admin/players").status_code == 401


def test_healthz(client):
    assert client.get("/healthz").get_json() == {"ok": True}


# ---------- players ----------

def test_create_player_normalizes_phone(admin_client):
    res = admin_client.post(
        "/admin/players",
        json={"first_name": " Ann ", "last_name": "Lee", "phone": "(555) 123-4567", "email": "Ann@Example.com"},
    )

    assert res.status_code == 201
    player = res.get_json()["player"]
    assert player["first_name"] == "Ann"
    assert player["phone"] == "+15551234567"
    assert player["email"] == "ann@example.com"
    assert player["opted_out"] is False


def test_create_player_rejects_duplicates_and_blanks(admin_client):
    admin_client.post("/admin/players", json={"first_name": "Ann", "phone": "5551234567"})

    dupe = admin_client.post("/admin/players", json={"first_name": "Bob", "phone": "+15551234567"})
    assert dupe.status_code == 400
    assert "already exists" in dupe.get_json()["error"]

    assert admin_client.post("/admin/players", json={"phone": "5559876543"}).status_code == 400


def test_edit_player(admin_client, make_player):
    player = make_player(first_name="Ann")

    res = admin_client.patch(f"/admin/players/{player.id}", json={"first_name": "Annie", "ignored": 1})

    assert res.status_code == 200
    assert reload(Player, player.id).first_name == "Annie"
    assert admin_client.patch(f"/admin/players/{player.id}", json={}).status_code == 400
    assert admin_client.patch("/admin/players/999", json={"first_name": "X"}).status_code == 404


def test_opt_out_and_reactivate(admin_client, make_player):
    player = make_player()

    res = admin_client.post(f"/admin/players/{player.id}/opt-out")
    assert res.get_json()["player"]["opted_out"] is True

    active = admin_client.get("/admin/players").get_json()["players"]
    opted_out = admin_client.get("/admin/players/opted-out").get_json()["players"]
    assert player.id not in [p["id"] for p in active]
    assert [p["id"] for p in opted_out] == [player.id]

    res = admin_client.post(f"/admin/players/{player.id}/reactivate")
    assert res.get_json()["player"]["opted_out"] is False


# ---------- games ----------

GAME_PAYLOAD = {
    "date": "2030-03-12",
    "time": "19:00",
    "location": "Jon's place",
    "rsvp_deadline": "2030-03-11T18:00:00Z",
    "capacity": 6,
    "time_block": "Doors 6:30",
}


def test_create_game_starts_as_draft(admin_client):
    res = admin_client.post("/admin/games", json=GAME_PAYLOAD)

    assert res.status_code == 201
    game = res.get_json()["game"]
    assert game["status"] == "draft"
    assert game["capacity"] == 6
    assert game["time"] == "19:00"
    assert game["rsvp_deadline"] == "2030-03-11T18:00:00"


def test_create_game_validation(admin_client):
    missing = admin_client.post("/admin/games", json={"date": "2030-03-12"})
    assert missing.status_code == 400
    assert "location" in missing.get_json()["error"]

    bad = admin_client.post("/admin/games", json={**GAME_PAYLOAD, "date": "next tuesday"})
    assert bad.status_code == 400


def test_game_status_transitions(admin_client):
    game_id = admin_client.post("/admin/games", json=GAME_PAYLOAD).get_json()["game"]["id"]

    res = admin_client.post(f"/admin/games/{game_id}/status", json={"status": "active"})
    assert res.get_json()["game"]["status"] == "active"

    back = admin_client.post(f"/admin/games/{game_id}/status", json={"status": "draft"})
    assert back.status_code == 409
    assert back.get_json()["ok"] is False

    assert admin_client.post(f"/admin/games/{game_id}/status", json={"status": "paused"}).status_code == 400
    assert reload(Game, game_id).status == GameStatus.ACTIVE


def test_unknown_game(admin_client):
    res = admin_client.get("/admin/games/999")
    assert res.status_code == 404
    assert res.get_json() == {"ok": False, "error": "Game 999 not found"}


def test_queue_send_and_advance(admin_client, make_game, make_player, twilio):
    game = make_game(capacity=1)
    players = [make_player() for _ in range(3)]

    res = admin_client.post(
        f"/admin/games/{game.id}/invitations",
        json={"player_ids": [players[2].id, players[0].id, players[1].id]},
    )
    assert res.status_code == 201
    assert [i["player_id"] for i in res.get_json()["invitations"]] == [players[2].id, players[0].id, players[1].id]

    again = admin_client.post(f"/admin/games/{game.id}/invitations", json={"player_ids": [players[0].id]})
    assert again.status_code == 409

    sent = admin_client.post(f"/admin/games/{game.id}/send", json={"batch_size": 5}).get_json()
    assert sent["sent"] == 1
    assert twilio.to(players[2].phone)

    # Capacity counts confirmed seats only, so a manual advance still goes out
    assert admin_client.post(f"/admin/games/{game.id}/advance").get_json()["invited"] is True

    detail = admin_client.get(f"/admin/games/{game.id}").get_json()["game"]
    assert detail["counts"]["invited"] == 2
    assert detail["counts"]["pending"] == 1
    assert [i["status"] for i in detail["queue"]] == ["invited", "invited", "pending"]


def test_send_rejects_bad_batch_and_inactive_game(admin_client, make_game):
    active = make_game()
    assert admin_client.post(f"/admin/games/{active.id}/send", json={"batch_size": 0}).status_code == 400
    assert admin_client.post(f"/admin/games/{active.id}/send", json={"batch_size": "lots"}).status_code == 400

    draft = make_game(status=GameStatus.DRAFT)
    assert admin_client.post(f"/admin/games/{draft.id}/send").status_code == 409


def test_dashboard_counts(admin_client, make_game, make_player, queue):
    game = make_game()
    queue(game, [make_player(), make_player()])
    admin_client.post(f"/admin/games/{game.id}/send")
    make_player(opted_out=True)

    counts = admin_client.get("/admin/dashboard").get_json()["counts"]

    assert counts == {
        "upcoming_games": 1,
        "active_players": 2,
        "awaiting_response": 2,
        "pending_escalations": 0,
    }


# ---------- escalations ----------

def _escalation(make_game, make_player, queue):
    game = make_game()
    player = make_player(first_name="Ann")
    inv = queue(game, [player])[0]
    inbound = create_message(player.id, MessageDirection.INBOUND, "Can I bring Sam?", game_id=game.id)
    msg = record_escalation(inbound, "Plus-one request", "Let me check", game=game)
    return msg, inv, player


def test_escalation_list_and_detail(admin_client, make_game, make_player, queue):
    msg, _, player = _escalation(make_game, make_player, queue)

    listed = admin_client.get("/admin/escalations").get_json()["escalations"]
    assert [e["id"] for e in listed] == [msg.id]
    assert listed[0]["player"]["first_name"] == "Ann"
    assert listed[0]["escalation_reason"] == "Plus-one request"

    detail = admin_client.get(f"/admin/escalations/{msg.id}").get_json()["escalation"]
    assert [m["body"] for m in detail["history"]] == ["Can I bring Sam?"]

    assert admin_client.get("/admin/escalations/999").status_code == 404


def test_escalation_resolve_endpoint(admin_client, make_game, make_player, queue, twilio):
    msg, _, player = _escalation(make_game, make_player, queue)

    assert admin_client.post(f"/admin/escalations/{msg.id}/resolve", json={"response": " "}).status_code == 400

    res = admin_client.post(f"/admin/escalations/{msg.id}/resolve", json={"response": "Sure, bring Sam"})
    assert res.status_code == 200
    assert res.get_json()["escalation"]["escalation_status"] == "resolved"
    assert twilio.to(player.phone) == ["Sure, bring Sam"]

    assert admin_client.post(f"/admin/escalations/{msg.id}/resolve", json={"response": "Again"}).status_code == 409


def test_escalation_send_failure_is_bad_gateway(admin_client, make_game, make_player, queue, twilio):
    msg, _, _ = _escalation(make_game, make_player, queue)
    twilio.fail_all = True

    res = admin_client.post(f"/admin/escalations/{msg.id}/resolve", json={"response": "Sure"})

    assert res.status_code == 502
    assert reload(type(msg), msg.id).escalation_status == EscalationStatus.PENDING


def test_escalation_quick_actions(admin_client, make_game, make_player, queue, twilio):
    msg, inv, player = _escalation(make_game, make_player, queue)
    # The quick actions operate on an outstanding invitation
    admin_client.post(f"/admin/games/{inv.game_id}/send")

    res = admin_client.post(f"/admin/escalations/{msg.id}/decline")

    assert res.status_code == 200
    assert reload(Invitation, inv.id).status == InvitationStatus.DECLINED
    assert admin_client.post(f"/admin/escalations/{msg.id}/confirm").status_code == 409
    assert ADMIN_PHONE in [m.to for m in twilio.sent]


def test_cancelling_a_game_cancels_calendar_events(admin_client, make_game, make_player, queue, calendar):
    game = make_game()
    invs = queue(game, [make_player(email="a@example.com"), make_player()])
    Invitation.query.filter_by(id=invs[0].id).update(
        {"status": InvitationStatus.CONFIRMED, "google_calendar_event_id": "evt-a"}
    )
    db.session.commit()

    res = admin_client.post(f"/admin/games/{game.id}/status", json={"status": "cancelled"})

    assert res.get_json()["game"]["status"] == "cancelled"
    assert calendar.deleted == ["evt-a"]
