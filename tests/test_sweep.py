"""RSVP deadline sweep, calendar polling and the scheduled trigger surfaces."""
import json
from datetime import timedelta

from conftest import reload
from pokerbot.extensions import db
from pokerbot.helpers.calendar import sync_calendar_statuses
from pokerbot.helpers.classifier import AutoRespondDecision, SideEffect
from pokerbot.helpers.flow import process_response, send_invitations_for_game
from pokerbot.helpers.sweep import sweep_timeouts
from pokerbot.helpers.time import utcnow
from pokerbot.models import CalendarStatus, Game, GameStatus, Invitation, InvitationStatus, Player


def _past_deadline(game):
    """Backdate: invitations went out 2h ago, the deadline passed 1h ago."""
    two_hours_ago = utcnow() - timedelta(hours=2)
    Invitation.query.filter(
        Invitation.game_id == game.id, Invitation.status == InvitationStatus.INVITED
    ).update({"invited_at": two_hours_ago}, synchronize_session=False)
    Game.query.filter_by(id=game.id).update(
        {"rsvp_deadline": utcnow() - timedelta(hours=1)}, synchronize_session=False
    )
    db.session.commit()


def _statuses(game):
    db.session.expire_all()
    return [i.status for i in Invitation.query.filter_by(game_id=game.id).order_by(Invitation.position)]


def test_sweep_times_out_and_cascades(app, make_game, make_player, queue, twilio):
    game = make_game(capacity=2)
    players = [make_player() for _ in range(4)]
    queue(game, players)
    send_invitations_for_game(game.id)
    _past_deadline(game)

    result = sweep_timeouts()

    assert (result.games_processed, result.timed_out, result.cascaded) == (1, 2, 2)
    assert _statuses(game) == [InvitationStatus.TIMEOUT] * 2 + [InvitationStatus.INVITED] * 2
    assert reload(Player, players[0].id).timeout_count == 1
    assert reload(Player, players[0].id).response_count == 0
    assert reload(Invitation, Invitation.query.filter_by(player_id=players[0].id).one().id).responded_at
    assert len(twilio.sent) == 4


def test_sweep_is_repeatable(app, make_game, make_player, queue):
    game = make_game(capacity=2)
    queue(game, [make_player() for _ in range(4)])
    send_invitations_for_game(game.id)
    _past_deadline(game)

    sweep_timeouts()
    again = sweep_timeouts()

    # Cascaded invitations went out after the deadline and are left alone
    assert again.games_processed == 1
    assert again.timed_out == 0
    assert again.cascaded == 0


def test_sweep_skips_answered_invitations(app, make_game, make_player, queue):
    game = make_game(capacity=2)
    players = [make_player() for _ in range(2)]
    invs = queue(game, players)
    send_invitations_for_game(game.id)
    process_response(
        invs[0].id, players[0].id,
        AutoRespondDecision(reply_text="In", side_effects=[SideEffect.CONFIRM_PLAYER]),
    )
    _past_deadline(game)

    result = sweep_timeouts()

    assert result.timed_out == 1
    assert _statuses(game) == [InvitationStatus.CONFIRMED, InvitationStatus.TIMEOUT]
    assert reload(Player, players[0].id).timeout_count == 0


def test_sweep_ignores_inactive_and_future_deadlines(app, make_game, make_player, queue):
    future = make_game()
    queue(future, [make_player()])
    send_invitations_for_game(future.id)

    done = make_game(status=GameStatus.COMPLETED, deadline_in=timedelta(hours=-1))

    result = sweep_timeouts()

    assert result.games_processed == 0
    assert result.timed_out == 0
    assert reload(Game, done.id).status == GameStatus.COMPLETED
    assert _statuses(future) == [InvitationStatus.INVITED]


def test_sweep_result_payload(app):
    payload = sweep_timeouts().to_dict()
    assert set(payload) == {"games_processed", "timed_out", "cascaded", "timestamp"}
    assert payload["timestamp"].endswith("Z")


def _confirmed_with_event(game, player, event_id="evt-1"):
    inv = Invitation(
        game_id=game.id,
        player_id=player.id,
        position=1,
        status=InvitationStatus.CONFIRMED,
        google_calendar_event_id=event_id,
        calendar_status=CalendarStatus.PENDING,
    )
    db.session.add(inv)
    db.session.commit()
    return inv


def test_calendar_sync_records_attendee_replies(app, make_game, make_player, calendar):
    game = make_game()
    accepted = _confirmed_with_event(game, make_player(email="yes@example.com"), "evt-a")
    waiting = _confirmed_with_event(make_game(), make_player(email="wait@example.com"), "evt-b")
    calendar.responses = {
        "evt-a": {"yes@example.com": "accepted"},
        "evt-b": {"wait@example.com": "needsAction"},
    }

    assert sync_calendar_statuses() == {"checked": 2, "updated": 1}

    assert reload(Invitation, accepted.id).calendar_status == CalendarStatus.ACCEPTED
    assert reload(Invitation, accepted.id).status == InvitationStatus.CONFIRMED
    assert reload(Invitation, waiting.id).calendar_status == CalendarStatus.PENDING


def test_cron_requires_secret(client):
    assert client.post("/api/cron/deadline-check").status_code == 401
    bad = client.get("/api/cron/deadline-check", headers={"Authorization": "Bearer nope"})
    assert bad.status_code == 401


def test_cron_runs_sweep(app, client, make_game, make_player, queue):
    game = make_game(capacity=1)
    queue(game, [make_player() for _ in range(2)])
    send_invitations_for_game(game.id)
    _past_deadline(game)

    res = client.post("/api/cron/deadline-check", headers={"Authorization": "Bearer cron-secret"})

    assert res.status_code == 200
    data = res.get_json()
    assert data["ok"] is True
    assert data["games_processed"] == 1
    assert data["timed_out"] == 1
    assert data["cascaded"] == 1
    assert data["calendar_checked"] == 0
    assert "timestamp" in data


def test_cli_sweep_command(app, make_game, make_player, queue):
    game = make_game(capacity=1)
    queue(game, [make_player() for _ in range(2)])
    send_invitations_for_game(game.id)
    _past_deadline(game)

    result = app.test_cli_runner().invoke(args=["sweep-timeouts", "--skip-calendar"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout.strip().splitlines()[-1])
    assert payload["timed_out"] == 1
    assert "calendar_checked" not in payload


def test_cron_without_secret_is_closed_outside_local_runs(app, client):
    app.config["CRON_SECRET"] = None
    app.config["TESTING"] = False

    assert client.post("/api/cron/deadline-check").status_code == 401

    app.config["TESTING"] = True
    assert client.post("/api/cron/deadline-check").status_code == 200
