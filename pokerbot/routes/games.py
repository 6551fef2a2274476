from flask import Blueprint, jsonify, request

from pokerbot.helpers.admin import admin_required
from pokerbot.helpers.flow import invite_next_player, send_invitations_for_game
from pokerbot.helpers.games import (
    create_game,
    get_game_or_raise,
    invitation_counts,
    list_games_with_counts,
    update_game_status,
)
from pokerbot.helpers.invitations import add_players_to_game, get_invitations_for_game

games_bp = Blueprint("games", __name__)


def _game_detail(game):
    d = game.to_dict()
    d["counts"] = invitation_counts(game.id)
    d["queue"] = [inv.to_dict() for inv in get_invitations_for_game(game.id)]
    return d


@games_bp.route("/admin/games", methods=["GET"])
@admin_required
def list_games():
    return jsonify({"ok": True, "games": list_games_with_counts()})


@games_bp.route("/admin/games", methods=["POST"])
@admin_required
def add_game():
    data = request.get_json(force=True, silent=True) or {}

    missing = [k for k in ("date", "time", "location", "rsvp_deadline") if not data.get(k)]
    if missing:
        return jsonify({"ok": False, "error": f"Missing {', '.join(missing)}"}), 400

    try:
        game = create_game(
            date=data["date"],
            time=data["time"],
            location=data["location"],
            rsvp_deadline=data["rsvp_deadline"],
            capacity=data.get("capacity", 8),
            time_block=data.get("time_block", ""),
            entry_instructions=data.get("entry_instructions"),
        )
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    return jsonify({"ok": True, "game": game.to_dict()}), 201


@games_bp.route("/admin/games/<int:game_id>", methods=["GET"])
@admin_required
def game_detail(game_id):
    return jsonify({"ok": True, "game": _game_detail(get_game_or_raise(game_id))})


@games_bp.route("/admin/games/<int:game_id>/status", methods=["POST"])
@admin_required
def change_status(game_id):
    data = request.get_json(force=True, silent=True) or {}
    status = (data.get("status") or "").strip().lower()
    if not status:
        return jsonify({"ok": False, "error": "Missing status"}), 400

    try:
        game = update_game_status(game_id, status)
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    return jsonify({"ok": True, "game": game.to_dict()})


@games_bp.route("/admin/games/<int:game_id>/invitations", methods=["POST"])
@admin_required
def queue_players(game_id):
    """
    Payload: {"player_ids": [3, 1, 7], "start_position": 4}
    Players are queued in the order given; start_position is optional.
    """
    data = request.get_json(force=True, silent=True) or {}
    player_ids = data.get("player_ids")
    if not isinstance(player_ids, list) or not player_ids:
        return jsonify({"ok": False, "error": "player_ids must be a non-empty list"}), 400

    try:
        created = add_players_to_game(game_id, player_ids, start_position=data.get("start_position"))
    except (TypeError, ValueError) as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    return jsonify({"ok": True, "invitations": [inv.to_dict() for inv in created]}), 201


@games_bp.route("/admin/games/<int:game_id>/send", methods=["POST"])
@admin_required
def send_batch(game_id):
    data = request.get_json(force=True, silent=True) or {}
    batch_size = data.get("batch_size")
    if batch_size is not None:
        try:
            batch_size = int(batch_size)
        except (TypeError, ValueError):
            return jsonify({"ok": False, "error": "Invalid batch_size"}), 400
        if batch_size < 1:
            return jsonify({"ok": False, "error": "batch_size must be at least 1"}), 400

    sent = send_invitations_for_game(game_id, batch_size)
    return jsonify({"ok": True, "sent": sent})


@games_bp.route("/admin/games/<int:game_id>/advance", methods=["POST"])
@admin_required
def advance(game_id):
    get_game_or_raise(game_id)
    return jsonify({"ok": True, "invited": invite_next_player(game_id)})
