from flask import Blueprint, jsonify, request

from pokerbot.helpers.admin import admin_required
from pokerbot.helpers.players import (
    create_player,
    get_player_or_raise,
    list_active_players,
    list_opted_out_players,
    opt_out_player,
    reactivate_player,
    update_player,
)

players_bp = Blueprint("players", __name__)

EDITABLE_FIELDS = ("first_name", "last_name", "phone", "email")


@players_bp.route("/admin/players", methods=["GET"])
@admin_required
def list_players():
    return jsonify({"ok": True, "players": [p.to_dict() for p in list_active_players()]})


@players_bp.route("/admin/players/opted-out", methods=["GET"])
@admin_required
def list_opted_out():
    return jsonify({"ok": True, "players": [p.to_dict() for p in list_opted_out_players()]})


@players_bp.route("/admin/players", methods=["POST"])
@admin_required
def add_player():
    data = request.get_json(force=True, silent=True) or {}
    try:
        player = create_player(
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
            phone=data.get("phone", ""),
            email=data.get("email"),
        )
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    return jsonify({"ok": True, "player": player.to_dict()}), 201


@players_bp.route("/admin/players/<int:player_id>", methods=["PATCH"])
@admin_required
def edit_player(player_id):
    data = request.get_json(force=True, silent=True) or {}
    fields = {k: data[k] for k in EDITABLE_FIELDS if k in data}
    if not fields:
        return jsonify({"ok": False, "error": "Nothing to update"}), 400

    try:
        player = update_player(player_id, **fields)
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    return jsonify({"ok": True, "player": player.to_dict()})


@players_bp.route("/admin/players/<int:player_id>/opt-out", methods=["POST"])
@admin_required
def opt_out(player_id):
    get_player_or_raise(player_id)
    opt_out_player(player_id)
    return jsonify({"ok": True, "player": get_player_or_raise(player_id).to_dict()})


@players_bp.route("/admin/players/<int:player_id>/reactivate", methods=["POST"])
@admin_required
def reactivate(player_id):
    player = reactivate_player(player_id)
    return jsonify({"ok": True, "player": player.to_dict()})
