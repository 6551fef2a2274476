from flask import Blueprint, jsonify, request

from pokerbot.helpers.admin import admin_required
from pokerbot.helpers.escalations import (
    confirm_player_quick_action,
    decline_player_quick_action,
    escalation_to_dict,
    get_escalation,
    get_pending_escalations,
    resolve_escalation,
)

escalations_bp = Blueprint("escalations", __name__)


@escalations_bp.route("/admin/escalations", methods=["GET"])
@admin_required
def list_escalations():
    return jsonify({
        "ok": True,
        "escalations": [escalation_to_dict(m) for m in get_pending_escalations()],
    })


@escalations_bp.route("/admin/escalations/<int:message_id>", methods=["GET"])
@admin_required
def escalation_detail(message_id):
    msg = get_escalation(message_id)
    return jsonify({"ok": True, "escalation": escalation_to_dict(msg, with_history=True)})


@escalations_bp.route("/admin/escalations/<int:message_id>/resolve", methods=["POST"])
@admin_required
def resolve(message_id):
    data = request.get_json(force=True, silent=True) or {}
    try:
        msg = resolve_escalation(message_id, data.get("response", ""))
    except ValueError as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    return jsonify({"ok": True, "escalation": escalation_to_dict(msg)})


@escalations_bp.route("/admin/escalations/<int:message_id>/confirm", methods=["POST"])
@admin_required
def quick_confirm(message_id):
    msg = confirm_player_quick_action(message_id)
    return jsonify({"ok": True, "escalation": escalation_to_dict(msg)})


@escalations_bp.route("/admin/escalations/<int:message_id>/decline", methods=["POST"])
@admin_required
def quick_decline(message_id):
    msg = decline_player_quick_action(message_id)
    return jsonify({"ok": True, "escalation": escalation_to_dict(msg)})
