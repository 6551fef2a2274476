import secrets

from flask import Blueprint, current_app, jsonify, request

from pokerbot.helpers.calendar import sync_calendar_statuses
from pokerbot.helpers.sweep import sweep_timeouts

cron_bp = Blueprint("cron", __name__)


def _cron_authorized() -> bool:
    secret = current_app.config.get("CRON_SECRET")
    if not secret:
        # Open only for local runs; a deployment without a secret is locked
        return bool(current_app.testing or current_app.debug)
    header = request.headers.get("Authorization", "")
    return secrets.compare_digest(header.encode(), f"Bearer {secret}".encode())


@cron_bp.route("/api/cron/deadline-check", methods=["GET", "POST"])
def deadline_check():
    """Hourly: time out overdue invitations, cascade, then poll calendar replies."""
    if not _cron_authorized():
        return jsonify({"ok": False, "error": "Unauthorized"}), 401

    result = sweep_timeouts()
    calendar = sync_calendar_statuses()

    payload = result.to_dict()
    payload.update({
        "ok": True,
        "calendar_checked": calendar["checked"],
        "calendar_updated": calendar["updated"],
    })
    return jsonify(payload)
