from flask import Blueprint, jsonify, request

from pokerbot.helpers.admin import (
    admin_required,
    check_admin_password,
    clear_admin_session,
    establish_admin_session,
)
from pokerbot.helpers.dashboard import get_dashboard_counts

admin_bp = Blueprint("admin", __name__)


@admin_bp.route("/admin/login", methods=["POST"])
def admin_login():
    data = request.get_json(force=True, silent=True) or request.form or {}
    password = data.get("password", "")

    if not check_admin_password(password):
        return jsonify({"ok": False, "error": "Incorrect admin password."}), 401

    establish_admin_session()
    return jsonify({"ok": True})


@admin_bp.route("/admin/logout", methods=["POST"])
def admin_logout():
    clear_admin_session()
    return jsonify({"ok": True})


@admin_bp.route("/admin/dashboard")
@admin_required
def admin_dashboard():
    return jsonify({"ok": True, "counts": get_dashboard_counts()})
