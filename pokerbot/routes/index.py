from flask import Blueprint, jsonify, session

index_bp = Blueprint("index", __name__)


@index_bp.route("/")
def index():
    return jsonify({"ok": True, "service": "pokerbot", "admin": bool(session.get("admin_ok"))})


@index_bp.route("/healthz")
def healthz():
    return jsonify({"ok": True})
