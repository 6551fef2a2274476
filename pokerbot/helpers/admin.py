import secrets
from functools import wraps

from flask import current_app, jsonify, session


def admin_is_logged_in() -> bool:
    return bool(session.get("admin_ok"))


def check_admin_password(password: str) -> bool:
    expected = current_app.config.get("ADMIN_PASSWORD") or ""
    if not expected:
        return False
    return secrets.compare_digest((password or "").encode(), expected.encode())


def establish_admin_session() -> None:
    # Always reset first so no stale flags survive a re-login
    session.clear()
    session["admin_ok"] = True


def clear_admin_session() -> None:
    session.pop("admin_ok", None)


def admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not admin_is_logged_in():
            return jsonify({"ok": False, "error": "Admin login required"}), 401
        return view(*args, **kwargs)

    return wrapped
