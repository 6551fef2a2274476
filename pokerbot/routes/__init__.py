from flask import jsonify

from pokerbot.errors import PokerbotError

from .index import index_bp
from .admin import admin_bp
from .players import players_bp
from .games import games_bp
from .escalations import escalations_bp
from .sms import sms_bp
from .cron import cron_bp


def handle_pokerbot_error(e: PokerbotError):
    return jsonify({"ok": False, "error": str(e)}), e.http_status


def register_blueprints(app):
    app.register_blueprint(index_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(players_bp)
    app.register_blueprint(games_bp)
    app.register_blueprint(escalations_bp)
    app.register_blueprint(sms_bp)
    app.register_blueprint(cron_bp)

    app.register_error_handler(PokerbotError, handle_pokerbot_error)
