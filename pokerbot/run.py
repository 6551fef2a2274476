from dotenv import load_dotenv

# Load .env before pokerbot.config reads the environment
load_dotenv()

from pokerbot import create_app
from pokerbot.commands import register_commands
from pokerbot.extensions import db
from pokerbot.routes import register_blueprints

api = create_app()

# Register all Blueprints (sms webhook, cron, admin, etc.)
register_blueprints(api)
register_commands(api)

def init_db():
    """Ensure DB tables exist."""
    db.create_all()

# Run DB bootstrap once at startup
with api.app_context():
    init_db()

if __name__ == "__main__":
    api.run(debug=True)
