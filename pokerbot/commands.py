import json

import click

from pokerbot.extensions import db
from pokerbot.helpers.calendar import sync_calendar_statuses
from pokerbot.helpers.sweep import sweep_timeouts


def register_commands(app):
    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("sweep-timeouts")
    @click.option("--skip-calendar", is_flag=True, help="Only run the RSVP timeout sweep.")
    def sweep_timeouts_command(skip_calendar):
        """Run the RSVP deadline sweep once (same as the cron endpoint)."""
        payload = sweep_timeouts().to_dict()
        if not skip_calendar:
            calendar = sync_calendar_statuses()
            payload["calendar_checked"] = calendar["checked"]
            payload["calendar_updated"] = calendar["updated"]
        click.echo(json.dumps(payload))
