import itertools
import json
from datetime import datetime, time, timedelta
from types import SimpleNamespace

import pytest
from twilio.base.exceptions import TwilioRestException

from pokerbot import create_app
from pokerbot.commands import register_commands
from pokerbot.config import Config
from pokerbot.extensions import db
from pokerbot.helpers import calendar as calendar_helper
from pokerbot.helpers import classifier as classifier_helper
from pokerbot.helpers import email as email_helper
from pokerbot.helpers import sms as sms_helper
from pokerbot.helpers.invitations import add_players_to_game
from pokerbot.helpers.time import utcnow
from pokerbot.models import Game, GameStatus, Player
from pokerbot.routes import register_blueprints

ADMIN_PHONE = "+15559990000"


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SECRET_KEY = "testing"

    GAME_TIMEZONE = "UTC"
    BLACKOUT_HOURS = 4
    INVITE_BATCH_SIZE = 5
    CONVERSATION_WINDOW = 5

    TWILIO_ACCOUNT_SID = "ACtest"
    TWILIO_AUTH_TOKEN = "twilio-token"
    TWILIO_PHONE_NUMBER = "+15550000000"
    VERIFY_TWILIO_SIGNATURE = False
    PUBLIC_BASE_URL = None

    ANTHROPIC_API_KEY = "anthropic-test-key"
    ANTHROPIC_MODEL = "claude-test"

    GOOGLE_CALENDAR_ID = "poker@calendar.test"

    ADMIN_PASSWORD = "hunter2"
    ADMIN_EMAILS = []
    ADMIN_PHONE_NUMBERS = [ADMIN_PHONE]
    CRON_SECRET = "cron-secret"


class FakeTwilio:
    """Stands in for twilio.rest.Client; records every message."""

    def __init__(self):
        self.sent = []
        self.fail_all = False
        self.fail_for = set()
        # Called with (to, body) while a send is in flight
        self.on_send = None
        self.messages = self

    def create(self, to, from_, body):
        if self.fail_all or to in self.fail_for:
            raise TwilioRestException(500, "/Messages.json", msg="delivery failed")
        if self.on_send:
            self.on_send(to, body)
        sid = f"SM{len(self.sent) + 1:032d}"
        self.sent.append(SimpleNamespace(to=to, from_=from_, body=body, sid=sid))
        return SimpleNamespace(sid=sid)

    def to(self, phone):
        return [m.body for m in self.sent if m.to == phone]


class FakeClaude:
    """Stands in for anthropic.Anthropic; answers with queued replies."""

    def __init__(self):
        self.replies = []
        self.calls = []
        self.error = None
        self.messages = self

    def reply_with(self, payload):
        self.replies.append(payload if isinstance(payload, str) else json.dumps(payload))

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        text = self.replies.pop(0)
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


class _Call:
    def __init__(self, result=None, error=None):
        self._result = result
        self._error = error

    def execute(self):
        if self._error:
            raise self._error
        return self._result


class FakeCalendar:
    """Stands in for the googleapiclient calendar service."""

    def __init__(self):
        self.inserted = []
        self.deleted = []
        self.error = None
        self.on_insert = None
        # {event_id: {email: responseStatus}}
        self.responses = {}

    def events(self):
        return self

    def insert(self, calendarId, body, sendUpdates=None):
        if self.error:
            return _Call(error=self.error)
        if self.on_insert:
            self.on_insert(body)
        event_id = f"evt{len(self.inserted) + 1}"
        self.inserted.append(body)
        return _Call({"id": event_id, "htmlLink": f"https://calendar.test/{event_id}"})

    def delete(self, calendarId, eventId, sendUpdates=None):
        self.deleted.append(eventId)
        return _Call({})

    def get(self, calendarId, eventId):
        attendees = [
            {"email": email, "responseStatus": status}
            for email, status in self.responses.get(eventId, {}).items()
        ]
        return _Call({"id": eventId, "attendees": attendees})


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    register_blueprints(app)
    register_commands(app)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(client):
    res = client.post("/admin/login", json={"password": TestingConfig.ADMIN_PASSWORD})
    assert res.status_code == 200
    return client


@pytest.fixture(autouse=True)
def twilio(monkeypatch):
    fake = FakeTwilio()
    monkeypatch.setattr(sms_helper, "get_client", lambda: fake)
    return fake


@pytest.fixture(autouse=True)
def claude(monkeypatch):
    fake = FakeClaude()
    monkeypatch.setattr(classifier_helper, "get_client", lambda: fake)
    return fake


@pytest.fixture(autouse=True)
def calendar(monkeypatch):
    fake = FakeCalendar()
    monkeypatch.setattr(calendar_helper, "get_service", lambda: fake)
    return fake


@pytest.fixture(autouse=True)
def no_email(monkeypatch):
    monkeypatch.setattr(email_helper, "RESEND_API_KEY", None)


@pytest.fixture
def make_player(app):
    counter = itertools.count(1)

    def _make(first_name=None, email=None, opted_out=False, phone=None):
        n = next(counter)
        player = Player(
            first_name=first_name or f"Player{n}",
            last_name="Test",
            phone=phone or f"+1555000{n:04d}",
            email=email,
            opted_out=opted_out,
        )
        db.session.add(player)
        db.session.commit()
        return player

    return _make


@pytest.fixture
def make_game(app):
    def _make(status=GameStatus.ACTIVE, capacity=8, starts_in=timedelta(days=3), deadline_in=timedelta(days=2)):
        start = utcnow() + starts_in
        game = Game(
            date=start.date(),
            time=time(start.hour, start.minute),
            location="Jon's place",
            time_block="Doors 6:30, cards at 7",
            entry_instructions="Buzz unit 4",
            capacity=capacity,
            rsvp_deadline=utcnow() + deadline_in,
            status=status,
        )
        db.session.add(game)
        db.session.commit()
        return game

    return _make


@pytest.fixture
def queue(app):
    def _queue(game, players):
        return add_players_to_game(game.id, [p.id for p in players])

    return _queue


def reload(model, pk):
    """Fresh copy from the database, bypassing the identity map."""
    db.session.expire_all()
    return db.session.get(model, pk)


def game_at(start: datetime):
    return Game(
        date=start.date(),
        time=time(start.hour, start.minute),
        location="Matt's place",
        capacity=8,
        rsvp_deadline=start - timedelta(hours=6),
        status=GameStatus.ACTIVE,
    )
