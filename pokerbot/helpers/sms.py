import sys
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from requests import RequestException
from twilio.base.exceptions import TwilioException
from twilio.http.http_client import TwilioHttpClient
from twilio.request_validator import RequestValidator
from twilio.rest import Client
from twilio.twiml.messaging_response import MessagingResponse

from pokerbot.errors import UpstreamFailure
from pokerbot.helpers.players import normalize_phone

_client = None
_client_key = None


@dataclass
class SmsResult:
    success: bool
    provider_message_id: Optional[str] = None
    error: Optional[str] = None


def get_client() -> Client:
    """Lazily build (and cache per credential pair) the Twilio REST client."""
    global _client, _client_key

    sid = current_app.config.get("TWILIO_ACCOUNT_SID")
    token = current_app.config.get("TWILIO_AUTH_TOKEN")
    if not sid or not token:
        raise UpstreamFailure("Twilio credentials not configured")

    if _client is None or _client_key != (sid, token):
        timeout = current_app.config.get("TWILIO_TIMEOUT", 10)
        _client = Client(sid, token, http_client=TwilioHttpClient(timeout=timeout))
        _client_key = (sid, token)
    return _client


def send_sms(to: str, body: str) -> SmsResult:
    """
    Send one SMS. Never raises for delivery problems; the caller decides
    what a failed send means.
    """
    from_number = current_app.config.get("TWILIO_PHONE_NUMBER")
    if not from_number:
        print(f"[SMS - DEV ONLY] {to} -> {body!r}", file=sys.stderr)
        return SmsResult(success=False, error="TWILIO_PHONE_NUMBER not configured")

    try:
        client = get_client()
        message = client.messages.create(to=normalize_phone(to), from_=from_number, body=body)
    except (TwilioException, RequestException, UpstreamFailure) as e:
        current_app.logger.error("[SMS] Failed to send to %s: %s", to, e)
        return SmsResult(success=False, error=str(e))

    current_app.logger.info("[SMS] Sent %s to %s", message.sid, to)
    return SmsResult(success=True, provider_message_id=message.sid)


def validate_webhook(signature: Optional[str], url: str, params: dict) -> bool:
    token = current_app.config.get("TWILIO_AUTH_TOKEN")
    if not token or not signature:
        return False
    return RequestValidator(token).validate(url, params, signature)


def empty_twiml() -> str:
    # Replies are sent through the REST API, so the webhook answers with no <Message>
    return str(MessagingResponse())
