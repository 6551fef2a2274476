from flask import Blueprint, Response, current_app, request

from pokerbot.helpers.inbound import handle_inbound_sms
from pokerbot.helpers.sms import empty_twiml, validate_webhook

sms_bp = Blueprint("sms", __name__)


def _webhook_url() -> str:
    # Behind a proxy request.url may not be what Twilio signed
    base = (current_app.config.get("PUBLIC_BASE_URL") or "").rstrip("/")
    if base:
        return f"{base}{request.path}"
    return request.url


def _twiml(status=200):
    return Response(empty_twiml(), status=status, mimetype="text/xml")


@sms_bp.route("/api/sms", methods=["POST"])
def inbound_sms():
    """
    Twilio messaging webhook.

    Replies go out through the REST API; the webhook itself always answers
    with an empty TwiML document.
    """
    params = request.form.to_dict()
    from_phone = (params.get("From") or "").strip()
    body = (params.get("Body") or "").strip()

    if not from_phone or not body:
        return "Missing required fields", 400

    if current_app.config.get("VERIFY_TWILIO_SIGNATURE"):
        signature = request.headers.get("X-Twilio-Signature", "")
        if not validate_webhook(signature, _webhook_url(), params):
            current_app.logger.warning("[SMS] Invalid Twilio signature from %s", from_phone)
            return "Invalid signature", 403

    result = handle_inbound_sms(from_phone, body, params.get("MessageSid"))
    current_app.logger.info("[SMS] Inbound from %s: %s", from_phone, result.outcome)
    return _twiml()
