from dataclasses import dataclass

from flask import current_app

from pokerbot.helpers.email import send_escalation_email
from pokerbot.helpers.sms import send_sms
from pokerbot.helpers.time import format_game_date

SMS_LIMIT = 160


@dataclass
class NotificationResult:
    sent: int = 0
    failed: int = 0
    emailed: bool = False


def format_escalation_sms(player_name: str, player_phone: str, body: str, reason: str, game_label: str = "") -> str:
    text = f'[Escalation] {player_name} ({player_phone}): "{body}"'
    if game_label:
        text += f" | Game: {game_label}"
    text += f" | Reason: {reason} | Reply in admin portal."
    if len(text) > SMS_LIMIT:
        text = text[: SMS_LIMIT - 3] + "..."
    return text


def notify_admins_of_escalation(player, body: str, reason: str, game=None) -> NotificationResult:
    """Text every admin phone and email the admin list. Best-effort."""
    result = NotificationResult()
    game_label = f"{format_game_date(game)} at {game.location}" if game else ""

    phones = current_app.config.get("ADMIN_PHONE_NUMBERS") or []
    if not phones:
        current_app.logger.info("[ESCALATION] No admin phones configured, skipping SMS alert")

    text = format_escalation_sms(player.full_name, player.phone, body, reason, game_label)
    for phone in phones:
        sms = send_sms(phone, text)
        if sms.success:
            result.sent += 1
        else:
            current_app.logger.warning("[ESCALATION] Failed to alert admin %s: %s", phone, sms.error)
            result.failed += 1

    base_url = (current_app.config.get("PUBLIC_BASE_URL") or "").rstrip("/")
    result.emailed = send_escalation_email(
        current_app.config.get("ADMIN_EMAILS") or [],
        player.full_name,
        player.phone,
        body,
        reason,
        game_label=game_label,
        dashboard_url=f"{base_url}/admin/escalations" if base_url else "",
    )
    return result
