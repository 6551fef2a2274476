import sys
from html import escape

import resend

from pokerbot.config import RESEND_API_KEY, RESEND_FROM_EMAIL


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def send_escalation_email(recipients, player_name: str, player_phone: str, inbound_body: str,
                          reason: str, game_label: str = "", dashboard_url: str = "") -> bool:
    """
    Email the admins about a reply the bot could not handle on its own.

    - If RESEND_API_KEY is not set, just log to stderr (local dev).
    Returns True if Resend accepted the email.
    """
    recipients = [normalize_email(r) for r in (recipients or []) if normalize_email(r)]
    if not recipients:
        return False

    # Dev / fallback path
    if not RESEND_API_KEY:
        print(
            f"[ESCALATION EMAIL - DEV ONLY] {', '.join(recipients)} -> {player_name}: {inbound_body!r} ({reason})",
            file=sys.stderr,
        )
        return False

    link_html = ""
    if dashboard_url:
        link_html = f"""
        <p style="margin: 12px 0;">
          <a href="{escape(dashboard_url)}" style="display: inline-block; padding: 10px 14px; border-radius: 10px; background: #1a2942; color: #fff; text-decoration: none;">
            Open escalations
          </a>
        </p>"""

    html = f"""
      <div style="font-family: system-ui, -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; padding: 16px;">
        <p><strong>{escape(player_name)}</strong> ({escape(player_phone)}) needs a human reply{(' for ' + escape(game_label)) if game_label else ''}.</p>
        <blockquote style="border-left: 3px solid #ccd; margin: 12px 0; padding-left: 12px;">{escape(inbound_body)}</blockquote>
        <p style="color:#667; font-size: 13px;">Reason: {escape(reason)}</p>
        {link_html}
      </div>
    """

    try:
        resend.api_key = RESEND_API_KEY
        resend.Emails.send({
            "from": RESEND_FROM_EMAIL,
            "to": recipients,
            "subject": f"Pokerbot: reply needed from {player_name}",
            "html": html,
        })
        print(f"[ESCALATION EMAIL] Sent escalation for {player_phone} to {len(recipients)} admin(s)", file=sys.stderr)
        return True
    except Exception as e:
        # Email is best-effort; the escalation is already queued in the DB
        print(f"[ESCALATION EMAIL] Failed to send via Resend: {e}", file=sys.stderr)
        return False
