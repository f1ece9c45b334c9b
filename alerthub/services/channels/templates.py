"""
Per-channel message rendering.

Alert title/message text is produced by the AlertFactory; this module only
adapts it to each transport (HTML email, short SMS, push data payload).
"""

from html import escape
from typing import Dict

from alerthub.core.settings import settings
from alerthub.models.alert import Alert
from alerthub.models.user import UserProfile

SEVERITY_COLORS = {
    "low": "#28a745",
    "medium": "#ffc107",
    "high": "#fd7e14",
    "critical": "#dc3545",
}

SMS_MAX_LENGTH = 320


def render_alert_email_html(alert: Alert, user: UserProfile) -> str:
    color = SEVERITY_COLORS.get(alert.severity, "#6c757d")
    alert_url = f"{settings.CLIENT_URL.rstrip('/')}/alerts/{alert.id}"
    settings_url = f"{settings.CLIENT_URL.rstrip('/')}/settings"
    alert_type_label = alert.alert_type.replace("_", " ").upper()
    created = alert.created_at.strftime("%Y-%m-%d %H:%M UTC")

    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{escape(alert.title)}</title></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto;">
    <div style="background: {color}; color: white; padding: 20px; text-align: center;">
      <h1>{escape(settings.APP_NAME)} Alert</h1>
      <span style="text-transform: uppercase; font-size: 12px;">{escape(alert.severity)}</span>
    </div>
    <div style="padding: 20px; background: #f9f9f9;">
      <div style="background: white; border-left: 4px solid {color}; padding: 15px;">
        <h2>{escape(alert.title)}</h2>
        <p>{escape(alert.message)}</p>
        <p><strong>Alert Type:</strong> {alert_type_label}</p>
        <p><strong>Time:</strong> {created}</p>
      </div>
      <p>Hi {escape(user.name)},</p>
      <p>We've detected a scam alert that may be relevant to you. Please review the details above.</p>
      <a href="{alert_url}">View Alert Details</a>
    </div>
    <div style="padding: 20px; text-align: center; font-size: 12px; color: #666;">
      <p>You're receiving this because you've enabled scam alerts in your preferences.</p>
      <p><a href="{settings_url}">Manage notification preferences</a></p>
    </div>
  </div>
</body>
</html>"""


def render_sms_body(alert: Alert) -> str:
    body = f"{settings.APP_NAME}: {alert.message}. Visit app for details."
    if len(body) > SMS_MAX_LENGTH:
        body = body[: SMS_MAX_LENGTH - 3] + "..."
    return body


def push_metadata(alert: Alert) -> Dict[str, str]:
    return {
        "alert_id": alert.id,
        "alert_type": alert.alert_type,
        "severity": alert.severity,
        "report_id": alert.source_report_id,
    }
