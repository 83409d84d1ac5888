import logging
import smtplib
from datetime import datetime, timedelta
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from coach_scheduling.core.config import settings
from coach_scheduling.models.reminder import ReminderKind

logger = logging.getLogger(__name__)

REMINDER_SUBJECTS = {
    ReminderKind.H24: "Your SOS coaching session is tomorrow",
    ReminderKind.H1: "Your SOS coaching session starts in 1 hour",
    ReminderKind.M15: "Your SOS coaching session starts in 15 minutes",
}

REMINDER_DETAILS = {
    ReminderKind.H24: (
        "Don't forget about your upcoming coaching session tomorrow. "
        "Take some time today to think about what you'd like to discuss."
    ),
    ReminderKind.H1: (
        "Your session starts soon. Make sure you're in a quiet, private space where you can speak freely."
    ),
    ReminderKind.M15: "Your session is starting soon! Use the meeting link below to join when ready.",
}


def _reminder_message(to_email: str, subject: str, html_body: str) -> MIMEMultipart:
    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = f"{settings.from_name} <{settings.from_email}>"
    message["To"] = to_email
    message.attach(MIMEText(html_body, "html", "utf-8"))
    return message


def send_email_sync(to_email: str, subject: str, html_body: str) -> bool:
    """Blocking SMTP send. False when SMTP is not configured or the server refused it."""
    if not settings.email_enabled:
        logger.debug("SMTP not configured, not sending %r to %s", subject, to_email)
        return False
    message = _reminder_message(to_email, subject, html_body)
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as smtp:
            smtp.starttls()
            smtp.login(settings.smtp_user, settings.smtp_password)
            smtp.send_message(message, from_addr=settings.from_email, to_addrs=[to_email])
    except (smtplib.SMTPException, OSError) as e:
        logger.exception("SMTP delivery to %s failed: %s", to_email, e)
        return False
    logger.info("Reminder email %r sent to %s", subject, to_email)
    return True


def build_reminder_html(
    kind: ReminderKind,
    recipient_name: str,
    session_time: datetime,
    duration_minutes: int,
    meeting_link: str | None,
) -> str:
    """recipient_name must already be HTML-escaped."""
    title = REMINDER_SUBJECTS[kind]
    day_line = session_time.strftime("%A, %B %d, %Y")
    ends_at = session_time + timedelta(minutes=duration_minutes)
    time_line = f"{session_time:%I:%M %p} &ndash; {ends_at:%I:%M %p} (UTC)"
    join = (
        f'<p style="margin:0 0 24px 0;"><a href="{escape(meeting_link)}" '
        f'style="color:#2563eb;font-weight:600;">Join your session</a></p>'
        if meeting_link
        else ""
    )
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{title}</title></head>
<body style="margin:0;padding:32px 16px;background:#f3f4f6;font-family:-apple-system,'Segoe UI',Roboto,sans-serif;">
  <div style="max-width:560px;margin:0 auto;background:#ffffff;border-radius:12px;padding:32px;">
    <h1 style="margin:0 0 8px 0;font-size:22px;color:#111827;">{title}</h1>
    <p style="margin:0 0 24px 0;font-size:15px;color:#6b7280;">Hi {recipient_name or 'there'}, {REMINDER_DETAILS[kind]}</p>
    <p style="margin:0 0 8px 0;font-size:16px;font-weight:600;color:#111827;">{day_line}</p>
    <p style="margin:0 0 24px 0;font-size:16px;color:#111827;">{time_line}</p>
    {join}
    <hr style="border:none;border-top:1px solid #e5e7eb;margin:24px 0 16px 0;">
    <p style="margin:0;font-size:13px;color:#6b7280;"><strong style="color:#111827;">{settings.site_name}</strong> &middot; {settings.contact_email}</p>
  </div>
</body>
</html>
"""


def compose_reminder(
    kind: ReminderKind,
    recipient_name: str | None,
    session_time: datetime,
    duration_minutes: int,
    meeting_link: str | None = None,
) -> tuple[str, str]:
    """Returns (subject, html) for a reminder email."""
    subject = f"{settings.site_name} - {REMINDER_SUBJECTS[kind]}"
    html = build_reminder_html(
        kind,
        recipient_name=escape(recipient_name or ""),
        session_time=session_time,
        duration_minutes=duration_minutes,
        meeting_link=meeting_link,
    )
    return subject, html
