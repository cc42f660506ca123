"""
Donor Oversight Platform
Email Service.

Sends templated email over SMTP.  When SMTP is not configured, emails are
logged but not sent (dev/test mode).  Every email is recorded in EmailLog.

Configuration precedence:
    1. Settings table: smtpHost, smtpPort, smtpUser, smtpPassword, emailFromAddress
    2. App config:     MAIL_SERVER, MAIL_PORT, MAIL_USERNAME, MAIL_PASSWORD,
                       MAIL_DEFAULT_SENDER, MAIL_USE_TLS
"""

from __future__ import annotations

import logging
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from flask import current_app

from oversight.models import db
from oversight.models.notification import EmailLog
from oversight.services.settings_service import get_setting

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Email Templates
# ═══════════════════════════════════════════════════════════════════════════

_LAYOUT = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <div style="background: #354A5F; color: white; padding: 16px 24px;">
        <h2 style="margin: 0; font-size: 18px;">Donor Oversight Platform</h2>
    </div>
    <div style="padding: 24px; border: 1px solid #e2e8f0; border-top: none;">
        {body}
        <p><a href="{link}">Open in the platform</a></p>
    </div>
</div>
"""

_TEMPLATES: dict[str, dict[str, str]] = {
    "approval_submitted": {
        "subject": "[Oversight] Approval required: {activity_title}",
        "body": "<p>{submitter_name} submitted a {target_type} for <strong>{activity_title}</strong>.</p>"
                "<p>Old value: {old_value} &rarr; New value: {new_value}</p>",
    },
    "finance_approved": {
        "subject": "[Oversight] Committee review required: {activity_title}",
        "body": "<p>Finance approved the {target_type} for <strong>{activity_title}</strong>. "
                "It now awaits committee review.</p>",
    },
    "approved": {
        "subject": "[Oversight] Approved: {activity_title}",
        "body": "<p>Your {target_type} for <strong>{activity_title}</strong> has been approved.</p>",
    },
    "rejected": {
        "subject": "[Oversight] Rejected: {activity_title}",
        "body": "<p>Your {target_type} for <strong>{activity_title}</strong> was rejected.</p>"
                "<p>Reason: {reason}</p>",
    },
    "variance_alert": {
        "subject": "[Oversight] Budget variance: {activity_title}",
        "body": "<p>Actual spend on <strong>{activity_title}</strong> exceeded the estimate "
                "by {variance_percent}% (estimated {estimated}, actual {actual}).</p>",
    },
    "notification": {
        "subject": "[Oversight] {title}",
        "body": "<p><strong>{title}</strong></p><p>{message}</p>",
    },
}


class EmailService:
    """
    Email sending service with template support.

    In development/test mode (no SMTP host configured), emails are
    logged to the database but not actually sent.
    """

    @staticmethod
    def smtp_config() -> dict:
        cfg = current_app.config
        return {
            "host": get_setting("smtpHost") or cfg.get("MAIL_SERVER"),
            "port": int(get_setting("smtpPort") or cfg.get("MAIL_PORT", 587)),
            "username": get_setting("smtpUser") or cfg.get("MAIL_USERNAME"),
            "password": get_setting("smtpPassword") or cfg.get("MAIL_PASSWORD"),
            "sender": get_setting("emailFromAddress") or cfg.get("MAIL_DEFAULT_SENDER"),
            "use_tls": cfg.get("MAIL_USE_TLS", True),
        }

    @staticmethod
    def get_template(template_name: str) -> dict[str, str] | None:
        return _TEMPLATES.get(template_name)

    @classmethod
    def send(
        cls,
        *,
        to_email: str,
        to_name: str | None = None,
        subject: str,
        html_body: str,
        template_name: str | None = None,
        notification_id: int | None = None,
    ) -> EmailLog:
        """
        Send an email and log it.

        If SMTP is not configured, the email is logged with status='skipped'
        to simulate sending without actual delivery.  The caller commits.
        """
        log = EmailLog(
            recipient_email=to_email,
            recipient_name=to_name,
            subject=subject,
            template_name=template_name,
            status="queued",
            notification_id=notification_id,
        )
        db.session.add(log)
        db.session.flush()

        smtp = cls.smtp_config()
        if not smtp["host"]:
            log.status = "skipped"
            logger.info(
                "Email (log-only): to=%s subject='%s' template=%s",
                to_email, subject, template_name,
            )
            return log

        try:
            cls._send_smtp(smtp, to_email=to_email, to_name=to_name,
                           subject=subject, html_body=html_body)
            log.status = "sent"
            log.sent_at = datetime.now(timezone.utc)
            logger.info("Email sent: to=%s subject='%s'", to_email, subject)
        except (smtplib.SMTPException, OSError) as exc:
            log.status = "failed"
            log.error_message = str(exc)[:1000]
            logger.error("Email failed: to=%s error=%s", to_email, exc)

        return log

    @classmethod
    def send_from_template(
        cls,
        *,
        to_email: str,
        to_name: str | None = None,
        template_name: str,
        context: dict[str, Any],
        notification_id: int | None = None,
    ) -> EmailLog | None:
        """
        Send an email using a named template.

        Template variables are interpolated from the context dict.
        """
        template = cls.get_template(template_name)
        if not template:
            logger.warning("Email template not found: %s", template_name)
            return None

        ctx = _SafeDict(context)
        ctx.setdefault("link", current_app.config.get("FRONTEND_URL", ""))
        subject = template["subject"].format_map(ctx)
        html_body = _LAYOUT.format_map(_SafeDict(
            body=template["body"].format_map(ctx),
            link=ctx["link"],
        ))

        return cls.send(
            to_email=to_email,
            to_name=to_name,
            subject=subject,
            html_body=html_body,
            template_name=template_name,
            notification_id=notification_id,
        )

    @classmethod
    def test_connection(cls) -> dict:
        """Open (and close) an SMTP connection with the current settings."""
        smtp = cls.smtp_config()
        if not smtp["host"]:
            return {"success": False, "message": "SMTP host is not configured"}
        try:
            with smtplib.SMTP(smtp["host"], smtp["port"], timeout=10) as conn:
                if smtp["use_tls"]:
                    conn.starttls()
                if smtp["username"] and smtp["password"]:
                    conn.login(smtp["username"], smtp["password"])
                conn.noop()
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("SMTP connection test failed: %s", exc)
            return {"success": False, "message": str(exc)}
        return {"success": True, "message": f"Connected to {smtp['host']}:{smtp['port']}"}

    @staticmethod
    def _send_smtp(smtp: dict, *, to_email: str, to_name: str | None,
                   subject: str, html_body: str) -> None:
        sender = smtp["sender"] or f"noreply@{smtp['host']}"

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = f"{to_name} <{to_email}>" if to_name else to_email
        msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP(smtp["host"], smtp["port"], timeout=30) as conn:
            if smtp["use_tls"]:
                conn.starttls()
            if smtp["username"] and smtp["password"]:
                conn.login(smtp["username"], smtp["password"])
            conn.send_message(msg)


class _SafeDict(dict):
    """Dict that returns {key} for missing keys instead of raising."""

    def __missing__(self, key):
        return f"{{{key}}}"
