from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from email.utils import make_msgid
from html import escape
from typing import Any, Dict, List, Optional

from .attachments import format_file_size
from .date_parser import format_event_date
from .models import NotificationResult, TimelineEvent, TimelineSubmission

logger = logging.getLogger("intake.notifier")

NOT_PROVIDED = "Not provided"


@dataclass
class MailConfig:
    host: str = "smtp.gmail.com"
    port: int = 465
    user: str = ""
    password: str = ""
    recipient: str = ""
    timeout: float = 15.0

    @property
    def configured(self) -> bool:
        return bool(self.user and self.password)


def _date_or_placeholder(value: Optional[str]) -> str:
    if not value:
        return "Not specified"
    return format_event_date(value)


def _detail_value(value: Any) -> str:
    if isinstance(value, (list, tuple, set)):
        return ", ".join(str(item) for item in value)
    if value is None:
        return ""
    return str(value)


def _render_event(index: int, event: TimelineEvent) -> List[str]:
    parts: List[str] = []
    parts.append("        <div style=\"margin-bottom: 20px; padding: 15px; border-left: 3px solid #3b82f6; background-color: #f8fafc;\">")
    parts.append(
        "            <h4 style=\"margin: 0 0 10px 0; color: #1e40af;\">Event "
        + str(index)
        + ": "
        + escape(event.title)
        + "</h4>"
    )
    parts.append("            <p><strong>Type:</strong> " + escape(event.type) + "</p>")
    parts.append("            <p><strong>Date:</strong> " + escape(_date_or_placeholder(event.approximate_date)) + "</p>")
    parts.append("            <p><strong>Description:</strong> " + escape(event.description) + "</p>")

    if event.details:
        parts.append("            <div style=\"margin-top: 10px;\"><strong>Additional Details:</strong><ul>")
        for key, value in event.details.items():
            parts.append("                <li><strong>" + escape(str(key)) + ":</strong> " + escape(_detail_value(value)) + "</li>")
        parts.append("            </ul></div>")

    if event.attachments:
        parts.append("            <div style=\"margin-top: 10px;\"><strong>Attachments:</strong><ul>")
        for attachment in event.attachments:
            parts.append(
                "                <li>"
                + escape(attachment.name)
                + " ("
                + escape(attachment.type)
                + ", "
                + format_file_size(attachment.size)
                + ")</li>"
            )
        parts.append("            </ul></div>")

    parts.append("        </div>")
    return parts


def build_subject(user_email: str, user_name: str = "") -> str:
    return f"New Timeline Submission - {user_name or user_email}"


def format_submission_email(
    submission: TimelineSubmission,
    user_email: str,
    user_name: str = "",
    *,
    submitted_at: Optional[datetime] = None,
) -> str:
    """HTML body of the staff notification for one submission."""

    employer = submission.employer_info
    stamp = (submitted_at or datetime.now()).strftime("%m/%d/%Y, %I:%M:%S %p")

    parts: List[str] = []
    parts.append("<!DOCTYPE html>")
    parts.append("<html>")
    parts.append("<head>")
    parts.append("    <meta charset=\"utf-8\">")
    parts.append("    <title>Timeline Submission</title>")
    parts.append("    <style>")
    parts.append("        body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }")
    parts.append("        .container { max-width: 600px; margin: 0 auto; padding: 20px; }")
    parts.append("        .header { background-color: #1e40af; color: white; padding: 20px; text-align: center; }")
    parts.append("        .section { margin-bottom: 25px; padding: 15px; background-color: #f8fafc; }")
    parts.append("        .footer { margin-top: 30px; text-align: center; color: #6b7280; font-size: 14px; }")
    parts.append("    </style>")
    parts.append("</head>")
    parts.append("<body>")
    parts.append("<div class=\"container\">")
    parts.append("    <div class=\"header\"><h1>New Timeline Submission</h1><p>Submitted via the intake form</p></div>")

    parts.append("    <div class=\"section\">")
    parts.append("        <h3>User Information</h3>")
    parts.append("        <p><strong>Name:</strong> " + escape(user_name or NOT_PROVIDED) + "</p>")
    parts.append("        <p><strong>Email:</strong> " + escape(user_email) + "</p>")
    parts.append("        <p><strong>Submission Time:</strong> " + escape(stamp) + "</p>")
    parts.append("    </div>")

    employer_rows = (
        ("Company", employer.company_name or NOT_PROVIDED),
        ("Location", employer.location or NOT_PROVIDED),
        ("Job Title", employer.job_title or NOT_PROVIDED),
        ("Start Date", _date_or_placeholder(employer.start_date)),
        ("End Date", _date_or_placeholder(employer.end_date)),
        ("Pay Rate", employer.pay_rate or NOT_PROVIDED),
        ("Employment Type", employer.employment_type or NOT_PROVIDED),
    )
    parts.append("    <div class=\"section\">")
    parts.append("        <h3>Employer Information</h3>")
    for label, value in employer_rows:
        parts.append("        <p><strong>" + label + ":</strong> " + escape(value) + "</p>")
    parts.append("    </div>")

    if submission.events:
        parts.append("    <h3>Timeline Events (" + str(len(submission.events)) + ")</h3>")
        parts.append("    <div style=\"margin-left: 20px;\">")
        for index, event in enumerate(submission.events, start=1):
            parts.extend(_render_event(index, event))
        parts.append("    </div>")

    parts.append("    <div class=\"footer\">")
    parts.append("        <p>This email was automatically generated by the intake form.</p>")
    parts.append("        <p>Please review the submission and take appropriate action.</p>")
    parts.append("    </div>")
    parts.append("</div>")
    parts.append("</body>")
    parts.append("</html>")
    return "\n".join(parts)


class Notifier:
    """Sends staff notifications over SMTP with implicit TLS."""

    def __init__(self, config: MailConfig):
        self._config = config

    def check_configuration(self) -> Dict[str, Any]:
        return {
            "success": self._config.configured,
            "message": (
                "Mail credentials are configured."
                if self._config.configured
                else "Mail credentials are not configured. Set INTAKE_SMTP_USER and INTAKE_SMTP_PASSWORD."
            ),
            "user": "Set" if self._config.user else "Not set",
            "password": "Set" if self._config.password else "Not set",
        }

    def build_message(self, submission: TimelineSubmission, user_email: str, user_name: str = "") -> EmailMessage:
        sender = self._config.user
        message = EmailMessage()
        message["From"] = sender
        message["To"] = self._config.recipient or sender
        message["Subject"] = build_subject(user_email, user_name)
        message["Message-ID"] = make_msgid()
        message.set_content("A new timeline submission was received. View this message in an HTML capable client.")
        message.add_alternative(format_submission_email(submission, user_email, user_name), subtype="html")
        return message

    def send_submission(self, submission: TimelineSubmission, user_email: str, user_name: str = "") -> NotificationResult:
        if not self._config.configured:
            return NotificationResult(
                success=False,
                message="Mail credentials not configured. Please check your environment variables.",
            )
        if not user_email:
            return NotificationResult(success=False, message="Missing required data: user email is required.")

        message = self.build_message(submission, user_email, user_name)
        try:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(self._config.host, self._config.port, timeout=self._config.timeout, context=context) as smtp:
                smtp.login(self._config.user, self._config.password)
                smtp.send_message(message)
        except smtplib.SMTPAuthenticationError:
            logger.warning("SMTP authentication failed", extra={"smtp_host": self._config.host})
            return NotificationResult(
                success=False,
                message="Failed to authenticate with the mail server. Please check your credentials.",
            )
        except (smtplib.SMTPException, OSError):
            logger.exception("Sending submission notification failed", extra={"smtp_host": self._config.host})
            return NotificationResult(success=False, message="Failed to send email notification.")

        logger.info("Submission notification sent", extra={"message_id": message["Message-ID"]})
        return NotificationResult(
            success=True,
            message="Timeline submitted and email sent successfully.",
            message_id=message["Message-ID"],
        )
