"""Outbound email: transports and message templates.

Two transports are provided:
- SmtpEmailSender: real delivery over SMTP (implicit TLS on port 465,
  STARTTLS otherwise)
- ConsoleEmailSender: logs the message instead of sending (local development)

Every transport raises DeliveryError when a message cannot be delivered.
"""

import html
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from functools import lru_cache
from typing import Protocol

from taskminder.config import Settings, get_settings
from taskminder.errors import DeliveryError
from taskminder.models.task import Task

logger = logging.getLogger(__name__)


@dataclass
class OutgoingEmail:
    """A composed message ready for a transport."""

    to: str
    subject: str
    text_body: str
    html_body: str | None = None


class EmailSender(Protocol):
    """Email transport capability."""

    def send(self, to: str, subject: str, text_body: str, html_body: str | None = None) -> None:
        ...


class SmtpEmailSender:
    """Deliver mail through an SMTP server."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: str,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpEmailSender":
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.EMAIL_USER,
            password=settings.EMAIL_PASS,
            sender=settings.EMAIL_FROM,
        )

    def _build_message(
        self, to: str, subject: str, text_body: str, html_body: str | None
    ) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text_body)
        if html_body:
            message.add_alternative(html_body, subtype="html")
        return message

    def send(self, to: str, subject: str, text_body: str, html_body: str | None = None) -> None:
        if not self.username or not self.password:
            raise DeliveryError("Email configuration missing (EMAIL_USER/EMAIL_PASS)")

        message = self._build_message(to, subject, text_body, html_body)
        try:
            if self.port == 465:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=context) as smtp:
                    smtp.login(self.username, self.password)
                    smtp.send_message(message)
            else:
                with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                    smtp.starttls(context=ssl.create_default_context())
                    smtp.login(self.username, self.password)
                    smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"SMTP delivery to {to} failed: {exc}") from exc

        logger.info("Email sent", extra={"recipient": to, "subject": subject})


class ConsoleEmailSender:
    """Log messages instead of sending them."""

    def send(self, to: str, subject: str, text_body: str, html_body: str | None = None) -> None:
        logger.info(
            "[CONSOLE] Email not sent",
            extra={"recipient": to, "subject": subject, "body": text_body},
        )


@lru_cache
def get_email_sender() -> EmailSender:
    """Get the transport selected by EMAIL_BACKEND."""
    settings = get_settings()
    if settings.EMAIL_BACKEND == "console":
        return ConsoleEmailSender()
    return SmtpEmailSender.from_settings(settings)


# -----------------------------------------------------------------------------
# Templates
# -----------------------------------------------------------------------------


def _task_rows(task: Task) -> str:
    due = task.due_instant.strftime("%a %b %d %Y")
    return (
        f"<p><strong>Date:</strong> {due}</p>"
        f"<p><strong>Time:</strong> {task.due_time}</p>"
        f"<p><strong>Reminder Type:</strong> {task.reminder_type.value}</p>"
    )


def build_reminder_email(to: str, task: Task, reminder_number: int, total: int) -> OutgoingEmail:
    """Scheduled reminder for a task, numbered ``reminder_number`` of ``total``."""
    due = task.due_instant.strftime("%a %b %d %Y")
    subject = f"Task Reminder {reminder_number}/{total}: {task.title}"
    text_body = (
        f"Task Reminder ({reminder_number} of {total})\n\n"
        f"Task: {task.title}\n"
        f"Date: {due}\n"
        f"Time: {task.due_time}\n"
        f"Type: {task.reminder_type.value}\n\n"
        "Please complete this task on time to stay organized!\n"
    )
    html_body = (
        f"<h2>Task Reminder</h2><p>Reminder {reminder_number} of {total}</p>"
        f"<h3>{html.escape(task.title)}</h3>{_task_rows(task)}"
        "<p>This is an automated reminder from your Task Management System</p>"
    )
    return OutgoingEmail(to=to, subject=subject, text_body=text_body, html_body=html_body)


def build_manual_reminder_email(to: str, task: Task) -> OutgoingEmail:
    """Reminder sent on demand from the admin panel."""
    due = task.due_instant.strftime("%a %b %d %Y")
    subject = f"Admin Reminder: {task.title}"
    text_body = (
        "Manual reminder sent by administrator\n\n"
        f"Task: {task.title}\n"
        f"Date: {due}\n"
        f"Time: {task.due_time}\n"
        f"Type: {task.reminder_type.value}\n"
    )
    html_body = (
        "<h2>Admin Task Reminder</h2><p>Manual reminder sent by administrator</p>"
        f"<h3>{html.escape(task.title)}</h3>{_task_rows(task)}"
        "<p>This reminder was sent from the Task Manager Admin Panel.</p>"
    )
    return OutgoingEmail(to=to, subject=subject, text_body=text_body, html_body=html_body)


def build_otp_email(to: str, code: str, valid_minutes: int) -> OutgoingEmail:
    return OutgoingEmail(
        to=to,
        subject="Your OTP - Task Reminder",
        text_body=f"Your OTP is {code}. It expires in {valid_minutes} minutes.",
    )


def deliver(sender: EmailSender, email: OutgoingEmail) -> None:
    sender.send(email.to, email.subject, email.text_body, email.html_body)
