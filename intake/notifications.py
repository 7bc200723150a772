"""Confirmation mail sent to the submitter after a successful save.

Mail is best effort: it runs as a background task after the response and a
failure is only logged.
"""
from __future__ import annotations

import html
import logging

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail
from starlette.concurrency import run_in_threadpool

from .config import MailSettings
from .pipelines.assembler import AssembledSubmission

logger = logging.getLogger(__name__)


class MailNotifier:
    """Sends confirmation mails through SendGrid."""

    def __init__(self, config: MailSettings):
        self.config = config
        self._client = SendGridAPIClient(config.api_key) if config.api_key else None

    @property
    def active(self) -> bool:
        return self.config.enabled and self._client is not None

    def render(self, submission: AssembledSubmission) -> str:
        fields = submission.fields
        name = " ".join(filter(None, [fields.get("firstName"), fields.get("lastName")]))
        return (
            "<h3>New registration</h3>"
            f"<p><strong>Name:</strong> {html.escape(name)}</p>"
            f"<p><strong>Email:</strong> {html.escape(fields.get('email', ''))}</p>"
            "<p>Thank you for your submission.</p>"
        )

    async def send_confirmation(self, submission_id: str, submission: AssembledSubmission) -> bool:
        """Send the mail; returns False when skipped.

        Raises whatever the SendGrid client raises on delivery failure.
        """
        recipient = (submission.fields.get("email") or "").strip()
        if not self.active:
            logger.info("Mail disabled; skipping confirmation for submission %s", submission_id)
            return False
        if not recipient:
            logger.info("No email on submission %s; skipping confirmation", submission_id)
            return False

        message = Mail(
            from_email=self.config.sender,
            to_emails=recipient,
            subject=self.config.subject,
            html_content=self.render(submission),
        )
        response = await run_in_threadpool(self._client.send, message)
        logger.info(
            "Confirmation mail for submission %s sent (status %s)",
            submission_id,
            getattr(response, "status_code", None),
        )
        return True


async def notify_submission(notifier: MailNotifier, submission_id: str, submission: AssembledSubmission) -> None:
    """Background task body: never lets a mail failure escape."""
    try:
        await notifier.send_confirmation(submission_id, submission)
    except Exception as e:
        logger.error("Confirmation mail for submission %s failed: %s", submission_id, e, exc_info=True)
