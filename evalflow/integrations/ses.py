"""SES integration for sending interview assignment emails."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from evalflow.config.settings import Settings, settings as default_settings

logger = structlog.get_logger()

# Template directory
TEMPLATE_DIR = Path(__file__).parent.parent / "config" / "templates"


@dataclass
class InterviewAssignmentEmail:
    """Content of one interview assignment invitation."""

    candidate_name: str
    interviewer_name: str
    case_title: str
    fit_question_title: str
    link: str


class SESError(Exception):
    """Raised when SES operations fail."""
    pass


class MailerNotConfiguredError(SESError):
    """Raised when no sender address is configured."""
    pass


class SESService:
    """Service for sending emails via AWS SES."""

    def __init__(self, config: Optional[Settings] = None):
        """Initialize SES settings. The boto3 client is created on first send.

        Args:
            config: Settings override (defaults to the process settings)
        """
        self.config = config or default_settings
        self.from_email = self.config.SES_FROM_EMAIL.strip()
        self.from_name = self.config.SES_FROM_NAME
        self._client = None

    @property
    def client(self):
        if self._client is None:
            # Explicitly pass credentials if configured
            client_kwargs = {"region_name": self.config.SES_REGION}
            if self.config.SES_ACCESS_KEY_ID and self.config.SES_SECRET_ACCESS_KEY:
                client_kwargs["aws_access_key_id"] = self.config.SES_ACCESS_KEY_ID
                client_kwargs["aws_secret_access_key"] = self.config.SES_SECRET_ACCESS_KEY
            self._client = boto3.client("ses", **client_kwargs)
        return self._client

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> str:
        """Send an email via SES.

        Args:
            to: Recipient email address
            subject: Email subject
            html_body: HTML content
            text_body: Plain text content (optional)

        Returns:
            SES message ID

        Raises:
            MailerNotConfiguredError: No sender address configured
            SESError: SES rejected the message or was unreachable
        """
        if not self.from_email:
            raise MailerNotConfiguredError("SES_FROM_EMAIL is not set")

        source = f"{self.from_name} <{self.from_email}>"

        body = {"Html": {"Data": html_body, "Charset": "utf-8"}}
        if text_body:
            body["Text"] = {"Data": text_body, "Charset": "utf-8"}

        params = {
            "Source": source,
            "Destination": {"ToAddresses": [to]},
            "Message": {
                "Subject": {"Data": subject, "Charset": "utf-8"},
                "Body": body,
            },
        }

        try:
            response = await asyncio.to_thread(self.client.send_email, **params)
        except (ClientError, BotoCoreError) as e:
            logger.error("SES send failed", error=str(e), to=to)
            raise SESError(f"Email send failed: {str(e)}") from e

        message_id = response["MessageId"]
        logger.info(
            "Email sent",
            message_id=message_id,
            to=to,
            subject=subject,
        )
        return message_id

    def _load_template(self, name: str) -> str:
        """Load a template file by name."""
        template_path = TEMPLATE_DIR / name
        if not template_path.exists():
            raise FileNotFoundError(f"Template not found: {template_path}")
        return template_path.read_text(encoding="utf-8")

    def _render_template(self, template: str, **kwargs) -> str:
        """Render a template with {{variable}} syntax."""
        result = template
        for key, value in kwargs.items():
            result = result.replace(f"{{{{{key}}}}}", str(value))
        return result

    def render_interview_assignment(self, content: InterviewAssignmentEmail) -> tuple[str, str, str]:
        """Render subject, HTML and text bodies for an assignment email."""
        subject = f"Interview assignment: {content.candidate_name}"
        template_vars = {
            "candidate_name": content.candidate_name,
            "interviewer_name": content.interviewer_name,
            "case_title": content.case_title,
            "fit_question_title": content.fit_question_title,
            "link": content.link,
            "from_name": self.from_name,
        }
        html_body = self._render_template(self._load_template("interview_assignment.html"), **template_vars)
        text_body = self._render_template(self._load_template("interview_assignment.txt"), **template_vars)
        return subject, html_body, text_body

    async def send_interview_assignment(self, to: str, content: InterviewAssignmentEmail) -> str:
        """Send an interview assignment invitation."""
        subject, html_body, text_body = self.render_interview_assignment(content)
        return await self.send_email(
            to=to,
            subject=subject,
            html_body=html_body,
            text_body=text_body,
        )
