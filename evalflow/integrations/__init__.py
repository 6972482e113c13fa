"""External service integrations."""

from .ses import InterviewAssignmentEmail, MailerNotConfiguredError, SESError, SESService

__all__ = ["InterviewAssignmentEmail", "MailerNotConfiguredError", "SESError", "SESService"]
