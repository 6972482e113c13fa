"""Account model for interviewer logins."""

from sqlalchemy import Column, String, DateTime

from .base import BaseModel


class Account(BaseModel):
    """
    User account.

    Status Values:
    - pending: Provisioned, not yet activated by the user
    - active: User has logged in at least once
    """

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(String(20), nullable=False, default="user")  # super-admin, admin, user
    status = Column(String(20), nullable=False, default="pending")
    activated_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Account(email={self.email}, status={self.status})>"
