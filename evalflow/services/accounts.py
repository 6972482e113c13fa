"""Interviewer account provisioning."""

import asyncio
import uuid

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from evalflow.middleware.error_handler import InvalidInputError
from evalflow.models import Account

logger = structlog.get_logger()


class AccountsService:
    """Creates logins for invited interviewers."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def ensure_user_account(self, email: str) -> Account:
        """Return the account for an email, creating a pending one if needed.

        Idempotent: concurrent callers for the same email end up with the
        same row.
        """
        normalized = email.strip().lower()
        if not normalized:
            raise InvalidInputError("Email is required", field="email")

        def _ensure():
            with self.session_factory(expire_on_commit=False) as db:
                query = select(Account).where(func.lower(Account.email) == normalized)
                account = db.scalars(query).first()
                if account:
                    return account

                account = Account(id=str(uuid.uuid4()), email=normalized, role="user", status="pending")
                db.add(account)
                try:
                    db.commit()
                except IntegrityError:
                    db.rollback()
                    return db.scalars(query).one()

                logger.info("Interviewer account provisioned", email=normalized, account_id=account.id)
                return account

        return await asyncio.to_thread(_ensure)
