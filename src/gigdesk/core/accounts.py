from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gigdesk.config import Settings, get_settings
from gigdesk.core.security import hash_password, new_session_token, verify_password
from gigdesk.db.models import User
from gigdesk.db.repositories import Repository
from gigdesk.errors import ConflictError, InvalidArgumentError, NotFoundError
from gigdesk.types import ROLES, SELF_SERVICE_ROLES

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IssuedSession:
    user: User
    token: str
    expires_at: datetime


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    return value if value.tzinfo else value.replace(tzinfo=UTC)


class AccountService:
    def __init__(self, session: Session, *, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.repo = Repository(session)

    def register(
        self,
        *,
        username: str,
        email: str,
        password: str,
        role: str,
        allow_admin: bool = False,
    ) -> IssuedSession:
        user = self.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            allow_admin=allow_admin,
        )
        return self.issue_session(user)

    def create_user(
        self,
        *,
        username: str,
        email: str,
        password: str,
        role: str,
        allow_admin: bool = False,
    ) -> User:
        if not username.strip() or not email.strip() or not password or not role:
            raise InvalidArgumentError("Please enter all fields.")

        allowed = set(ROLES) if allow_admin else set(SELF_SERVICE_ROLES)
        if role not in allowed:
            raise InvalidArgumentError(f"role must be one of {sorted(allowed)}")

        if self.repo.get_user_by_email(email):
            raise ConflictError("User already exists.")

        try:
            user = self.repo.create_user(
                username=username.strip(),
                email=email,
                password_hash=hash_password(password, iterations=self.settings.password_hash_iterations),
                role=role,
            )
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("User already exists.") from exc

        logger.info("Registered user user_id=%s role=%s", user.id, user.role)
        return user

    def login(self, *, email: str, password: str) -> IssuedSession:
        if not email or not password:
            raise InvalidArgumentError("Please enter all fields.")

        user = self.repo.get_user_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Failed login attempt for email=%s", email)
            raise InvalidArgumentError("Invalid credentials.")
        return self.issue_session(user)

    def issue_session(self, user: User) -> IssuedSession:
        now = datetime.now(UTC)
        expires_at = now + timedelta(minutes=self.settings.session_ttl_min)
        token = new_session_token()
        self.repo.create_auth_session(user_id=user.id, token=token, expires_at=expires_at)
        return IssuedSession(user=user, token=token, expires_at=expires_at)

    def resolve_token(self, token: str) -> User | None:
        if not token:
            return None
        auth_session = self.repo.get_auth_session(token)
        if auth_session is None:
            return None
        if _as_aware(auth_session.expires_at) <= datetime.now(UTC):
            self.repo.delete_auth_session(token)
            return None
        return self.repo.get_user(auth_session.user_id)

    def logout(self, token: str) -> None:
        self.repo.delete_auth_session(token)

    def purge_expired_sessions(self) -> int:
        return self.repo.purge_expired_sessions(datetime.now(UTC))

    def delete_user(self, user_id: int) -> None:
        user = self.repo.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found.")
        role = user.role
        self.repo.delete_user(user)
        logger.info("Deleted user user_id=%s role=%s with cascade", user_id, role)
