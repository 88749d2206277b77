from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from gigdesk.config import Settings, get_settings
from gigdesk.core.security import hash_password
from gigdesk.db.repositories import Repository

logger = logging.getLogger(__name__)


def seed_bootstrap_admin(session: Session, settings: Settings | None = None) -> int:
    """Create the configured admin account once. Returns the number of users inserted."""
    settings = settings or get_settings()
    if not settings.bootstrap_admin_enabled:
        return 0

    repo = Repository(session)
    if repo.get_user_by_email(settings.bootstrap_admin_email):
        return 0

    username = settings.bootstrap_admin_username or settings.bootstrap_admin_email.split("@", 1)[0]
    repo.create_user(
        username=username,
        email=settings.bootstrap_admin_email,
        password_hash=hash_password(
            settings.bootstrap_admin_password,
            iterations=settings.password_hash_iterations,
        ),
        role="admin",
    )
    logger.info("Seeded bootstrap admin email=%s", settings.bootstrap_admin_email)
    return 1
