from __future__ import annotations

import logging
from collections.abc import Callable, Generator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from gigdesk.core.accounts import AccountService
from gigdesk.db.models import User
from gigdesk.db.session import get_db_session
from gigdesk.types import Actor

logger = logging.getLogger(__name__)


def get_db() -> Generator[Session, None, None]:
    yield from get_db_session()


def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
    if not authorization or not authorization.startswith("Bearer"):
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    parts = authorization.split(" ", 1)
    token = parts[1].strip() if len(parts) == 2 else ""
    if not token:
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    return token


def get_current_user(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> User:
    user = AccountService(db).resolve_token(token)
    if user is None:
        logger.info("Rejected bearer token: unknown, expired or orphaned")
        raise HTTPException(status_code=401, detail="Not authorized, token failed")
    return user


def get_actor(user: User = Depends(get_current_user)) -> Actor:
    return Actor(id=user.id, role=user.role)


def require_roles(*roles: str) -> Callable[..., Actor]:
    def _dependency(actor: Actor = Depends(get_actor)) -> Actor:
        if actor.role not in roles:
            raise HTTPException(
                status_code=403,
                detail=f"User role {actor.role} is not authorized to access this route",
            )
        return actor

    return _dependency
