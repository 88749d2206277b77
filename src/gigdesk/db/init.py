from __future__ import annotations

from gigdesk.config import get_settings
from gigdesk.db.base import Base
from gigdesk.db.session import SessionLocal, engine
from gigdesk.db import models  # noqa: F401
from gigdesk.db.seed import seed_bootstrap_admin


def ensure_data_directories() -> None:
    settings = get_settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)


def init_database() -> dict[str, int]:
    ensure_data_directories()
    Base.metadata.create_all(bind=engine)

    with SessionLocal() as session:
        inserted = seed_bootstrap_admin(session)
    return {"seeded_admins": inserted}
