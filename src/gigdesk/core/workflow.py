"""Application and project status workflow.

Application lifecycle:
    pending -> accepted | rejected | withdrawn   (all three are terminal)

Project lifecycle:
    open -> assigned (only through an accepted application) | cancelled
    assigned -> in progress | completed | cancelled
    in progress -> completed | cancelled
    completed, cancelled: terminal

Accepting an application is a single transaction: a compare-and-swap claims
``Project.assigned_to_id`` and, only if that succeeds, every other pending
application on the project is rejected. A caller that loses the swap gets a
``ConflictError`` and nothing is written.
"""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gigdesk.config import Settings, get_settings
from gigdesk.db.models import Application, Project
from gigdesk.db.repositories import Repository
from gigdesk.errors import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from gigdesk.types import CLOSED_PROJECT_STATUSES, PROJECT_STATUSES, Actor

logger = logging.getLogger(__name__)

APPLICATION_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"accepted", "rejected", "withdrawn"},
    "accepted": set(),
    "rejected": set(),
    "withdrawn": set(),
}

PROJECT_TRANSITIONS: dict[str, set[str]] = {
    "open": {"cancelled"},
    "assigned": {"in progress", "completed", "cancelled"},
    "in progress": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}

REVIEW_STATUSES = {"accepted", "rejected"}


def can_transition_application(current: str, target: str) -> bool:
    return target in APPLICATION_TRANSITIONS.get(current, set())


def can_transition_project(current: str, target: str) -> bool:
    return target in PROJECT_TRANSITIONS.get(current, set())


def parse_bid_amount(value: object) -> float:
    if isinstance(value, bool):
        raise InvalidArgumentError("Bid amount must be a positive number.")
    try:
        amount = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise InvalidArgumentError("Bid amount must be a positive number.") from exc
    if not math.isfinite(amount) or amount <= 0:
        raise InvalidArgumentError("Bid amount must be a positive number.")
    return amount


class ApplicationWorkflow:
    def __init__(self, session: Session, *, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.repo = Repository(session)

    def submit_application(
        self,
        *,
        project_id: int,
        freelancer_id: int,
        bid_amount: object,
        cover_letter: str | None,
    ) -> Application:
        amount = parse_bid_amount(bid_amount)
        if cover_letter is None or not cover_letter.strip():
            raise InvalidArgumentError("Please provide project ID, bid amount, and cover letter.")

        project = self.repo.get_project(project_id)
        if project is None:
            raise NotFoundError("Project not found or may have been deleted.")
        if project.status != "open":
            raise InvalidStateError(
                f"This project is not currently open for applications. Current status: {project.status}"
            )

        if self.repo.get_application_for_pair(project_id, freelancer_id):
            logger.warning(
                "Duplicate application refused project_id=%s freelancer_id=%s", project_id, freelancer_id
            )
            raise ConflictError("You have already applied for this project.")

        try:
            application = self.repo.create_application(
                project_id=project_id,
                freelancer_id=freelancer_id,
                bid_amount=amount,
                cover_letter=cover_letter,
            )
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError("You have already applied for this project.") from exc

        logger.info(
            "Application submitted application_id=%s project_id=%s freelancer_id=%s",
            application.id,
            project_id,
            freelancer_id,
        )
        return application

    def set_application_status(
        self,
        *,
        application_id: int,
        actor: Actor,
        new_status: str,
    ) -> Application:
        if new_status not in REVIEW_STATUSES:
            raise InvalidArgumentError("Invalid status provided. Allowed statuses: accepted, rejected.")

        application = self.repo.get_application(application_id)
        if application is None:
            raise NotFoundError("Application not found.")
        project = self.repo.get_project(application.project_id)
        if project is None:
            raise NotFoundError("Project not found for this application.")

        self._require_project_manager(project, actor, "Not authorized to update this application.")
        self._require_project_not_closed(project, "Cannot change application status for a closed project.")

        if application.status == new_status:
            return application

        if new_status == "accepted" and project.assigned_to_id is not None:
            raise InvalidStateError("Project is already assigned to a freelancer.")

        if not can_transition_application(application.status, new_status):
            raise InvalidStateError(
                f"Application is already {application.status} and cannot become {new_status}."
            )

        if new_status == "rejected":
            application.status = "rejected"
            self.session.commit()
            self.session.refresh(application)
            logger.info("Application rejected application_id=%s by actor_id=%s", application.id, actor.id)
            return application

        return self._accept(application, project, actor)

    def withdraw_application(self, *, application_id: int, actor: Actor) -> Application | None:
        """Withdraw (freelancer) or remove (admin) an application.

        Returns the retained application in ``soft`` withdrawal mode and
        ``None`` when the record was deleted.
        """
        application = self.repo.get_application(application_id)
        if application is None:
            raise NotFoundError("Application not found.")

        if actor.role == "admin":
            self.repo.delete_application(application.id)
            logger.info("Application removed by admin application_id=%s actor_id=%s", application_id, actor.id)
            return None

        if application.freelancer_id != actor.id:
            raise ForbiddenError("Not authorized to delete this application.")

        project = self.repo.get_project(application.project_id)
        if project is not None:
            self._require_project_not_closed(project, "Cannot withdraw an application for a closed project.")
        if not can_transition_application(application.status, "withdrawn"):
            raise InvalidStateError(f"Only pending applications can be withdrawn. Current status: {application.status}")

        if self.settings.withdrawal_mode == "soft":
            application = self.repo.set_application_status(application.id, "withdrawn")
            logger.info("Application withdrawn (retained) application_id=%s", application.id)
            return application

        self.repo.delete_application(application.id)
        logger.info("Application withdrawn (deleted) application_id=%s", application_id)
        return None

    def set_project_status(self, *, project_id: int, actor: Actor, new_status: str) -> Project:
        status = (new_status or "").strip().lower()
        if status not in PROJECT_STATUSES:
            raise InvalidArgumentError(
                f"Invalid status provided. Allowed statuses: {', '.join(PROJECT_STATUSES)}."
            )

        project = self.repo.get_project(project_id)
        if project is None:
            raise NotFoundError("Project not found.")
        self._require_project_manager(project, actor, "Not authorized to update this project status.")

        if project.status == status:
            return project

        if status == "assigned":
            raise InvalidStateError("A project becomes assigned only by accepting an application.")
        if not can_transition_project(project.status, status):
            raise InvalidStateError(f"Cannot change project status from {project.status} to {status}.")

        try:
            if status == "cancelled":
                self.repo.release_project(project.id, status="cancelled")
                rejected = self.repo.reject_pending_applications(project.id)
                logger.info("Project cancelled project_id=%s rejected_pending=%s", project.id, rejected)
            else:
                project.status = status
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.exception("Project status change failed project_id=%s", project_id)
            raise

        self.session.refresh(project)
        logger.info("Project status changed project_id=%s status=%s by actor_id=%s", project.id, status, actor.id)
        return project

    def _accept(self, application: Application, project: Project, actor: Actor) -> Application:
        try:
            claimed = self.repo.assign_project_if_unassigned(
                project_id=project.id,
                freelancer_id=application.freelancer_id,
                assigned_at=datetime.now(UTC),
            )
            if not claimed:
                self.session.rollback()
                logger.warning(
                    "Lost assignment race project_id=%s application_id=%s", project.id, application.id
                )
                raise ConflictError("Project is already assigned to a freelancer.")

            rejected = self.repo.reject_pending_applications(project.id, exclude_id=application.id)
            application.status = "accepted"
            self.session.commit()
        except ConflictError:
            raise
        except Exception:
            self.session.rollback()
            logger.exception("Acceptance failed application_id=%s", application.id)
            raise

        self.session.refresh(project)
        self.session.refresh(application)
        logger.info(
            "Application accepted application_id=%s project_id=%s freelancer_id=%s rejected_siblings=%s actor_id=%s",
            application.id,
            project.id,
            application.freelancer_id,
            rejected,
            actor.id,
        )
        return application

    def _require_project_manager(self, project: Project, actor: Actor, message: str) -> None:
        if actor.role == "admin":
            return
        if actor.role == "client" and project.client_id == actor.id:
            return
        logger.warning("Forbidden workflow call project_id=%s actor_id=%s role=%s", project.id, actor.id, actor.role)
        raise ForbiddenError(message)

    def _require_project_not_closed(self, project: Project, message: str) -> None:
        if project.status in CLOSED_PROJECT_STATUSES:
            raise InvalidStateError(message)
