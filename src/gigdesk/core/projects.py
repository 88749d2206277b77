from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from gigdesk.db.models import Project
from gigdesk.db.repositories import Repository
from gigdesk.errors import ForbiddenError, InvalidArgumentError, NotFoundError
from gigdesk.types import ASSIGNED_PROJECT_STATUSES, WORKING_PROJECT_STATUSES, Actor, StatusFilter

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "budget", "skills_required")


def clean_skills(skills: list[str] | None) -> list[str]:
    seen: list[str] = []
    for skill in skills or []:
        value = skill.strip()
        if value and value not in seen:
            seen.append(value)
    return seen


def is_consistent(project: Project) -> bool:
    """False for rows whose client vanished or whose assignment contradicts the status."""
    if project.client is None:
        return False
    if project.status in ASSIGNED_PROJECT_STATUSES and project.assigned_to_id is None:
        return False
    return True


class ProjectService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = Repository(session)

    def create_project(
        self,
        *,
        actor: Actor,
        title: str,
        description: str,
        budget: str,
        skills_required: list[str] | None = None,
    ) -> Project:
        if actor.role != "client":
            raise ForbiddenError("Only clients can post projects.")
        if not (title or "").strip() or not (description or "").strip() or not (budget or "").strip():
            raise InvalidArgumentError("Please enter all required fields: title, description, and budget.")

        project = self.repo.create_project(
            client_id=actor.id,
            title=title.strip(),
            description=description,
            budget=budget.strip(),
            skills_required=clean_skills(skills_required),
        )
        logger.info("Project posted project_id=%s client_id=%s", project.id, actor.id)
        return project

    def get_project(self, project_id: int) -> Project:
        project = self.repo.get_project(project_id)
        if project is None:
            raise NotFoundError("Project not found.")
        if project.client is None:
            raise NotFoundError("Project found but client data is missing or invalid.")
        return project

    def list_projects(self, *, status: str | None = None) -> list[Project]:
        rows = self.repo.list_projects(statuses=self._statuses(status))
        valid = [row for row in rows if is_consistent(row)]
        if len(valid) != len(rows):
            logger.warning("Filtered out %s inconsistent projects", len(rows) - len(valid))
        return valid

    def list_client_projects(self, *, actor: Actor, status: str | None = None) -> list[Project]:
        return self.repo.list_projects(client_id=actor.id, statuses=self._statuses(status))

    def list_working_projects(
        self,
        *,
        actor: Actor,
        freelancer_id: int,
        status: str | None = None,
    ) -> list[Project]:
        if actor.role == "freelancer" and actor.id != freelancer_id:
            raise ForbiddenError("Not authorized to view these projects.")
        statuses = self._statuses(status) or sorted(WORKING_PROJECT_STATUSES)
        rows = self.repo.list_projects(assigned_to_id=freelancer_id, statuses=statuses)
        return [row for row in rows if row.client is not None and row.assignee is not None]

    def update_project(self, *, project_id: int, actor: Actor, values: dict) -> Project:
        project = self.repo.get_project(project_id)
        if project is None:
            raise NotFoundError("Project not found.")
        self._require_owner_or_admin(project, actor, "Not authorized to update this project.")

        changes: dict = {}
        for field in EDITABLE_FIELDS:
            value = values.get(field)
            if value is None:
                continue
            if field == "skills_required":
                changes["skills_required_json"] = clean_skills(value)
            elif isinstance(value, str) and value.strip():
                changes[field] = value if field == "description" else value.strip()

        if not changes:
            return project
        project = self.repo.update_project(project_id, changes)
        logger.info("Project updated project_id=%s fields=%s", project_id, sorted(changes))
        return project

    def delete_project(self, *, project_id: int, actor: Actor) -> None:
        project = self.repo.get_project(project_id)
        if project is None:
            raise NotFoundError("Project not found.")
        self._require_owner_or_admin(project, actor, "Not authorized to delete this project.")
        self.repo.delete_project(project_id)
        logger.info("Project deleted with applications and messages project_id=%s actor_id=%s", project_id, actor.id)

    def _require_owner_or_admin(self, project: Project, actor: Actor, message: str) -> None:
        if actor.role == "admin" or project.client_id == actor.id:
            return
        raise ForbiddenError(message)

    def _statuses(self, raw: str | None) -> list[str]:
        try:
            return StatusFilter.parse(raw).statuses
        except ValueError as exc:
            raise InvalidArgumentError(str(exc)) from exc
