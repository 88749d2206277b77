from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from gigdesk.db.models import Message, Project
from gigdesk.db.repositories import Repository
from gigdesk.errors import ForbiddenError, InvalidArgumentError, InvalidStateError, NotFoundError

logger = logging.getLogger(__name__)


class MessagingService:
    """Project-scoped chat between a client and the assigned freelancer.

    Delivery is by polling ``list_messages``; there is no push channel.
    """

    def __init__(self, session: Session):
        self.session = session
        self.repo = Repository(session)

    def send_message(self, *, project_id: int | None, sender_id: int, content: str | None) -> Message:
        if not project_id or not (content or "").strip():
            raise InvalidArgumentError("Project ID and message content are required.")

        project = self._load_project(project_id)
        is_client = project.client_id == sender_id
        is_assignee = project.assigned_to_id is not None and project.assigned_to_id == sender_id
        if not is_client and not is_assignee:
            logger.warning("Message refused sender_id=%s project_id=%s", sender_id, project_id)
            raise ForbiddenError("Not authorized to send messages for this project.")

        if is_client and project.assigned_to_id is None:
            raise InvalidStateError("Project is not assigned yet. Cannot initiate chat.")
        receiver_id = project.assigned_to_id if is_client else project.client_id

        message = self.repo.create_message(
            project_id=project.id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content.strip(),
        )
        logger.info("Message sent message_id=%s project_id=%s sender_id=%s", message.id, project.id, sender_id)
        return message

    def list_messages(self, *, project_id: int, user_id: int) -> list[Message]:
        project = self._load_project(project_id)
        if project.client_id != user_id and project.assigned_to_id != user_id:
            raise ForbiddenError("Not authorized to view messages for this project.")
        return self.repo.list_messages(project.id)

    def _load_project(self, project_id: int) -> Project:
        project = self.repo.get_project(project_id)
        if project is None:
            raise NotFoundError("Project not found.")
        return project
