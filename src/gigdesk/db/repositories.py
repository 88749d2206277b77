from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.orm import Session, joinedload

from gigdesk.db.models import Application, AuthSession, Message, Project, User


def normalize_email(email: str) -> str:
    return email.strip().lower()


class Repository:
    """Data access for users, sessions, projects, applications and messages.

    Plain CRUD helpers commit on their own. Helpers used inside the
    acceptance/cancellation transaction (``assign_project_if_unassigned``,
    ``reject_pending_applications``, ``release_project``) only stage changes;
    the caller commits or rolls back.
    """

    def __init__(self, session: Session):
        self.session = session

    # users

    def create_user(self, *, username: str, email: str, password_hash: str, role: str) -> User:
        user = User(username=username, email=normalize_email(email), password_hash=password_hash, role=role)
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_user(self, user_id: int) -> User | None:
        return self.session.get(User, user_id)

    def get_user_by_email(self, email: str) -> User | None:
        return self.session.scalar(select(User).where(User.email == normalize_email(email)))

    def list_users(self) -> list[User]:
        return list(self.session.scalars(select(User).order_by(User.id.asc())).all())

    def count_users(self) -> int:
        return int(self.session.scalar(select(func.count(User.id))) or 0)

    def delete_user(self, user: User) -> None:
        if user.role == "client":
            project_ids = list(self.session.scalars(select(Project.id).where(Project.client_id == user.id)))
            self._delete_projects(project_ids)
        elif user.role == "freelancer":
            self.session.execute(
                update(Project)
                .where(Project.assigned_to_id == user.id)
                .values(assigned_to_id=None, assigned_at=None, status="open")
                .execution_options(synchronize_session=False)
            )
            self.session.execute(delete(Application).where(Application.freelancer_id == user.id))

        self.session.execute(delete(Message).where(or_(Message.sender_id == user.id, Message.receiver_id == user.id)))
        self.session.execute(delete(AuthSession).where(AuthSession.user_id == user.id))
        self.session.delete(user)
        self.session.commit()

    # sessions

    def create_auth_session(self, *, user_id: int, token: str, expires_at: datetime) -> AuthSession:
        item = AuthSession(user_id=user_id, token=token, expires_at=expires_at)
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    def get_auth_session(self, token: str) -> AuthSession | None:
        return self.session.scalar(select(AuthSession).where(AuthSession.token == token))

    def delete_auth_session(self, token: str) -> int:
        result = self.session.execute(delete(AuthSession).where(AuthSession.token == token))
        self.session.commit()
        return result.rowcount or 0

    def purge_expired_sessions(self, now: datetime) -> int:
        result = self.session.execute(delete(AuthSession).where(AuthSession.expires_at < now))
        self.session.commit()
        return result.rowcount or 0

    # projects

    def create_project(
        self,
        *,
        client_id: int,
        title: str,
        description: str,
        budget: str,
        skills_required: list[str] | None = None,
    ) -> Project:
        project = Project(
            client_id=client_id,
            title=title,
            description=description,
            budget=budget,
            skills_required_json=list(skills_required or []),
            status="open",
        )
        self.session.add(project)
        self.session.commit()
        self.session.refresh(project)
        return project

    def get_project(self, project_id: int) -> Project | None:
        return self.session.get(Project, project_id)

    def list_projects(
        self,
        *,
        statuses: Iterable[str] | None = None,
        client_id: int | None = None,
        assigned_to_id: int | None = None,
    ) -> list[Project]:
        statement = select(Project).options(joinedload(Project.client), joinedload(Project.assignee))
        statuses = list(statuses or [])
        if statuses:
            statement = statement.where(Project.status.in_(statuses))
        if client_id is not None:
            statement = statement.where(Project.client_id == client_id)
        if assigned_to_id is not None:
            statement = statement.where(Project.assigned_to_id == assigned_to_id)
        statement = statement.order_by(Project.created_at.desc(), Project.id.desc())
        return list(self.session.scalars(statement).unique().all())

    def list_project_ids_for_client(self, client_id: int) -> list[int]:
        return list(self.session.scalars(select(Project.id).where(Project.client_id == client_id)))

    def count_projects(
        self,
        *,
        statuses: Iterable[str] | None = None,
        client_id: int | None = None,
        assigned_to_id: int | None = None,
    ) -> int:
        statement = select(func.count(Project.id))
        statuses = list(statuses or [])
        if statuses:
            statement = statement.where(Project.status.in_(statuses))
        if client_id is not None:
            statement = statement.where(Project.client_id == client_id)
        if assigned_to_id is not None:
            statement = statement.where(Project.assigned_to_id == assigned_to_id)
        return int(self.session.scalar(statement) or 0)

    def list_project_budgets(self, status: str) -> list[str]:
        return list(self.session.scalars(select(Project.budget).where(Project.status == status)))

    def update_project(self, project_id: int, values: dict) -> Project:
        project = self.session.get(Project, project_id)
        if not project:
            raise ValueError(f"project {project_id} not found")
        for key, value in values.items():
            setattr(project, key, value)
        self.session.commit()
        self.session.refresh(project)
        return project

    def delete_project(self, project_id: int) -> None:
        self._delete_projects([project_id])
        self.session.commit()

    def assign_project_if_unassigned(self, *, project_id: int, freelancer_id: int, assigned_at: datetime) -> bool:
        """Compare-and-swap on ``assigned_to_id``. True when this call won the assignment."""
        result = self.session.execute(
            update(Project)
            .where(
                and_(
                    Project.id == project_id,
                    Project.assigned_to_id.is_(None),
                    Project.status == "open",
                )
            )
            .values(assigned_to_id=freelancer_id, status="assigned", assigned_at=assigned_at)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) == 1

    def release_project(self, project_id: int, *, status: str) -> None:
        self.session.execute(
            update(Project)
            .where(Project.id == project_id)
            .values(assigned_to_id=None, assigned_at=None, status=status)
            .execution_options(synchronize_session=False)
        )

    def _delete_projects(self, project_ids: list[int]) -> None:
        if not project_ids:
            return
        self.session.execute(delete(Application).where(Application.project_id.in_(project_ids)))
        self.session.execute(delete(Message).where(Message.project_id.in_(project_ids)))
        self.session.execute(delete(Project).where(Project.id.in_(project_ids)))

    # applications

    def create_application(
        self,
        *,
        project_id: int,
        freelancer_id: int,
        bid_amount: float,
        cover_letter: str,
    ) -> Application:
        application = Application(
            project_id=project_id,
            freelancer_id=freelancer_id,
            bid_amount=bid_amount,
            cover_letter=cover_letter,
            status="pending",
        )
        self.session.add(application)
        self.session.commit()
        self.session.refresh(application)
        return application

    def get_application(self, application_id: int) -> Application | None:
        return self.session.get(Application, application_id)

    def get_application_for_pair(self, project_id: int, freelancer_id: int) -> Application | None:
        statement = select(Application).where(
            and_(
                Application.project_id == project_id,
                Application.freelancer_id == freelancer_id,
            )
        )
        return self.session.scalar(statement)

    def list_applications(
        self,
        *,
        project_ids: Iterable[int] | None = None,
        freelancer_id: int | None = None,
    ) -> list[Application]:
        statement = select(Application).options(
            joinedload(Application.freelancer),
            joinedload(Application.project),
        )
        if project_ids is not None:
            ids = list(project_ids)
            if not ids:
                return []
            statement = statement.where(Application.project_id.in_(ids))
        if freelancer_id is not None:
            statement = statement.where(Application.freelancer_id == freelancer_id)
        statement = statement.order_by(Application.application_date.desc(), Application.id.desc())
        return list(self.session.scalars(statement).unique().all())

    def count_applications(
        self,
        *,
        status: str | None = None,
        project_ids: Iterable[int] | None = None,
        freelancer_id: int | None = None,
    ) -> int:
        statement = select(func.count(Application.id))
        if status is not None:
            statement = statement.where(Application.status == status)
        if project_ids is not None:
            ids = list(project_ids)
            if not ids:
                return 0
            statement = statement.where(Application.project_id.in_(ids))
        if freelancer_id is not None:
            statement = statement.where(Application.freelancer_id == freelancer_id)
        return int(self.session.scalar(statement) or 0)

    def sum_completed_earnings(self, freelancer_id: int) -> float:
        statement = (
            select(func.coalesce(func.sum(Application.bid_amount), 0.0))
            .join(Project, Project.id == Application.project_id)
            .where(
                and_(
                    Application.freelancer_id == freelancer_id,
                    Application.status == "accepted",
                    Project.status == "completed",
                    Project.assigned_to_id == freelancer_id,
                )
            )
        )
        return float(self.session.scalar(statement) or 0.0)

    def reject_pending_applications(self, project_id: int, *, exclude_id: int | None = None) -> int:
        conditions = [Application.project_id == project_id, Application.status == "pending"]
        if exclude_id is not None:
            conditions.append(Application.id != exclude_id)
        result = self.session.execute(
            update(Application)
            .where(and_(*conditions))
            .values(status="rejected")
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def set_application_status(self, application_id: int, status: str) -> Application:
        application = self.session.get(Application, application_id)
        if not application:
            raise ValueError(f"application {application_id} not found")
        application.status = status
        self.session.commit()
        self.session.refresh(application)
        return application

    def delete_application(self, application_id: int) -> int:
        result = self.session.execute(delete(Application).where(Application.id == application_id))
        self.session.commit()
        return result.rowcount or 0

    # messages

    def create_message(
        self,
        *,
        project_id: int,
        sender_id: int,
        receiver_id: int | None,
        content: str,
    ) -> Message:
        message = Message(project_id=project_id, sender_id=sender_id, receiver_id=receiver_id, content=content)
        self.session.add(message)
        self.session.commit()
        self.session.refresh(message)
        return message

    def list_messages(self, project_id: int) -> list[Message]:
        statement = (
            select(Message)
            .options(joinedload(Message.sender))
            .where(Message.project_id == project_id)
            .order_by(Message.timestamp.asc(), Message.id.asc())
        )
        return list(self.session.scalars(statement).unique().all())
