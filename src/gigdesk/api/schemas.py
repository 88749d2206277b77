from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from gigdesk.db.models import Application, Message, Project, User


class APIModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    # SQLite drops the offset on read; stored values are UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()


class RegisterRequest(APIModel):
    username: str = ""
    email: str = ""
    password: str = ""
    role: str = ""


class LoginRequest(APIModel):
    email: str = ""
    password: str = ""


class UserSummary(APIModel):
    id: int
    username: str
    email: str


class UserResponse(UserSummary):
    role: str
    created_at: str | None = None


class AuthResponse(APIModel):
    message: str
    token: str
    expires_at: str
    user: UserResponse


class MeResponse(APIModel):
    user: UserResponse


class DetailResponse(APIModel):
    message: str


class ProjectCreateRequest(APIModel):
    title: str = ""
    description: str = ""
    budget: str = ""
    skills_required: list[str] = Field(default_factory=list)


class ProjectUpdateRequest(APIModel):
    title: str | None = None
    description: str | None = None
    budget: str | None = None
    skills_required: list[str] | None = None


class StatusChangeRequest(APIModel):
    status: str = ""


class ProjectResponse(APIModel):
    id: int
    title: str
    description: str
    budget: str
    status: str
    skills_required: list[str]
    client: UserSummary | None
    assigned_to: UserSummary | None
    assigned_at: str | None
    created_at: str | None


class ProjectEnvelope(APIModel):
    message: str
    project: ProjectResponse


class ProjectSummary(APIModel):
    id: int
    title: str
    description: str
    budget: str
    status: str
    client_id: int
    assigned_to_id: int | None


class ApplicationCreateRequest(APIModel):
    project_id: int | None = None
    bid_amount: Any = None
    cover_letter: str | None = None


class ApplicationResponse(APIModel):
    id: int
    project: ProjectSummary | None
    freelancer: UserSummary | None
    bid_amount: float
    cover_letter: str
    status: str
    application_date: str | None


class ApplicationEnvelope(APIModel):
    message: str
    application: ApplicationResponse


class MessageCreateRequest(APIModel):
    project_id: int | None = None
    content: str | None = None


class MessageSender(APIModel):
    id: int
    username: str
    role: str


class MessageResponse(APIModel):
    id: int
    project_id: int
    sender: MessageSender | None
    receiver_id: int | None
    content: str
    timestamp: str | None
    read: bool


class MessageEnvelope(APIModel):
    message: str
    data: MessageResponse


class AdminStatsResponse(APIModel):
    total_users: int
    active_projects: int
    pending_applications: int
    total_revenue: str


class ClientStatsResponse(APIModel):
    total_posted_projects: int
    active_projects: int
    pending_applications: int
    completed_projects: int


class FreelancerStatsResponse(APIModel):
    active_projects: int
    pending_applications: int
    completed_projects: int
    total_earnings: str


def user_summary(user: User | None) -> UserSummary | None:
    if user is None:
        return None
    return UserSummary(id=user.id, username=user.username, email=user.email)


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        created_at=_iso(user.created_at),
    )


def project_response(project: Project) -> ProjectResponse:
    return ProjectResponse(
        id=project.id,
        title=project.title,
        description=project.description,
        budget=project.budget,
        status=project.status,
        skills_required=list(project.skills_required_json or []),
        client=user_summary(project.client),
        assigned_to=user_summary(project.assignee),
        assigned_at=_iso(project.assigned_at),
        created_at=_iso(project.created_at),
    )


def project_summary(project: Project | None) -> ProjectSummary | None:
    if project is None:
        return None
    return ProjectSummary(
        id=project.id,
        title=project.title,
        description=project.description,
        budget=project.budget,
        status=project.status,
        client_id=project.client_id,
        assigned_to_id=project.assigned_to_id,
    )


def application_response(application: Application) -> ApplicationResponse:
    return ApplicationResponse(
        id=application.id,
        project=project_summary(application.project),
        freelancer=user_summary(application.freelancer),
        bid_amount=application.bid_amount,
        cover_letter=application.cover_letter,
        status=application.status,
        application_date=_iso(application.application_date),
    )


def message_response(message: Message) -> MessageResponse:
    sender = message.sender
    return MessageResponse(
        id=message.id,
        project_id=message.project_id,
        sender=MessageSender(id=sender.id, username=sender.username, role=sender.role) if sender else None,
        receiver_id=message.receiver_id,
        content=message.content,
        timestamp=_iso(message.timestamp),
        read=message.read,
    )
