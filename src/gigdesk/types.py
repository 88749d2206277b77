from __future__ import annotations

from typing import Literal, get_args

from pydantic import BaseModel, Field, field_validator

Role = Literal["client", "freelancer", "admin"]
ProjectStatus = Literal["open", "assigned", "in progress", "completed", "cancelled"]
ApplicationStatus = Literal["pending", "accepted", "rejected", "withdrawn"]
ReviewDecision = Literal["accepted", "rejected"]

ROLES: tuple[str, ...] = get_args(Role)
SELF_SERVICE_ROLES: frozenset[str] = frozenset({"client", "freelancer"})
PROJECT_STATUSES: tuple[str, ...] = get_args(ProjectStatus)
APPLICATION_STATUSES: tuple[str, ...] = get_args(ApplicationStatus)

ACTIVE_PROJECT_STATUSES: frozenset[str] = frozenset({"open", "assigned", "in progress"})
WORKING_PROJECT_STATUSES: frozenset[str] = frozenset({"assigned", "in progress"})
ASSIGNED_PROJECT_STATUSES: frozenset[str] = frozenset({"assigned", "in progress", "completed"})
CLOSED_PROJECT_STATUSES: frozenset[str] = frozenset({"completed", "cancelled"})


class Actor(BaseModel):
    """Authenticated identity handed to the services by the caller."""

    id: int
    role: Role


class AdminDashboardStats(BaseModel):
    total_users: int = 0
    active_projects: int = 0
    pending_applications: int = 0
    total_revenue: str = "0.00"


class ClientDashboardStats(BaseModel):
    total_posted_projects: int = 0
    active_projects: int = 0
    pending_applications: int = 0
    completed_projects: int = 0


class FreelancerDashboardStats(BaseModel):
    active_projects: int = 0
    pending_applications: int = 0
    completed_projects: int = 0
    total_earnings: str = "0.00"


class StatusFilter(BaseModel):
    statuses: list[str] = Field(default_factory=list)

    @field_validator("statuses")
    @classmethod
    def validate_statuses(cls, value: list[str]) -> list[str]:
        unknown = [item for item in value if item not in PROJECT_STATUSES]
        if unknown:
            raise ValueError(f"unknown project status: {', '.join(unknown)}")
        return value

    @classmethod
    def parse(cls, raw: str | None) -> "StatusFilter":
        if not raw:
            return cls()
        return cls(statuses=[item.strip().lower() for item in raw.split(",") if item.strip()])
