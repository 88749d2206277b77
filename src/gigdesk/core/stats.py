from __future__ import annotations

import re

from sqlalchemy.orm import Session

from gigdesk.db.repositories import Repository
from gigdesk.types import (
    ACTIVE_PROJECT_STATUSES,
    WORKING_PROJECT_STATUSES,
    AdminDashboardStats,
    ClientDashboardStats,
    FreelancerDashboardStats,
)

_AMOUNT_PATTERN = re.compile(r"\d[\d,]*(?:\.\d+)?")


def parse_budget_amount(budget: str | None) -> float:
    """First amount in a free-text budget: "$500 - $1,000" -> 500.0, "negotiable" -> 0.0."""
    if not budget:
        return 0.0
    match = _AMOUNT_PATTERN.search(budget)
    if not match:
        return 0.0
    return float(match.group(0).replace(",", ""))


def format_amount(value: float) -> str:
    return f"{value:.2f}"


class DashboardService:
    def __init__(self, session: Session):
        self.repo = Repository(session)

    def admin_stats(self) -> AdminDashboardStats:
        revenue = sum(parse_budget_amount(budget) for budget in self.repo.list_project_budgets("completed"))
        return AdminDashboardStats(
            total_users=self.repo.count_users(),
            active_projects=self.repo.count_projects(statuses=ACTIVE_PROJECT_STATUSES),
            pending_applications=self.repo.count_applications(status="pending"),
            total_revenue=format_amount(revenue),
        )

    def client_stats(self, client_id: int) -> ClientDashboardStats:
        project_ids = self.repo.list_project_ids_for_client(client_id)
        return ClientDashboardStats(
            total_posted_projects=len(project_ids),
            active_projects=self.repo.count_projects(client_id=client_id, statuses=WORKING_PROJECT_STATUSES),
            pending_applications=self.repo.count_applications(status="pending", project_ids=project_ids),
            completed_projects=self.repo.count_projects(client_id=client_id, statuses=["completed"]),
        )

    def freelancer_stats(self, freelancer_id: int) -> FreelancerDashboardStats:
        return FreelancerDashboardStats(
            active_projects=self.repo.count_projects(
                assigned_to_id=freelancer_id, statuses=WORKING_PROJECT_STATUSES
            ),
            pending_applications=self.repo.count_applications(status="pending", freelancer_id=freelancer_id),
            completed_projects=self.repo.count_projects(assigned_to_id=freelancer_id, statuses=["completed"]),
            total_earnings=format_amount(self.repo.sum_completed_earnings(freelancer_id)),
        )
