import pytest

from gigdesk.config import Settings
from gigdesk.core.accounts import AccountService
from gigdesk.core.projects import ProjectService
from gigdesk.core.workflow import ApplicationWorkflow
from gigdesk.db.models import Application, Project
from gigdesk.db.session import SessionLocal
from gigdesk.errors import ConflictError, ForbiddenError, InvalidArgumentError, InvalidStateError, NotFoundError
from gigdesk.types import Actor


def _user(db, name: str, role: str) -> Actor:
    user = AccountService(db).create_user(
        username=name,
        email=f"{name}@example.com",
        password="pw",
        role=role,
        allow_admin=True,
    )
    return Actor(id=user.id, role=user.role)


def _project(db, client: Actor, title: str = "Landing page") -> int:
    project = ProjectService(db).create_project(
        actor=client,
        title=title,
        description="Build it",
        budget="$500 - $1,000",
        skills_required=["python"],
    )
    return project.id


def _apply(db, project_id: int, freelancer: Actor, bid: float = 300) -> int:
    application = ApplicationWorkflow(db).submit_application(
        project_id=project_id,
        freelancer_id=freelancer.id,
        bid_amount=bid,
        cover_letter="Hire me",
    )
    return application.id


def test_accept_assigns_project_and_rejects_other_pending_applications() -> None:
    with SessionLocal() as db:
        client = _user(db, "carol", "client")
        f1 = _user(db, "fred", "freelancer")
        f2 = _user(db, "gina", "freelancer")
        project_id = _project(db, client)
        a1 = _apply(db, project_id, f1)
        a2 = _apply(db, project_id, f2)

        accepted = ApplicationWorkflow(db).set_application_status(
            application_id=a1, actor=client, new_status="accepted"
        )
        assert accepted.status == "accepted"

        project = db.get(Project, project_id)
        assert project.status == "assigned"
        assert project.assigned_to_id == f1.id
        assert project.assigned_at is not None
        assert db.get(Application, a2).status == "rejected"

        with pytest.raises(InvalidStateError, match="already assigned"):
            ApplicationWorkflow(db).set_application_status(application_id=a2, actor=client, new_status="accepted")


def test_accept_is_idempotent_for_the_winning_application() -> None:
    with SessionLocal() as db:
        client = _user(db, "carol", "client")
        freelancer = _user(db, "fred", "freelancer")
        project_id = _project(db, client)
        app_id = _apply(db, project_id, freelancer)

        workflow = ApplicationWorkflow(db)
        workflow.set_application_status(application_id=app_id, actor=client, new_status="accepted")
        again = workflow.set_application_status(application_id=app_id, actor=client, new_status="accepted")

        assert again.status == "accepted"
        assert db.get(Project, project_id).assigned_to_id == freelancer.id


def test_rejected_application_cannot_be_accepted_later() -> None:
    with SessionLocal() as db:
        client = _user(db, "carol", "client")
        freelancer = _user(db, "fred", "freelancer")
        project_id = _project(db, client)
        app_id = _apply(db, project_id, freelancer)

        workflow = ApplicationWorkflow(db)
        workflow.set_application_status(application_id=app_id, actor=client, new_status="rejected")
        with pytest.raises(InvalidStateError):
            workflow.set_application_status(application_id=app_id, actor=client, new_status="accepted")
        assert db.get(Project, project_id).status == "open"


def test_concurrent_accept_loser_gets_conflict_and_changes_nothing() -> None:
    with SessionLocal() as setup:
        client = _user(setup, "carol", "client")
        f1 = _user(setup, "fred", "freelancer")
        f2 = _user(setup, "gina", "freelancer")
        project_id = _project(setup, client)
        a1 = _apply(setup, project_id, f1)
        a2 = _apply(setup, project_id, f2)

    with SessionLocal() as loser, SessionLocal() as winner:
        # Loser reads the project while it is still open.
        assert loser.get(Project, project_id).assigned_to_id is None
        assert loser.get(Application, a1).status == "pending"

        ApplicationWorkflow(winner).set_application_status(application_id=a2, actor=client, new_status="accepted")

        with pytest.raises(ConflictError):
            ApplicationWorkflow(loser).set_application_status(application_id=a1, actor=client, new_status="accepted")

    with SessionLocal() as db:
        project = db.get(Project, project_id)
        assert project.assigned_to_id == f2.id
        assert db.get(Application, a2).status == "accepted"
        assert db.get(Application, a1).status == "rejected"


def test_review_requires_owning_client_or_admin() -> None:
    with SessionLocal() as db:
        owner = _user(db, "carol", "client")
        other = _user(db, "oscar", "client")
        admin = _user(db, "ada", "admin")
        freelancer = _user(db, "fred", "freelancer")
        project_id = _project(db, owner)
        app_id = _apply(db, project_id, freelancer)

        workflow = ApplicationWorkflow(db)
        with pytest.raises(ForbiddenError):
            workflow.set_application_status(application_id=app_id, actor=other, new_status="accepted")
        with pytest.raises(ForbiddenError):
            workflow.set_application_status(application_id=app_id, actor=freelancer, new_status="rejected")
        assert db.get(Application, app_id).status == "pending"

        result = workflow.set_application_status(application_id=app_id, actor=admin, new_status="accepted")
        assert result.status == "accepted"


def test_review_rejects_unknown_status_and_missing_application() -> None:
    with SessionLocal() as db:
        client = _user(db, "carol", "client")
        workflow = ApplicationWorkflow(db)
        with pytest.raises(InvalidArgumentError):
            workflow.set_application_status(application_id=1, actor=client, new_status="pending")
        with pytest.raises(NotFoundError):
            workflow.set_application_status(application_id=999, actor=client, new_status="accepted")


def test_submit_validates_bid_project_state_and_duplicates() -> None:
    with SessionLocal() as db:
        client = _user(db, "carol", "client")
        freelancer = _user(db, "fred", "freelancer")
        project_id = _project(db, client)
        workflow = ApplicationWorkflow(db)

        with pytest.raises(InvalidArgumentError):
            workflow.submit_application(project_id=project_id, freelancer_id=freelancer.id, bid_amount=0, cover_letter="x")
        with pytest.raises(InvalidArgumentError):
            workflow.submit_application(project_id=project_id, freelancer_id=freelancer.id, bid_amount=10, cover_letter=" ")
        with pytest.raises(NotFoundError):
            workflow.submit_application(project_id=999, freelancer_id=freelancer.id, bid_amount=10, cover_letter="x")

        _apply(db, project_id, freelancer)
        with pytest.raises(ConflictError):
            _apply(db, project_id, freelancer)

        workflow.set_project_status(project_id=project_id, actor=client, new_status="cancelled")
        late = _user(db, "lou", "freelancer")
        with pytest.raises(InvalidStateError, match="Current status: cancelled"):
            _apply(db, project_id, late)


def test_completed_project_freezes_application_statuses() -> None:
    with SessionLocal() as db:
        client = _user(db, "carol", "client")
        freelancer = _user(db, "fred", "freelancer")
        project_id = _project(db, client)
        app_id = _apply(db, project_id, freelancer)

        workflow = ApplicationWorkflow(db)
        workflow.set_application_status(application_id=app_id, actor=client, new_status="accepted")
        workflow.set_project_status(project_id=project_id, actor=client, new_status="in progress")
        workflow.set_project_status(project_id=project_id, actor=client, new_status="completed")

        with pytest.raises(InvalidStateError, match="closed project"):
            workflow.set_application_status(application_id=app_id, actor=client, new_status="rejected")
        with pytest.raises(InvalidStateError):
            workflow.set_project_status(project_id=project_id, actor=client, new_status="cancelled")
        with pytest.raises(InvalidStateError, match="closed project"):
            workflow.withdraw_application(application_id=app_id, actor=freelancer)

        db.expire_all()
        assert db.get(Application, app_id).status == "accepted"
        project = db.get(Project, project_id)
        assert project.status == "completed"
        assert project.assigned_to_id == freelancer.id


def test_cancel_clears_assignment_and_rejects_pending() -> None:
    with SessionLocal() as db:
        client = _user(db, "carol", "client")
        f1 = _user(db, "fred", "freelancer")
        project_id = _project(db, client)
        a1 = _apply(db, project_id, f1)
        f2 = _user(db, "gina", "freelancer")
        a2 = _apply(db, project_id, f2)

        workflow = ApplicationWorkflow(db)
        project = workflow.set_project_status(project_id=project_id, actor=client, new_status="Cancelled")

        assert project.status == "cancelled"
        assert project.assigned_to_id is None
        assert project.assigned_at is None
        assert db.get(Application, a1).status == "rejected"
        assert db.get(Application, a2).status == "rejected"


def test_project_status_cannot_be_set_to_assigned_directly() -> None:
    with SessionLocal() as db:
        client = _user(db, "carol", "client")
        project_id = _project(db, client)
        workflow = ApplicationWorkflow(db)

        with pytest.raises(InvalidStateError):
            workflow.set_project_status(project_id=project_id, actor=client, new_status="assigned")
        with pytest.raises(InvalidStateError):
            workflow.set_project_status(project_id=project_id, actor=client, new_status="completed")
        with pytest.raises(InvalidArgumentError):
            workflow.set_project_status(project_id=project_id, actor=client, new_status="archived")
        assert workflow.set_project_status(project_id=project_id, actor=client, new_status="open").status == "open"


def test_withdraw_deletes_pending_application_by_default() -> None:
    with SessionLocal() as db:
        client = _user(db, "carol", "client")
        freelancer = _user(db, "fred", "freelancer")
        stranger = _user(db, "sam", "freelancer")
        project_id = _project(db, client)
        app_id = _apply(db, project_id, freelancer)

        workflow = ApplicationWorkflow(db)
        with pytest.raises(ForbiddenError):
            workflow.withdraw_application(application_id=app_id, actor=stranger)
        with pytest.raises(ForbiddenError):
            workflow.withdraw_application(application_id=app_id, actor=client)
        assert db.get(Application, app_id).status == "pending"

        assert workflow.withdraw_application(application_id=app_id, actor=freelancer) is None
        assert db.get(Application, app_id) is None

        with pytest.raises(NotFoundError):
            workflow.withdraw_application(application_id=app_id, actor=freelancer)


def test_soft_withdraw_keeps_record_and_blocks_non_pending() -> None:
    settings = Settings(withdrawal_mode="soft")
    with SessionLocal() as db:
        client = _user(db, "carol", "client")
        f1 = _user(db, "fred", "freelancer")
        f2 = _user(db, "gina", "freelancer")
        project_id = _project(db, client)
        a1 = _apply(db, project_id, f1)
        a2 = _apply(db, project_id, f2)

        workflow = ApplicationWorkflow(db, settings=settings)
        withdrawn = workflow.withdraw_application(application_id=a1, actor=f1)
        assert withdrawn is not None
        assert withdrawn.status == "withdrawn"

        workflow.set_application_status(application_id=a2, actor=client, new_status="accepted")
        with pytest.raises(InvalidStateError):
            workflow.withdraw_application(application_id=a2, actor=f2)
        assert db.get(Application, a1).status == "withdrawn"


def test_admin_removal_hard_deletes_any_application() -> None:
    with SessionLocal() as db:
        client = _user(db, "carol", "client")
        admin = _user(db, "ada", "admin")
        freelancer = _user(db, "fred", "freelancer")
        project_id = _project(db, client)
        app_id = _apply(db, project_id, freelancer)

        ApplicationWorkflow(db).set_application_status(application_id=app_id, actor=client, new_status="rejected")
        assert ApplicationWorkflow(db, settings=Settings(withdrawal_mode="soft")).withdraw_application(
            application_id=app_id, actor=admin
        ) is None
        assert db.get(Application, app_id) is None
