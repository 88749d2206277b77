import pytest

from gigdesk.core.accounts import AccountService
from gigdesk.core.messaging import MessagingService
from gigdesk.core.projects import ProjectService
from gigdesk.core.workflow import ApplicationWorkflow
from gigdesk.db.models import Project
from gigdesk.db.session import SessionLocal
from gigdesk.errors import ForbiddenError, InvalidArgumentError, InvalidStateError, NotFoundError
from gigdesk.types import Actor


def _actor(db, name: str, role: str) -> Actor:
    user = AccountService(db).create_user(username=name, email=f"{name}@example.com", password="pw", role=role)
    return Actor(id=user.id, role=user.role)


def test_project_create_update_and_filters() -> None:
    with SessionLocal() as db:
        client = _actor(db, "carol", "client")
        freelancer = _actor(db, "fred", "freelancer")
        service = ProjectService(db)

        with pytest.raises(ForbiddenError):
            service.create_project(actor=freelancer, title="t", description="d", budget="1")
        with pytest.raises(InvalidArgumentError, match="title, description, and budget"):
            service.create_project(actor=client, title="t", description="", budget="1")

        project = service.create_project(
            actor=client,
            title="  API work ",
            description="d",
            budget="300",
            skills_required=["python", " python", "", "sql"],
        )
        assert project.title == "API work"
        assert project.skills_required_json == ["python", "sql"]

        updated = service.update_project(
            project_id=project.id,
            actor=client,
            values={"title": "API v2", "status": "completed", "assigned_to_id": freelancer.id},
        )
        assert updated.title == "API v2"
        assert updated.status == "open"
        assert updated.assigned_to_id is None

        assert [p.id for p in service.list_client_projects(actor=client, status="open")] == [project.id]
        assert service.list_client_projects(actor=client, status="completed") == []
        with pytest.raises(InvalidArgumentError):
            service.list_projects(status="archived")


def test_project_edit_and_delete_require_owner_or_admin() -> None:
    with SessionLocal() as db:
        owner = _actor(db, "carol", "client")
        other = _actor(db, "oscar", "client")
        service = ProjectService(db)
        project_id = service.create_project(actor=owner, title="t", description="d", budget="1").id

        with pytest.raises(ForbiddenError):
            service.update_project(project_id=project_id, actor=other, values={"title": "x"})
        with pytest.raises(ForbiddenError):
            service.delete_project(project_id=project_id, actor=other)
        with pytest.raises(NotFoundError):
            service.delete_project(project_id=999, actor=owner)

        service.delete_project(project_id=project_id, actor=owner)
        with pytest.raises(NotFoundError):
            service.get_project(project_id)


def test_list_projects_skips_inconsistent_rows() -> None:
    with SessionLocal() as db:
        client = _actor(db, "carol", "client")
        service = ProjectService(db)
        good = service.create_project(actor=client, title="good", description="d", budget="1")
        broken = service.create_project(actor=client, title="broken", description="d", budget="1")
        db.get(Project, broken.id).status = "assigned"
        db.commit()

        assert [p.id for p in service.list_projects()] == [good.id]


def test_working_projects_are_scoped_to_the_freelancer() -> None:
    with SessionLocal() as db:
        client = _actor(db, "carol", "client")
        fred = _actor(db, "fred", "freelancer")
        gina = _actor(db, "gina", "freelancer")
        admin = Actor(id=0, role="admin")
        project_id = ProjectService(db).create_project(actor=client, title="t", description="d", budget="1").id
        workflow = ApplicationWorkflow(db)
        app = workflow.submit_application(project_id=project_id, freelancer_id=fred.id, bid_amount=5, cover_letter="c")
        workflow.set_application_status(application_id=app.id, actor=client, new_status="accepted")

        service = ProjectService(db)
        assert [p.id for p in service.list_working_projects(actor=fred, freelancer_id=fred.id)] == [project_id]
        assert [p.id for p in service.list_working_projects(actor=admin, freelancer_id=fred.id)] == [project_id]
        assert service.list_working_projects(actor=fred, freelancer_id=fred.id, status="completed") == []
        with pytest.raises(ForbiddenError):
            service.list_working_projects(actor=gina, freelancer_id=fred.id)


def test_messaging_between_client_and_assignee() -> None:
    with SessionLocal() as db:
        client = _actor(db, "carol", "client")
        fred = _actor(db, "fred", "freelancer")
        gina = _actor(db, "gina", "freelancer")
        project_id = ProjectService(db).create_project(actor=client, title="t", description="d", budget="1").id
        messaging = MessagingService(db)

        with pytest.raises(InvalidStateError, match="not assigned yet"):
            messaging.send_message(project_id=project_id, sender_id=client.id, content="hello?")
        with pytest.raises(InvalidArgumentError):
            messaging.send_message(project_id=project_id, sender_id=client.id, content="  ")
        with pytest.raises(NotFoundError):
            messaging.send_message(project_id=999, sender_id=client.id, content="hi")

        workflow = ApplicationWorkflow(db)
        app = workflow.submit_application(project_id=project_id, freelancer_id=fred.id, bid_amount=5, cover_letter="c")
        workflow.set_application_status(application_id=app.id, actor=client, new_status="accepted")

        first = messaging.send_message(project_id=project_id, sender_id=client.id, content="Welcome aboard")
        reply = messaging.send_message(project_id=project_id, sender_id=fred.id, content="Thanks!")
        assert first.receiver_id == fred.id
        assert reply.receiver_id == client.id

        with pytest.raises(ForbiddenError):
            messaging.send_message(project_id=project_id, sender_id=gina.id, content="me too")
        with pytest.raises(ForbiddenError):
            messaging.list_messages(project_id=project_id, user_id=gina.id)

        history = messaging.list_messages(project_id=project_id, user_id=fred.id)
        assert [m.content for m in history] == ["Welcome aboard", "Thanks!"]
        assert history[0].sender.username == "carol"
