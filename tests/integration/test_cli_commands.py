import json

from typer.testing import CliRunner

from gigdesk.cli.app import app
from gigdesk.core.projects import ProjectService
from gigdesk.core.workflow import ApplicationWorkflow
from gigdesk.db.session import SessionLocal
from gigdesk.types import Actor

runner = CliRunner()


def _create(name: str, role: str) -> int:
    result = runner.invoke(
        app,
        ["users", "create", "--username", name, "--email", f"{name}@example.com", "--password", "pw", "--role", role],
    )
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)["id"]


def test_cli_user_management() -> None:
    admin_id = _create("ada", "admin")
    _create("carol", "client")

    listed = runner.invoke(app, ["users", "list"])
    assert [u["username"] for u in json.loads(listed.stdout)] == ["ada", "carol"]

    dup = runner.invoke(
        app, ["users", "create", "--username", "x", "--email", "ada@example.com", "--password", "pw"]
    )
    assert dup.exit_code == 1

    deleted = runner.invoke(app, ["users", "delete", "--user-id", str(admin_id)])
    assert json.loads(deleted.stdout) == {"ok": True, "deleted_user_id": admin_id}
    assert runner.invoke(app, ["users", "delete", "--user-id", str(admin_id)]).exit_code == 1

    purged = runner.invoke(app, ["users", "purge-sessions"])
    assert json.loads(purged.stdout)["purged"] == 0


def test_cli_moderates_applications_and_projects() -> None:
    client_id = _create("carol", "client")
    freelancer_id = _create("fred", "freelancer")
    with SessionLocal() as db:
        project_id = ProjectService(db).create_project(
            actor=Actor(id=client_id, role="client"), title="t", description="d", budget="10"
        ).id
        app_id = ApplicationWorkflow(db).submit_application(
            project_id=project_id, freelancer_id=freelancer_id, bid_amount=5, cover_letter="c"
        ).id

    listed = runner.invoke(app, ["applications", "list", "--project-id", str(project_id)])
    assert [row["id"] for row in json.loads(listed.stdout)] == [app_id]

    accepted = runner.invoke(app, ["applications", "accept", "--application-id", str(app_id)])
    assert accepted.exit_code == 0, accepted.output
    assert json.loads(accepted.stdout)["status"] == "accepted"

    rejected = runner.invoke(app, ["applications", "reject", "--application-id", str(app_id)])
    assert rejected.exit_code == 1

    cancelled = runner.invoke(app, ["projects", "set-status", "--project-id", str(project_id), "--status", "cancelled"])
    body = json.loads(cancelled.stdout)
    assert body["status"] == "cancelled"
    assert body["assignedTo"] is None

    projects = runner.invoke(app, ["projects", "list", "--status", "cancelled"])
    assert [p["id"] for p in json.loads(projects.stdout)] == [project_id]

    removed = runner.invoke(app, ["applications", "withdraw", "--application-id", str(app_id)])
    assert json.loads(removed.stdout) == {"ok": True, "removed_application_id": app_id}
