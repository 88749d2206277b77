from __future__ import annotations

import json
from typing import NoReturn

import typer
import uvicorn

from gigdesk.api.app import create_app
from gigdesk.api.schemas import application_response, project_response, user_response
from gigdesk.config import get_settings
from gigdesk.core.accounts import AccountService
from gigdesk.core.projects import ProjectService
from gigdesk.core.workflow import ApplicationWorkflow
from gigdesk.db.init import init_database
from gigdesk.db.repositories import Repository
from gigdesk.db.session import SessionLocal
from gigdesk.errors import MarketplaceError
from gigdesk.logging_config import configure_logging
from gigdesk.types import Actor

app = typer.Typer(help="Gigdesk CLI")
users_app = typer.Typer(help="Manage user accounts")
projects_app = typer.Typer(help="Inspect and moderate projects")
applications_app = typer.Typer(help="Review applications")

app.add_typer(users_app, name="users")
app.add_typer(projects_app, name="projects")
app.add_typer(applications_app, name="applications")

_INITIALIZED = False

# Commands run with full authority.
CLI_ACTOR = Actor(id=0, role="admin")


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


def _dump(payload) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _fail(exc: MarketplaceError) -> NoReturn:
    typer.echo(json.dumps({"ok": False, "error": str(exc)}, indent=2), err=True)
    raise typer.Exit(code=1)


@app.command("init")
def init_cmd() -> None:
    """Initialize database, directories, and the bootstrap admin."""
    configure_logging()
    result = init_database()
    _dump({"ok": True, **result})


@users_app.command("create")
def users_create(
    username: str = typer.Option(..., "--username"),
    email: str = typer.Option(..., "--email"),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True),
    role: str = typer.Option("client", "--role"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            user = AccountService(db).create_user(
                username=username,
                email=email,
                password=password,
                role=role,
                allow_admin=True,
            )
        except MarketplaceError as exc:
            _fail(exc)
        _dump(user_response(user).model_dump(by_alias=True))


@users_app.command("list")
def users_list() -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        users = Repository(db).list_users()
        _dump([user_response(user).model_dump(by_alias=True) for user in users])


@users_app.command("delete")
def users_delete(user_id: int = typer.Option(..., "--user-id")) -> None:
    """Delete a user and everything that hangs off them."""
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            AccountService(db).delete_user(user_id)
        except MarketplaceError as exc:
            _fail(exc)
        _dump({"ok": True, "deleted_user_id": user_id})


@users_app.command("purge-sessions")
def users_purge_sessions() -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        purged = AccountService(db).purge_expired_sessions()
        _dump({"ok": True, "purged": purged})


@projects_app.command("list")
def projects_list(status: str | None = typer.Option(None, "--status")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            projects = ProjectService(db).list_projects(status=status)
        except MarketplaceError as exc:
            _fail(exc)
        _dump([project_response(project).model_dump(by_alias=True) for project in projects])


@projects_app.command("set-status")
def projects_set_status(
    project_id: int = typer.Option(..., "--project-id"),
    status: str = typer.Option(..., "--status"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            project = ApplicationWorkflow(db).set_project_status(
                project_id=project_id,
                actor=CLI_ACTOR,
                new_status=status,
            )
        except MarketplaceError as exc:
            _fail(exc)
        _dump(project_response(project).model_dump(by_alias=True))


@applications_app.command("list")
def applications_list(project_id: int | None = typer.Option(None, "--project-id")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        project_ids = [project_id] if project_id is not None else None
        rows = Repository(db).list_applications(project_ids=project_ids)
        _dump([application_response(row).model_dump(by_alias=True) for row in rows])


def _review(application_id: int, status: str) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            application = ApplicationWorkflow(db).set_application_status(
                application_id=application_id,
                actor=CLI_ACTOR,
                new_status=status,
            )
        except MarketplaceError as exc:
            _fail(exc)
        _dump(application_response(application).model_dump(by_alias=True))


@applications_app.command("accept")
def applications_accept(application_id: int = typer.Option(..., "--application-id")) -> None:
    """Accept an application and assign its freelancer to the project."""
    _review(application_id, "accepted")


@applications_app.command("reject")
def applications_reject(application_id: int = typer.Option(..., "--application-id")) -> None:
    _review(application_id, "rejected")


@applications_app.command("withdraw")
def applications_withdraw(application_id: int = typer.Option(..., "--application-id")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            ApplicationWorkflow(db).withdraw_application(application_id=application_id, actor=CLI_ACTOR)
        except MarketplaceError as exc:
            _fail(exc)
        _dump({"ok": True, "removed_application_id": application_id})


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
) -> None:
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    app_instance = create_app()
    uvicorn.run(app_instance, host=host or settings.app_host, port=port or settings.app_port)
