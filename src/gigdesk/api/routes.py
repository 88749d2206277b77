from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from gigdesk.api.deps import get_actor, get_bearer_token, get_current_user, get_db, require_roles
from gigdesk.api.schemas import (
    AdminStatsResponse,
    ApplicationCreateRequest,
    ApplicationEnvelope,
    ApplicationResponse,
    AuthResponse,
    ClientStatsResponse,
    DetailResponse,
    FreelancerStatsResponse,
    LoginRequest,
    MeResponse,
    MessageCreateRequest,
    MessageEnvelope,
    MessageResponse,
    ProjectCreateRequest,
    ProjectEnvelope,
    ProjectResponse,
    ProjectUpdateRequest,
    RegisterRequest,
    StatusChangeRequest,
    UserResponse,
    application_response,
    message_response,
    project_response,
    user_response,
)
from gigdesk.core.accounts import AccountService, IssuedSession
from gigdesk.core.messaging import MessagingService
from gigdesk.core.projects import ProjectService
from gigdesk.core.stats import DashboardService
from gigdesk.core.workflow import ApplicationWorkflow
from gigdesk.db.models import User
from gigdesk.db.repositories import Repository
from gigdesk.errors import ConflictError, ForbiddenError, MarketplaceError, NotFoundError
from gigdesk.types import Actor

router = APIRouter(prefix="/api", tags=["api"])

client_or_admin = require_roles("client", "admin")
freelancer_or_admin = require_roles("freelancer", "admin")


def _http_error(exc: MarketplaceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


def _auth_response(message: str, issued: IssuedSession) -> AuthResponse:
    return AuthResponse(
        message=message,
        token=issued.token,
        expires_at=issued.expires_at.isoformat(),
        user=user_response(issued.user),
    )


@router.get("/test")
def backend_status() -> dict:
    return {"message": "Backend is connected and healthy!"}


# auth


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(payload: RegisterRequest, db: Session = Depends(get_db)) -> AuthResponse:
    try:
        issued = AccountService(db).register(
            username=payload.username,
            email=payload.email,
            password=payload.password,
            role=payload.role,
        )
    except ConflictError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except MarketplaceError as exc:
        raise _http_error(exc) from exc
    return _auth_response("User registered successfully!", issued)


@router.post("/auth/login", response_model=AuthResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)) -> AuthResponse:
    try:
        issued = AccountService(db).login(email=payload.email, password=payload.password)
    except MarketplaceError as exc:
        raise _http_error(exc) from exc
    return _auth_response("Logged in successfully!", issued)


@router.post("/auth/logout", response_model=DetailResponse)
def logout(
    token: str = Depends(get_bearer_token),
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DetailResponse:
    AccountService(db).logout(token)
    return DetailResponse(message="Logged out successfully.")


@router.get("/auth/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)) -> MeResponse:
    return MeResponse(user=user_response(user))


# projects


@router.post("/projects", response_model=ProjectEnvelope, status_code=201)
def create_project(
    payload: ProjectCreateRequest,
    actor: Actor = Depends(require_roles("client")),
    db: Session = Depends(get_db),
) -> ProjectEnvelope:
    try:
        project = ProjectService(db).create_project(
            actor=actor,
            title=payload.title,
            description=payload.description,
            budget=payload.budget,
            skills_required=payload.skills_required,
        )
    except MarketplaceError as exc:
        raise _http_error(exc) from exc
    return ProjectEnvelope(message="Project posted successfully!", project=project_response(project))


@router.get("/projects", response_model=list[ProjectResponse])
def list_projects(
    status: str | None = None,
    _actor: Actor = Depends(require_roles("freelancer", "client", "admin")),
    db: Session = Depends(get_db),
) -> list[ProjectResponse]:
    try:
        rows = ProjectService(db).list_projects(status=status)
    except MarketplaceError as exc:
        raise _http_error(exc) from exc
    return [project_response(row) for row in rows]


@router.get("/projects/my-posted-projects", response_model=list[ProjectResponse])
def my_posted_projects(
    status: str | None = None,
    actor: Actor = Depends(require_roles("client")),
    db: Session = Depends(get_db),
) -> list[ProjectResponse]:
    try:
        rows = ProjectService(db).list_client_projects(actor=actor, status=status)
    except MarketplaceError as exc:
        raise _http_error(exc) from exc
    return [project_response(row) for row in rows]


@router.get("/projects/freelancer-working-projects/{freelancer_id}", response_model=list[ProjectResponse])
def freelancer_working_projects(
    freelancer_id: int,
    status: str | None = None,
    actor: Actor = Depends(freelancer_or_admin),
    db: Session = Depends(get_db),
) -> list[ProjectResponse]:
    try:
        rows = ProjectService(db).list_working_projects(actor=actor, freelancer_id=freelancer_id, status=status)
    except MarketplaceError as exc:
        raise _http_error(exc) from exc
    return [project_response(row) for row in rows]


@router.get("/projects/{project_id}", response_model=ProjectResponse)
def get_project(
    project_id: int,
    _actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> ProjectResponse:
    try:
        project = ProjectService(db).get_project(project_id)
    except MarketplaceError as exc:
        raise _http_error(exc) from exc
    return project_response(project)


@router.put("/projects/{project_id}", response_model=ProjectEnvelope)
def update_project(
    project_id: int,
    payload: ProjectUpdateRequest,
    actor: Actor = Depends(client_or_admin),
    db: Session = Depends(get_db),
) -> ProjectEnvelope:
    try:
        project = ProjectService(db).update_project(
            project_id=project_id,
            actor=actor,
            values=payload.model_dump(exclude_none=True),
        )
    except MarketplaceError as exc:
        raise _http_error(exc) from exc
    return ProjectEnvelope(message="Project updated successfully!", project=project_response(project))


@router.put("/projects/{project_id}/status", response_model=ProjectEnvelope)
def update_project_status(
    project_id: int,
    payload: StatusChangeRequest,
    actor: Actor = Depends(client_or_admin),
    db: Session = Depends(get_db),
) -> ProjectEnvelope:
    try:
        project = ApplicationWorkflow(db).set_project_status(
            project_id=project_id,
            actor=actor,
            new_status=payload.status,
        )
    except MarketplaceError as exc:
        raise _http_error(exc) from exc
    return ProjectEnvelope(
        message=f"Project status updated to {project.status}.",
        project=project_response(project),
    )


@router.delete("/projects/{project_id}", response_model=DetailResponse)
def delete_project(
    project_id: int,
    actor: Actor = Depends(client_or_admin),
    db: Session = Depends(get_db),
) -> DetailResponse:
    try:
        ProjectService(db).delete_project(project_id=project_id, actor=actor)
    except MarketplaceError as exc:
        raise _http_error(exc) from exc
    return DetailResponse(message="Project and associated applications deleted successfully!")


# applications


@router.post("/applications", response_model=ApplicationEnvelope, status_code=201)
def submit_application(
    payload: ApplicationCreateRequest,
    actor: Actor = Depends(require_roles("freelancer")),
    db: Session = Depends(get_db),
) -> ApplicationEnvelope:
    if payload.project_id is None or payload.bid_amount is None or payload.cover_letter is None:
        raise HTTPException(status_code=400, detail="Please provide project ID, bid amount, and cover letter.")
    try:
        application = ApplicationWorkflow(db).submit_application(
            project_id=payload.project_id,
            freelancer_id=actor.id,
            bid_amount=payload.bid_amount,
            cover_letter=payload.cover_letter,
        )
    except MarketplaceError as exc:
        raise _http_error(exc) from exc
    return ApplicationEnvelope(
        message="Application submitted successfully!",
        application=application_response(application),
    )


@router.get("/applications/project/{project_id}", response_model=list[ApplicationResponse])
def project_applications(
    project_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> list[ApplicationResponse]:
    repo = Repository(db)
    project = repo.get_project(project_id)
    if project is None:
        raise _http_error(NotFoundError("Project not found."))
    if project.client_id != actor.id and actor.role != "admin":
        raise _http_error(ForbiddenError("Not authorized to view applications for this project."))
    return [application_response(row) for row in repo.list_applications(project_ids=[project_id])]


@router.get("/applications/my-applications", response_model=list[ApplicationResponse])
def my_applications(
    actor: Actor = Depends(require_roles("freelancer")),
    db: Session = Depends(get_db),
) -> list[ApplicationResponse]:
    rows = Repository(db).list_applications(freelancer_id=actor.id)
    return [application_response(row) for row in rows if row.project is not None]


@router.get("/applications/client-review", response_model=list[ApplicationResponse])
def client_review(
    actor: Actor = Depends(require_roles("client")),
    db: Session = Depends(get_db),
) -> list[ApplicationResponse]:
    repo = Repository(db)
    project_ids = repo.list_project_ids_for_client(actor.id)
    return [application_response(row) for row in repo.list_applications(project_ids=project_ids)]


@router.put("/applications/{application_id}/status", response_model=ApplicationEnvelope)
def update_application_status(
    application_id: int,
    payload: StatusChangeRequest,
    actor: Actor = Depends(client_or_admin),
    db: Session = Depends(get_db),
) -> ApplicationEnvelope:
    try:
        application = ApplicationWorkflow(db).set_application_status(
            application_id=application_id,
            actor=actor,
            new_status=payload.status,
        )
    except MarketplaceError as exc:
        raise _http_error(exc) from exc
    return ApplicationEnvelope(
        message=f"Application status updated to {application.status}.",
        application=application_response(application),
    )


@router.delete("/applications/{application_id}", response_model=DetailResponse)
def delete_application(
    application_id: int,
    actor: Actor = Depends(freelancer_or_admin),
    db: Session = Depends(get_db),
) -> DetailResponse:
    try:
        retained = ApplicationWorkflow(db).withdraw_application(application_id=application_id, actor=actor)
    except MarketplaceError as exc:
        raise _http_error(exc) from exc
    if retained is not None:
        return DetailResponse(message="Application withdrawn successfully!")
    return DetailResponse(message="Application deleted successfully!")


# dashboards and admin


@router.get("/admin/dashboard-stats", response_model=AdminStatsResponse)
def admin_dashboard_stats(
    _actor: Actor = Depends(require_roles("admin")),
    db: Session = Depends(get_db),
) -> AdminStatsResponse:
    return AdminStatsResponse.model_validate(DashboardService(db).admin_stats().model_dump())


@router.get("/admin/users", response_model=list[UserResponse])
def admin_list_users(
    _actor: Actor = Depends(require_roles("admin")),
    db: Session = Depends(get_db),
) -> list[UserResponse]:
    return [user_response(row) for row in Repository(db).list_users()]


@router.delete("/admin/users/{user_id}", response_model=DetailResponse)
def admin_delete_user(
    user_id: int,
    _actor: Actor = Depends(require_roles("admin")),
    db: Session = Depends(get_db),
) -> DetailResponse:
    try:
        AccountService(db).delete_user(user_id)
    except MarketplaceError as exc:
        raise _http_error(exc) from exc
    return DetailResponse(message="User deleted successfully.")


@router.get("/admin/applications", response_model=list[ApplicationResponse])
def admin_list_applications(
    _actor: Actor = Depends(require_roles("admin")),
    db: Session = Depends(get_db),
) -> list[ApplicationResponse]:
    return [application_response(row) for row in Repository(db).list_applications()]


@router.get("/client/dashboard-stats", response_model=ClientStatsResponse)
def client_dashboard_stats(
    actor: Actor = Depends(require_roles("client")),
    db: Session = Depends(get_db),
) -> ClientStatsResponse:
    return ClientStatsResponse.model_validate(DashboardService(db).client_stats(actor.id).model_dump())


@router.get("/freelancer/dashboard-stats", response_model=FreelancerStatsResponse)
def freelancer_dashboard_stats(
    actor: Actor = Depends(require_roles("freelancer")),
    db: Session = Depends(get_db),
) -> FreelancerStatsResponse:
    return FreelancerStatsResponse.model_validate(DashboardService(db).freelancer_stats(actor.id).model_dump())


# messages


@router.post("/messages", response_model=MessageEnvelope, status_code=201)
def send_message(
    payload: MessageCreateRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> MessageEnvelope:
    try:
        message = MessagingService(db).send_message(
            project_id=payload.project_id,
            sender_id=actor.id,
            content=payload.content,
        )
    except MarketplaceError as exc:
        raise _http_error(exc) from exc
    return MessageEnvelope(message="Message sent successfully!", data=message_response(message))


@router.get("/messages/project/{project_id}", response_model=list[MessageResponse])
def project_messages(
    project_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> list[MessageResponse]:
    try:
        rows = MessagingService(db).list_messages(project_id=project_id, user_id=actor.id)
    except MarketplaceError as exc:
        raise _http_error(exc) from exc
    return [message_response(row) for row in rows]
