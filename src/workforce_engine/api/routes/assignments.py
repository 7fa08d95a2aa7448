"""Site assignment API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from workforce_engine.api.dependencies import Auth, DbSession, ManagerAuth, commit
from workforce_engine.api.schemas import (
    AssignmentResponse,
    AssignRequest,
    Envelope,
    ErrorResponse,
    RemovalResponse,
    SelectSiteRequest,
    SiteInfoResponse,
    SiteWorkerResponse,
)
from workforce_engine.auth import MANAGER_ROLES
from workforce_engine.errors import AuthorizationError
from workforce_engine.services import SiteAssignmentService

router = APIRouter(tags=["assignments"])

ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.post(
    "/assignments",
    response_model=Envelope[AssignmentResponse],
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
)
async def assign_worker(
    db: DbSession,
    auth: ManagerAuth,
    payload: AssignRequest,
) -> Envelope[AssignmentResponse]:
    """Assign a worker to a site, replacing their active assignment."""
    service = SiteAssignmentService(db)
    assignment = await service.assign(payload.worker_id, payload.site_id, payload.role, auth)
    await commit(db)
    return Envelope(data=AssignmentResponse.model_validate(assignment))


@router.post(
    "/assignments/select",
    response_model=Envelope[AssignmentResponse],
    responses=ERRORS,
)
async def select_site(
    db: DbSession,
    auth: Auth,
    payload: SelectSiteRequest,
) -> Envelope[AssignmentResponse]:
    """Let a worker pick their current site.

    Only managers and admins may pick on behalf of someone else.
    """
    worker_id = payload.worker_id or auth.user_id
    if worker_id != auth.user_id and auth.role not in MANAGER_ROLES:
        raise AuthorizationError("Workers may only select their own site")
    service = SiteAssignmentService(db)
    assignment = await service.select_site(worker_id, payload.site_id, auth)
    await commit(db)
    return Envelope(data=AssignmentResponse.model_validate(assignment))


@router.post(
    "/assignments/{assignment_id}/reactivate",
    response_model=Envelope[AssignmentResponse],
    responses=ERRORS,
)
async def reactivate_assignment(
    db: DbSession,
    auth: ManagerAuth,
    assignment_id: Annotated[UUID, Path()],
) -> Envelope[AssignmentResponse]:
    """Make a past assignment active again."""
    service = SiteAssignmentService(db)
    assignment = await service.reactivate(assignment_id, auth)
    await commit(db)
    return Envelope(data=AssignmentResponse.model_validate(assignment))


@router.delete(
    "/workers/{worker_id}/assignment",
    response_model=Envelope[None],
    responses=ERRORS,
)
async def unassign_worker(
    db: DbSession,
    auth: ManagerAuth,
    worker_id: Annotated[UUID, Path()],
) -> Envelope[None]:
    """Deactivate a worker's active assignment."""
    service = SiteAssignmentService(db)
    await service.unassign(worker_id, auth)
    await commit(db)
    return Envelope(data=None)


@router.get(
    "/workers/{worker_id}/current-site",
    response_model=Envelope[SiteInfoResponse | None],
    responses=ERRORS,
)
async def get_current_site(
    db: DbSession,
    auth: Auth,
    worker_id: Annotated[UUID, Path()],
) -> Envelope[SiteInfoResponse | None]:
    """Get the site a worker is currently assigned to."""
    service = SiteAssignmentService(db)
    site_info = await service.get_current_site(worker_id, auth)
    data = SiteInfoResponse.model_validate(site_info) if site_info else None
    return Envelope(data=data)


@router.get(
    "/workers/{worker_id}/assignments",
    response_model=Envelope[list[AssignmentResponse]],
    responses=ERRORS,
)
async def list_assignment_history(
    db: DbSession,
    auth: Auth,
    worker_id: Annotated[UUID, Path()],
) -> Envelope[list[AssignmentResponse]]:
    """List a worker's assignments, most recent first."""
    service = SiteAssignmentService(db)
    history = await service.list_history(worker_id, auth)
    return Envelope(data=[AssignmentResponse.model_validate(a) for a in history])


@router.get(
    "/sites/{site_id}/workers",
    response_model=Envelope[list[SiteWorkerResponse]],
    responses=ERRORS,
)
async def list_site_workers(
    db: DbSession,
    auth: Auth,
    site_id: Annotated[UUID, Path()],
) -> Envelope[list[SiteWorkerResponse]]:
    """List workers actively assigned to a site."""
    service = SiteAssignmentService(db)
    rows = await service.list_workers(site_id, auth)
    return Envelope(
        data=[
            SiteWorkerResponse(
                worker_id=worker.id,
                full_name=worker.full_name,
                email=worker.email,
                role=worker.role,
                employment_type=worker.employment_type,
                assignment=AssignmentResponse.model_validate(assignment),
            )
            for worker, assignment in rows
        ]
    )


@router.delete(
    "/sites/{site_id}/workers/{worker_id}",
    response_model=Envelope[RemovalResponse],
    responses=ERRORS,
)
async def remove_worker_from_site(
    db: DbSession,
    auth: ManagerAuth,
    site_id: Annotated[UUID, Path()],
    worker_id: Annotated[UUID, Path()],
) -> Envelope[RemovalResponse]:
    """Remove a worker from a specific site."""
    service = SiteAssignmentService(db)
    removed = await service.remove_from_site(site_id, worker_id, auth)
    await commit(db)
    return Envelope(data=RemovalResponse(removed=removed))
