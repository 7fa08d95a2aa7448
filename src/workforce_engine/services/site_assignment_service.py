"""Site assignment service - owner of the single-active-assignment invariant."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from workforce_engine.auth import AuthContext, assert_org_access
from workforce_engine.database import acquire_worker_lock
from workforce_engine.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    storage_errors,
)
from workforce_engine.models import AssignmentRole, Site, SiteAssignment, Worker
from workforce_engine.validation import coerce_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SiteInfo:
    """A worker's current site with the details shown on site."""

    site_id: UUID
    site_name: str
    site_address: str | None
    site_status: str
    organization_id: UUID | None
    start_date: date | None
    end_date: date | None
    assignment_id: UUID
    assigned_date: date
    unassigned_date: date | None
    user_role: str
    is_active: bool
    manager_name: str | None
    construction_manager_phone: str | None
    safety_manager_name: str | None
    safety_manager_phone: str | None
    accommodation_name: str | None
    accommodation_address: str | None
    work_process: str | None
    work_section: str | None
    component_name: str | None

    @classmethod
    def from_assignment(cls, assignment: SiteAssignment) -> SiteInfo:
        site = assignment.site
        return cls(
            site_id=site.id,
            site_name=site.name,
            site_address=site.address,
            site_status=site.status,
            organization_id=site.organization_id,
            start_date=site.start_date,
            end_date=site.end_date,
            assignment_id=assignment.id,
            assigned_date=assignment.assigned_date,
            unassigned_date=assignment.unassigned_date,
            user_role=assignment.role,
            is_active=assignment.is_active,
            manager_name=site.manager_name,
            construction_manager_phone=site.construction_manager_phone,
            safety_manager_name=site.safety_manager_name,
            safety_manager_phone=site.safety_manager_phone,
            accommodation_name=site.accommodation_name,
            accommodation_address=site.accommodation_address,
            work_process=site.work_process,
            work_section=site.work_section,
            component_name=site.component_name,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SiteAssignmentService:
    """Service for assigning workers to sites.

    Key invariants:
    1. A worker has at most one active assignment (partial unique index)
    2. Reassignment deactivates the old row and activates the new one in a
       single savepoint; any failure leaves the previous state intact
    3. Restricted callers only touch sites and workers of their organization,
       and an authorization failure happens before any write
    """

    def __init__(
        self,
        session: AsyncSession,
        now: Callable[[], datetime] | None = None,
    ):
        self.session = session
        self.now = now or _utcnow

    async def assign(
        self,
        worker_id: UUID | str,
        site_id: UUID | str,
        role: AssignmentRole | str = AssignmentRole.WORKER,
        auth: AuthContext | None = None,
    ) -> SiteAssignment:
        """Make ``site_id`` the worker's only active assignment.

        Raises:
            ValidationError: Malformed ids or unknown role
            NotFoundError: Site or worker does not exist
            AuthorizationError: Site or worker outside the caller's organization
            ConflictError: A concurrent reassignment of the same worker won
            StorageError: Store failure; nothing was changed
        """
        worker_id = coerce_id(worker_id, "worker_id")
        site_id = coerce_id(site_id, "site_id")
        role = self._parse_role(role)

        site = await self._get_site(site_id)
        assert_org_access(auth, site.organization_id)
        worker = await self._get_worker(worker_id)
        assert_org_access(auth, worker.organization_id)

        current = await self._get_active(worker_id)
        if current is not None and current.site_id == site_id and current.role == role.value:
            # Retried call: already where it should be
            return current

        moment = self.now()
        assignment = SiteAssignment(
            worker_id=worker_id,
            site_id=site_id,
            role=role.value,
            assigned_date=moment.date(),
            assigned_at=moment,
            unassigned_date=None,
            is_active=True,
        )

        async with storage_errors("assign"):
            try:
                async with self.session.begin_nested():
                    await acquire_worker_lock(self.session, worker_id)
                    await self._deactivate_active(worker_id, moment.date())
                    self.session.add(assignment)
                    await self.session.flush()
            except IntegrityError:
                logger.warning(
                    "Concurrent reassignment of worker %s lost the race", worker_id
                )
                raise ConflictError(
                    "Worker was reassigned concurrently; reload and retry"
                ) from None

        logger.info(
            "Assigned worker %s to site %s as %s", worker_id, site_id, role.value
        )
        return assignment

    async def unassign(
        self,
        worker_id: UUID | str,
        auth: AuthContext | None = None,
    ) -> None:
        """Deactivate the worker's active assignment, if any."""
        worker_id = coerce_id(worker_id, "worker_id")
        await self._check_worker_access(worker_id, auth)
        active = await self._get_active(worker_id)
        if active is None:
            return
        assert_org_access(auth, active.site.organization_id)

        async with storage_errors("unassign"):
            async with self.session.begin_nested():
                await self._deactivate_active(worker_id, self.now().date())

        logger.info("Unassigned worker %s from site %s", worker_id, active.site_id)

    async def reactivate(
        self,
        assignment_id: UUID | str,
        auth: AuthContext | None = None,
    ) -> SiteAssignment:
        """Make a past assignment the worker's active one again."""
        assignment_id = coerce_id(assignment_id, "assignment_id")
        result = await self.session.execute(
            select(SiteAssignment)
            .where(SiteAssignment.id == assignment_id)
            .options(selectinload(SiteAssignment.site))
        )
        assignment = result.scalar_one_or_none()
        if assignment is None:
            raise NotFoundError("Site assignment", assignment_id)
        assert_org_access(auth, assignment.site.organization_id)
        await self._check_worker_access(assignment.worker_id, auth)

        if assignment.is_active:
            return assignment

        async with storage_errors("reactivate"):
            try:
                async with self.session.begin_nested():
                    await acquire_worker_lock(self.session, assignment.worker_id)
                    await self._deactivate_active(assignment.worker_id, self.now().date())
                    await self.session.execute(
                        update(SiteAssignment)
                        .where(SiteAssignment.id == assignment_id)
                        .values(is_active=True, unassigned_date=None)
                    )
            except IntegrityError:
                raise ConflictError(
                    "Worker was reassigned concurrently; reload and retry"
                ) from None

        await self.session.refresh(assignment)
        logger.info(
            "Reactivated assignment %s for worker %s", assignment_id, assignment.worker_id
        )
        return assignment

    async def select_site(
        self,
        worker_id: UUID | str,
        site_id: UUID | str,
        auth: AuthContext | None = None,
    ) -> SiteAssignment:
        """Worker-facing site choice.

        Reuses the worker's most recent assignment to that site when there is
        one, otherwise creates a new assignment.
        """
        worker_id = coerce_id(worker_id, "worker_id")
        site_id = coerce_id(site_id, "site_id")

        result = await self.session.execute(
            select(SiteAssignment)
            .where(
                SiteAssignment.worker_id == worker_id,
                SiteAssignment.site_id == site_id,
            )
            .order_by(SiteAssignment.assigned_at.desc())
            .limit(1)
        )
        existing = result.scalar_one_or_none()
        if existing is None:
            return await self.assign(worker_id, site_id, auth=auth)
        return await self.reactivate(existing.id, auth=auth)

    async def remove_from_site(
        self,
        site_id: UUID | str,
        worker_id: UUID | str,
        auth: AuthContext | None = None,
    ) -> bool:
        """Deactivate the worker only if their active assignment is at this site.

        Returns True if an assignment was deactivated.
        """
        site_id = coerce_id(site_id, "site_id")
        worker_id = coerce_id(worker_id, "worker_id")
        site = await self._get_site(site_id)
        assert_org_access(auth, site.organization_id)

        async with storage_errors("remove_from_site"):
            async with self.session.begin_nested():
                result = await self.session.execute(
                    update(SiteAssignment)
                    .where(
                        SiteAssignment.worker_id == worker_id,
                        SiteAssignment.site_id == site_id,
                        SiteAssignment.is_active.is_(True),
                    )
                    .values(is_active=False, unassigned_date=self.now().date())
                )

        removed = (result.rowcount or 0) > 0
        if removed:
            logger.info("Removed worker %s from site %s", worker_id, site_id)
        return removed

    async def get_current_site(
        self,
        worker_id: UUID | str,
        auth: AuthContext | None = None,
    ) -> SiteInfo | None:
        """Get the worker's active site, or None."""
        worker_id = coerce_id(worker_id, "worker_id")
        await self._check_worker_access(worker_id, auth)
        active = await self._get_active(worker_id)
        if active is None:
            return None
        assert_org_access(auth, active.site.organization_id)
        return SiteInfo.from_assignment(active)

    async def list_history(
        self,
        worker_id: UUID | str,
        auth: AuthContext | None = None,
    ) -> list[SiteAssignment]:
        """All assignments of a worker, most recent first."""
        worker_id = coerce_id(worker_id, "worker_id")
        await self._check_worker_access(worker_id, auth)
        result = await self.session.execute(
            select(SiteAssignment)
            .where(SiteAssignment.worker_id == worker_id)
            .options(selectinload(SiteAssignment.site))
            .order_by(
                SiteAssignment.assigned_date.desc(),
                SiteAssignment.assigned_at.desc(),
            )
        )
        return list(result.scalars().all())

    async def list_workers(
        self,
        site_id: UUID | str,
        auth: AuthContext | None = None,
    ) -> list[tuple[Worker, SiteAssignment]]:
        """Workers actively assigned to a site, ordered by name."""
        site_id = coerce_id(site_id, "site_id")
        site = await self._get_site(site_id)
        assert_org_access(auth, site.organization_id)

        result = await self.session.execute(
            select(Worker, SiteAssignment)
            .join(SiteAssignment, SiteAssignment.worker_id == Worker.id)
            .where(
                SiteAssignment.site_id == site_id,
                SiteAssignment.is_active.is_(True),
            )
            .order_by(Worker.full_name)
        )
        return [(worker, assignment) for worker, assignment in result.all()]

    async def _deactivate_active(self, worker_id: UUID, today: date) -> int:
        """Deactivate every active row of a worker. Returns rows touched."""
        result = await self.session.execute(
            update(SiteAssignment)
            .where(
                SiteAssignment.worker_id == worker_id,
                SiteAssignment.is_active.is_(True),
            )
            .values(is_active=False, unassigned_date=today)
        )
        return result.rowcount or 0

    async def _get_active(self, worker_id: UUID) -> SiteAssignment | None:
        result = await self.session.execute(
            select(SiteAssignment)
            .where(
                SiteAssignment.worker_id == worker_id,
                SiteAssignment.is_active.is_(True),
            )
            .options(selectinload(SiteAssignment.site))
        )
        return result.scalar_one_or_none()

    async def _get_site(self, site_id: UUID) -> Site:
        site = await self.session.get(Site, site_id)
        if site is None:
            raise NotFoundError("Site", site_id)
        return site

    async def _get_worker(self, worker_id: UUID) -> Worker:
        worker = await self.session.get(Worker, worker_id)
        if worker is None:
            raise NotFoundError("Worker", worker_id)
        return worker

    async def _check_worker_access(self, worker_id: UUID, auth: AuthContext | None) -> None:
        if auth is not None:
            worker = await self._get_worker(worker_id)
            assert_org_access(auth, worker.organization_id)

    @staticmethod
    def _parse_role(role: AssignmentRole | str) -> AssignmentRole:
        try:
            return AssignmentRole(role)
        except ValueError:
            raise ValidationError(f"Unknown site role: {role!r}") from None
