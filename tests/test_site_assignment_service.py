"""Tests for site assignment service."""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import Update, func, select
from sqlalchemy.exc import OperationalError

from conftest import ORG_A, ORG_B, add_site, add_worker
from workforce_engine.auth import AuthContext
from workforce_engine.errors import (
    AuthorizationError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from workforce_engine.models import AssignmentRole, SiteAssignment
from workforce_engine.services import SiteAssignmentService

pytestmark = pytest.mark.asyncio


async def active_count(session, worker_id) -> int:
    return await session.scalar(
        select(func.count())
        .select_from(SiteAssignment)
        .where(SiteAssignment.worker_id == worker_id, SiteAssignment.is_active.is_(True))
    )


def disk_error() -> OperationalError:
    return OperationalError("UPDATE site_assignments", {}, Exception("disk I/O error"))


class TestAssign:
    """Assigning and reassigning workers."""

    async def test_first_assignment(self, session, clock):
        """A worker without an assignment becomes active at the site."""
        site = await add_site(session, "Site X", manager_name="Park Jiho")
        worker = await add_worker(session)
        service = SiteAssignmentService(session, now=clock)

        assignment = await service.assign(worker.id, site.id)

        assert assignment.is_active is True
        assert assignment.site_id == site.id
        assert assignment.unassigned_date is None
        assert assignment.assigned_date == date(2025, 3, 10)
        assert assignment.role == "worker"

        current = await service.get_current_site(worker.id)
        assert current.site_id == site.id
        assert current.site_name == "Site X"
        assert current.manager_name == "Park Jiho"
        assert current.assignment_id == assignment.id

    async def test_reassignment_deactivates_previous(self, session, clock):
        site_x = await add_site(session, "Site X")
        site_y = await add_site(session, "Site Y")
        worker = await add_worker(session)
        service = SiteAssignmentService(session, now=clock)

        first = await service.assign(worker.id, site_x.id)
        second = await service.assign(str(worker.id), str(site_y.id))

        await session.refresh(first)
        assert first.is_active is False
        assert first.unassigned_date == date(2025, 3, 10)
        assert second.is_active is True
        assert await active_count(session, worker.id) == 1

        history = await service.list_history(worker.id)
        assert [a.site_id for a in history] == [site_y.id, site_x.id]

    async def test_repeated_assign_is_idempotent(self, session, clock):
        site = await add_site(session)
        worker = await add_worker(session)
        service = SiteAssignmentService(session, now=clock)

        first = await service.assign(worker.id, site.id)
        again = await service.assign(worker.id, site.id)

        assert again.id == first.id
        assert len(await service.list_history(worker.id)) == 1

    async def test_role_change_creates_new_assignment(self, session, clock):
        site = await add_site(session)
        worker = await add_worker(session)
        service = SiteAssignmentService(session, now=clock)

        first = await service.assign(worker.id, site.id)
        promoted = await service.assign(worker.id, site.id, AssignmentRole.SUPERVISOR)

        assert promoted.id != first.id
        assert promoted.role == "supervisor"
        assert await active_count(session, worker.id) == 1

    async def test_invariant_holds_over_many_reassignments(self, session, clock):
        sites = [await add_site(session, f"Site {i}") for i in range(4)]
        worker = await add_worker(session)
        service = SiteAssignmentService(session, now=clock)

        for site in sites + sites[:2]:
            await service.assign(worker.id, site.id)
            assert await active_count(session, worker.id) == 1

        current = await service.get_current_site(worker.id)
        assert current.site_id == sites[1].id

    async def test_failed_insert_keeps_previous_assignment(self, session, clock, monkeypatch):
        """The old row was deactivated, the new row failed: nothing changes."""
        site_x = await add_site(session, "Site X")
        site_y = await add_site(session, "Site Y")
        worker = await add_worker(session)
        service = SiteAssignmentService(session, now=clock)
        first = await service.assign(worker.id, site_x.id)

        async def broken_flush(self, objects=None):
            raise disk_error()

        monkeypatch.setattr(type(session), "flush", broken_flush)
        with pytest.raises(StorageError):
            await service.assign(worker.id, site_y.id)
        monkeypatch.undo()

        await session.refresh(first)
        assert first.is_active is True
        assert first.unassigned_date is None
        assert await active_count(session, worker.id) == 1
        assert (await service.get_current_site(worker.id)).site_id == site_x.id
        assert len(await service.list_history(worker.id)) == 1

    async def test_unknown_site(self, session, clock):
        worker = await add_worker(session)
        service = SiteAssignmentService(session, now=clock)

        with pytest.raises(NotFoundError):
            await service.assign(worker.id, uuid4())

    async def test_unknown_worker(self, session, clock):
        site = await add_site(session)
        service = SiteAssignmentService(session, now=clock)

        with pytest.raises(NotFoundError):
            await service.assign(uuid4(), site.id)

    async def test_malformed_ids_and_roles(self, session, clock):
        site = await add_site(session)
        worker = await add_worker(session)
        service = SiteAssignmentService(session, now=clock)

        with pytest.raises(ValidationError):
            await service.assign("not-a-uuid", site.id)
        with pytest.raises(ValidationError):
            await service.assign(worker.id, None)
        with pytest.raises(ValidationError):
            await service.assign(worker.id, site.id, "foreman")


class TestAuthorization:
    """Organization scoping happens before any write."""

    async def test_other_org_site_is_rejected_without_changes(self, session, clock):
        site_a = await add_site(session, "Site A", ORG_A)
        site_b = await add_site(session, "Site B", ORG_B)
        worker = await add_worker(session, organization_id=ORG_A)
        service = SiteAssignmentService(session, now=clock)
        await service.assign(worker.id, site_a.id)
        auth = AuthContext.for_role(uuid4(), "admin", ORG_A)

        with pytest.raises(AuthorizationError):
            await service.assign(worker.id, site_b.id, auth=auth)

        current = await service.get_current_site(worker.id)
        assert current.site_id == site_a.id
        assert len(await service.list_history(worker.id)) == 1

    async def test_other_org_worker_is_rejected(self, session, clock):
        site = await add_site(session, "Site A", ORG_A)
        worker = await add_worker(session, organization_id=ORG_B)
        service = SiteAssignmentService(session, now=clock)
        auth = AuthContext.for_role(uuid4(), "site_manager", ORG_A)

        with pytest.raises(AuthorizationError):
            await service.assign(worker.id, site.id, auth=auth)

        assert await active_count(session, worker.id) == 0

    async def test_list_workers_for_other_org(self, session, clock):
        """Restricted admin of org A cannot list a site of org B."""
        site_b = await add_site(session, "Site B", ORG_B)
        worker = await add_worker(session, organization_id=ORG_B)
        service = SiteAssignmentService(session, now=clock)
        await service.assign(worker.id, site_b.id)
        auth = AuthContext.for_role(uuid4(), "admin", ORG_A)

        with pytest.raises(AuthorizationError):
            await service.list_workers(site_b.id, auth)

    async def test_history_of_other_org_worker(self, session, clock):
        worker = await add_worker(session, organization_id=ORG_B)
        service = SiteAssignmentService(session, now=clock)
        auth = AuthContext.for_role(uuid4(), "customer_manager", ORG_A)

        with pytest.raises(AuthorizationError):
            await service.list_history(worker.id, auth)

    async def test_current_site_of_other_org_worker(self, session, clock):
        """A shared site does not expose another organization's worker."""
        site = await add_site(session, "Shared yard", organization_id=None)
        worker = await add_worker(session, organization_id=ORG_B)
        service = SiteAssignmentService(session, now=clock)
        await service.assign(worker.id, site.id)
        auth = AuthContext.for_role(uuid4(), "admin", ORG_A)

        with pytest.raises(AuthorizationError):
            await service.get_current_site(worker.id, auth)

    async def test_reactivate_for_other_org_worker(self, session, clock):
        site_x = await add_site(session, "Yard X", organization_id=None)
        site_y = await add_site(session, "Yard Y", organization_id=None)
        worker = await add_worker(session, organization_id=ORG_B)
        service = SiteAssignmentService(session, now=clock)
        old = await service.assign(worker.id, site_x.id)
        await service.assign(worker.id, site_y.id)
        auth = AuthContext.for_role(uuid4(), "site_manager", ORG_A)

        with pytest.raises(AuthorizationError):
            await service.reactivate(old.id, auth)

        assert (await service.get_current_site(worker.id)).site_id == site_y.id

    async def test_unscoped_site_is_visible_to_everyone(self, session, clock):
        site = await add_site(session, "Shared yard", organization_id=None)
        worker = await add_worker(session, organization_id=ORG_A)
        service = SiteAssignmentService(session, now=clock)
        auth = AuthContext.for_role(uuid4(), "admin", ORG_A)

        assignment = await service.assign(worker.id, site.id, auth=auth)

        assert assignment.is_active is True

    async def test_system_admin_crosses_organizations(self, session, clock):
        site = await add_site(session, "Site B", ORG_B)
        worker = await add_worker(session, organization_id=ORG_A)
        service = SiteAssignmentService(session, now=clock)
        auth = AuthContext.for_role(uuid4(), "system_admin")

        await service.assign(worker.id, site.id, auth=auth)

        assert (await service.get_current_site(worker.id, auth)).site_id == site.id


class TestUnassignAndReactivate:
    async def test_unassign(self, session, clock):
        site = await add_site(session)
        worker = await add_worker(session)
        service = SiteAssignmentService(session, now=clock)
        await service.assign(worker.id, site.id)

        await service.unassign(worker.id)

        assert await service.get_current_site(worker.id) is None
        [row] = await service.list_history(worker.id)
        assert row.is_active is False
        assert row.unassigned_date == date(2025, 3, 10)

    async def test_unassign_without_assignment_is_noop(self, session, clock):
        worker = await add_worker(session)
        service = SiteAssignmentService(session, now=clock)

        await service.unassign(worker.id)

        assert await service.get_current_site(worker.id) is None

    async def test_reactivate_past_assignment(self, session, clock):
        site_x = await add_site(session, "Site X")
        site_y = await add_site(session, "Site Y")
        worker = await add_worker(session)
        service = SiteAssignmentService(session, now=clock)
        old = await service.assign(worker.id, site_x.id)
        newer = await service.assign(worker.id, site_y.id)

        reactivated = await service.reactivate(old.id)

        assert reactivated.id == old.id
        assert reactivated.is_active is True
        assert reactivated.unassigned_date is None
        await session.refresh(newer)
        assert newer.is_active is False
        assert await active_count(session, worker.id) == 1

    async def test_failed_reactivate_keeps_current_assignment(
        self, session, clock, monkeypatch
    ):
        site_x = await add_site(session, "Site X")
        site_y = await add_site(session, "Site Y")
        worker = await add_worker(session)
        service = SiteAssignmentService(session, now=clock)
        old = await service.assign(worker.id, site_x.id)
        newer = await service.assign(worker.id, site_y.id)

        execute = type(session).execute
        updates = []

        async def flaky_execute(self, statement, *args, **kwargs):
            # Let the deactivate through, fail the reactivating update
            if isinstance(statement, Update):
                updates.append(statement)
                if len(updates) == 2:
                    raise disk_error()
            return await execute(self, statement, *args, **kwargs)

        monkeypatch.setattr(type(session), "execute", flaky_execute)
        with pytest.raises(StorageError):
            await service.reactivate(old.id)
        monkeypatch.undo()

        assert len(updates) == 2
        await session.refresh(newer)
        await session.refresh(old)
        assert newer.is_active is True
        assert old.is_active is False
        assert await active_count(session, worker.id) == 1

    async def test_reactivate_active_is_noop(self, session, clock):
        site = await add_site(session)
        worker = await add_worker(session)
        service = SiteAssignmentService(session, now=clock)
        assignment = await service.assign(worker.id, site.id)

        assert (await service.reactivate(assignment.id)).is_active is True

    async def test_reactivate_unknown(self, session, clock):
        service = SiteAssignmentService(session, now=clock)

        with pytest.raises(NotFoundError):
            await service.reactivate(uuid4())


class TestSelectAndRemove:
    async def test_select_site_reuses_previous_assignment(self, session, clock):
        site_x = await add_site(session, "Site X")
        site_y = await add_site(session, "Site Y")
        worker = await add_worker(session)
        service = SiteAssignmentService(session, now=clock)
        old = await service.assign(worker.id, site_x.id)
        await service.assign(worker.id, site_y.id)

        selected = await service.select_site(worker.id, site_x.id)

        assert selected.id == old.id
        assert len(await service.list_history(worker.id)) == 2

    async def test_select_new_site_creates_assignment(self, session, clock):
        site = await add_site(session)
        worker = await add_worker(session)
        service = SiteAssignmentService(session, now=clock)

        selected = await service.select_site(worker.id, site.id)

        assert selected.is_active is True
        assert selected.site_id == site.id

    async def test_remove_from_site(self, session, clock):
        site_x = await add_site(session, "Site X")
        site_y = await add_site(session, "Site Y")
        worker = await add_worker(session)
        service = SiteAssignmentService(session, now=clock)
        await service.assign(worker.id, site_x.id)

        # Not active at Y, so nothing changes
        assert await service.remove_from_site(site_y.id, worker.id) is False
        assert await service.remove_from_site(site_x.id, worker.id) is True
        assert await service.get_current_site(worker.id) is None


class TestListWorkers:
    async def test_lists_active_workers_by_name(self, session, clock):
        site = await add_site(session)
        other = await add_site(session, "Elsewhere")
        lee = await add_worker(session, "Lee Seoyeon")
        choi = await add_worker(session, "Choi Yuna")
        moved = await add_worker(session, "Bae Dohyun")
        service = SiteAssignmentService(session, now=clock)
        for worker in (lee, choi, moved):
            await service.assign(worker.id, site.id)
        await service.assign(moved.id, other.id)

        rows = await service.list_workers(site.id)

        assert [w.full_name for w, _ in rows] == ["Choi Yuna", "Lee Seoyeon"]
        assert all(a.is_active and a.site_id == site.id for _, a in rows)
