"""Payroll aggregation service - previews, month summaries and snapshot publishing."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from workforce_engine.auth import AuthContext, assert_org_access
from workforce_engine.calculators.aggregator import PayrollCalculator, month_bounds
from workforce_engine.calculators.rates import parse_employment_type
from workforce_engine.calculators.types import PayrollPreview, WorkLine
from workforce_engine.errors import (
    NotFoundError,
    StorageError,
    ValidationError,
    WorkforceError,
    storage_errors,
)
from workforce_engine.models import (
    EmploymentType,
    PayrollSnapshot,
    Site,
    Worker,
    WorkRecord,
)
from workforce_engine.services.state_machine import (
    InvalidTransitionError,
    SnapshotStateMachine,
    SnapshotStatus,
)
from workforce_engine.validation import coerce_id

logger = logging.getLogger(__name__)


@dataclass
class WorkerPayrollSummary:
    """One row of the month overview used to pick workers for publishing."""

    worker_id: UUID
    name: str
    employment_type: EmploymentType | None
    daily_wage: Decimal | None
    work_days: int
    total_labor_hours: Decimal
    total_gross_pay: Decimal
    net_pay: Decimal | None
    status: str | None
    site_ids: list[UUID] = field(default_factory=list)
    error: str | None = None

    @property
    def is_published(self) -> bool:
        return SnapshotStateMachine.is_published(self.status)


@dataclass
class PublishResult:
    """Outcome of a publish batch."""

    inserted: int = 0
    skipped: list[UUID] = field(default_factory=list)
    errors: dict[UUID, str] = field(default_factory=dict)

    @property
    def processed(self) -> int:
        return self.inserted + len(self.skipped) + len(self.errors)


@dataclass
class TransitionResult:
    """Outcome of an approve or pay batch."""

    updated: int = 0
    skipped: list[UUID] = field(default_factory=list)
    errors: dict[UUID, str] = field(default_factory=dict)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _organization_scope(auth: AuthContext | None, column):
    """WHERE clause limiting rows to what ``auth`` may see, or None for everything.

    Rows without an organization stay visible, matching ``assert_org_access``.
    """
    if auth is None or not auth.is_restricted:
        return None
    # Raises for a restricted caller with no organization
    assert_org_access(auth, None)
    return or_(column == auth.organization_id, column.is_(None))


class PayrollAggregationService:
    """Service for monthly payroll.

    Operations:
    - preview: Compute a draft for one worker and month (read-only)
    - list_month_summaries: One row per worker who worked in the month
    - publish: Freeze previews into issued snapshots, idempotently
    - approve / mark_paid: Advance issued snapshots along the state machine

    Key invariants:
    1. One snapshot per (worker, year, month), enforced by a unique constraint
    2. A uniqueness violation on insert means "already published", never an error
    3. Batch members are independent: each runs in its own savepoint
    4. Restricted callers only see and act on workers of their organization
    """

    def __init__(
        self,
        session: AsyncSession,
        calculator: PayrollCalculator | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        self.session = session
        self.calculator = calculator or PayrollCalculator()
        self.now = now or _utcnow

    async def preview(
        self,
        worker_id: UUID | str,
        year: int,
        month: int,
        auth: AuthContext | None = None,
    ) -> PayrollPreview:
        """Calculate a worker's payroll for a month without persisting anything.

        Raises:
            ValidationError: Bad period, bad id, or worker has no employment type
            NotFoundError: Worker does not exist, or no rates for its type
            AuthorizationError: Worker outside the caller's organization
            StorageError: Store failure
        """
        worker_id = coerce_id(worker_id, "worker_id")
        start, end = month_bounds(year, month)

        async with storage_errors("preview"):
            worker = await self._get_worker(worker_id, auth)
            result = await self.session.execute(
                select(WorkRecord)
                .where(
                    WorkRecord.worker_id == worker_id,
                    WorkRecord.work_date >= start,
                    WorkRecord.work_date <= end,
                )
                .order_by(WorkRecord.work_date, WorkRecord.site_id)
            )
            records = list(result.scalars().all())

        return self._calculate(worker, year, month, records)

    async def list_month_summaries(
        self,
        year: int,
        month: int,
        employment_type: EmploymentType | str | None = None,
        site_id: UUID | str | None = None,
        auth: AuthContext | None = None,
    ) -> list[WorkerPayrollSummary]:
        """Summaries for every worker with work records in the month.

        Workers already published carry their snapshot status so callers can
        leave them out of the next publish batch. A restricted caller only
        gets workers of their own organization.
        """
        start, end = month_bounds(year, month)
        type_filter = parse_employment_type(employment_type) if employment_type else None
        site_filter = coerce_id(site_id, "site_id") if site_id else None
        worker_scope = _organization_scope(auth, Worker.organization_id)

        async with storage_errors("list_month_summaries"):
            if site_filter is not None and auth is not None:
                site = await self.session.get(Site, site_filter)
                if site is None:
                    raise NotFoundError("Site", site_filter)
                assert_org_access(auth, site.organization_id)

            query = (
                select(Worker, WorkRecord)
                .join(WorkRecord, WorkRecord.worker_id == Worker.id)
                .where(WorkRecord.work_date >= start, WorkRecord.work_date <= end)
                .order_by(Worker.full_name, WorkRecord.work_date)
            )
            if type_filter is not None:
                query = query.where(Worker.employment_type == type_filter.value)
            if worker_scope is not None:
                query = query.where(worker_scope)
            rows = (await self.session.execute(query)).all()

            statuses = await self._statuses_for(
                year, month, {worker.id for worker, _ in rows}
            )

        workers: dict[UUID, Worker] = {}
        records: dict[UUID, list[WorkRecord]] = defaultdict(list)
        for worker, record in rows:
            workers[worker.id] = worker
            records[worker.id].append(record)

        summaries: list[WorkerPayrollSummary] = []
        for wid, worker in workers.items():
            worker_records = records[wid]
            if site_filter is not None and all(r.site_id != site_filter for r in worker_records):
                continue
            summaries.append(
                self._summarize(worker, year, month, worker_records, statuses.get(wid))
            )
        return summaries

    async def publish(
        self,
        year: int,
        month: int,
        worker_ids: Iterable[UUID | str],
        auth: AuthContext | None = None,
    ) -> PublishResult:
        """Publish issued snapshots for a batch of workers.

        Workers with an existing snapshot are skipped. A failing worker,
        including one outside the caller's organization, is reported in
        ``errors`` and does not affect the rest of the batch.

        Raises:
            ValidationError: Bad period or empty batch
        """
        month_bounds(year, month)
        ids = self._coerce_batch(worker_ids)

        async with storage_errors("publish"):
            published = await self._statuses_for(year, month, set(ids))

        result = PublishResult()
        for worker_id in ids:
            try:
                if worker_id in published:
                    # Scope check first, so other orgs' snapshots stay hidden
                    await self._get_worker(worker_id, auth)
                    result.skipped.append(worker_id)
                    continue
                async with self.session.begin_nested():
                    preview = await self.preview(worker_id, year, month, auth)
                    self.session.add(self._snapshot_from(preview))
                    await self.session.flush()
            except IntegrityError:
                # Published concurrently by another caller
                result.skipped.append(worker_id)
            except WorkforceError as exc:
                logger.warning("Publish failed for worker %s: %s", worker_id, exc.message)
                result.errors[worker_id] = exc.message
            except SQLAlchemyError:
                logger.exception("Store failure publishing worker %s", worker_id)
                result.errors[worker_id] = StorageError("publish").message
            else:
                result.inserted += 1

        logger.info(
            "Published payroll %d-%02d: %d of %d inserted, %d skipped, %d failed",
            year,
            month,
            result.inserted,
            len(ids),
            len(result.skipped),
            len(result.errors),
        )
        return result

    async def approve(
        self,
        year: int,
        month: int,
        worker_ids: Iterable[UUID | str],
        auth: AuthContext | None = None,
    ) -> TransitionResult:
        """Move issued snapshots to approved."""
        return await self._transition(
            year, month, worker_ids, SnapshotStatus.APPROVED, auth
        )

    async def mark_paid(
        self,
        year: int,
        month: int,
        worker_ids: Iterable[UUID | str],
        auth: AuthContext | None = None,
    ) -> TransitionResult:
        """Move approved snapshots to paid."""
        return await self._transition(year, month, worker_ids, SnapshotStatus.PAID, auth)

    async def get_snapshot(
        self,
        worker_id: UUID | str,
        year: int,
        month: int,
    ) -> PayrollSnapshot | None:
        worker_id = coerce_id(worker_id, "worker_id")
        month_bounds(year, month)
        async with storage_errors("get_snapshot"):
            result = await self.session.execute(
                select(PayrollSnapshot).where(
                    PayrollSnapshot.worker_id == worker_id,
                    PayrollSnapshot.year == year,
                    PayrollSnapshot.month == month,
                )
            )
            return result.scalar_one_or_none()

    async def list_snapshots(
        self,
        year: int,
        month: int,
        status: SnapshotStatus | str | None = None,
        auth: AuthContext | None = None,
    ) -> list[PayrollSnapshot]:
        month_bounds(year, month)
        query = select(PayrollSnapshot).where(
            PayrollSnapshot.year == year,
            PayrollSnapshot.month == month,
        )
        worker_scope = _organization_scope(auth, Worker.organization_id)
        if worker_scope is not None:
            query = query.join(Worker, Worker.id == PayrollSnapshot.worker_id).where(
                worker_scope
            )
        if status is not None:
            if not SnapshotStateMachine.is_published(status):
                raise ValidationError(f"Unknown snapshot status: {status!r}")
            query = query.where(PayrollSnapshot.status == SnapshotStatus(status).value)

        async with storage_errors("list_snapshots"):
            result = await self.session.execute(query.order_by(PayrollSnapshot.issued_at))
            return list(result.scalars().all())

    async def _transition(
        self,
        year: int,
        month: int,
        worker_ids: Iterable[UUID | str],
        to_status: SnapshotStatus,
        auth: AuthContext | None = None,
    ) -> TransitionResult:
        month_bounds(year, month)
        ids = self._coerce_batch(worker_ids)
        stamp_field = "approved_at" if to_status == SnapshotStatus.APPROVED else "paid_at"
        result = TransitionResult()

        for worker_id in ids:
            try:
                if auth is not None:
                    async with storage_errors(f"mark {to_status.value}"):
                        await self._get_worker(worker_id, auth)
                snapshot = await self.get_snapshot(worker_id, year, month)
                if snapshot is None:
                    raise NotFoundError("Payroll snapshot", f"{worker_id} {year}-{month:02d}")
                if snapshot.status == to_status:
                    result.skipped.append(worker_id)
                    continue
                SnapshotStateMachine.validate_transition(snapshot.status, to_status)

                async with storage_errors(f"mark {to_status.value}"):
                    async with self.session.begin_nested():
                        # Conditional update: only from the status we validated
                        updated = await self.session.execute(
                            update(PayrollSnapshot)
                            .where(
                                PayrollSnapshot.id == snapshot.id,
                                PayrollSnapshot.status == snapshot.status,
                            )
                            .values(status=to_status.value, **{stamp_field: self.now()})
                        )
                if (updated.rowcount or 0) == 0:
                    raise InvalidTransitionError(
                        snapshot.status, to_status, "Status changed concurrently"
                    )
            except WorkforceError as exc:
                logger.warning(
                    "Could not mark worker %s %s: %s", worker_id, to_status.value, exc.message
                )
                result.errors[worker_id] = exc.message
            else:
                result.updated += 1

        logger.info(
            "Marked payroll %d-%02d %s: %d updated, %d skipped, %d failed",
            year,
            month,
            to_status.value,
            result.updated,
            len(result.skipped),
            len(result.errors),
        )
        return result

    def _calculate(
        self,
        worker: Worker,
        year: int,
        month: int,
        records: list[WorkRecord],
    ) -> PayrollPreview:
        if worker.employment_type is None:
            raise ValidationError(f"Worker {worker.id} has no employment type")
        return self.calculator.calculate(
            worker_id=worker.id,
            year=year,
            month=month,
            employment_type=worker.employment_type,
            daily_wage=worker.daily_wage,
            lines=[
                WorkLine(
                    work_date=r.work_date,
                    site_id=r.site_id,
                    labor_hours=r.labor_hours,
                    hourly_rate=r.hourly_rate,
                )
                for r in records
            ],
        )

    def _summarize(
        self,
        worker: Worker,
        year: int,
        month: int,
        records: list[WorkRecord],
        status: str | None,
    ) -> WorkerPayrollSummary:
        try:
            preview = self._calculate(worker, year, month, records)
        except WorkforceError as exc:
            # Still listed so the caller can see who needs fixing
            return WorkerPayrollSummary(
                worker_id=worker.id,
                name=worker.full_name,
                employment_type=None,
                daily_wage=worker.daily_wage,
                work_days=len({r.work_date for r in records}),
                total_labor_hours=sum((r.labor_hours for r in records), Decimal("0")),
                total_gross_pay=Decimal("0"),
                net_pay=None,
                status=status,
                site_ids=list(dict.fromkeys(r.site_id for r in records)),
                error=exc.message,
            )

        return WorkerPayrollSummary(
            worker_id=worker.id,
            name=worker.full_name,
            employment_type=preview.employment_type,
            daily_wage=worker.daily_wage,
            work_days=preview.work_days,
            total_labor_hours=preview.total_labor_hours,
            total_gross_pay=preview.total_gross_pay,
            net_pay=preview.net_pay,
            status=status,
            site_ids=preview.site_ids,
        )

    async def _get_worker(self, worker_id: UUID, auth: AuthContext | None) -> Worker:
        worker = await self.session.get(Worker, worker_id)
        if worker is None:
            raise NotFoundError("Worker", worker_id)
        assert_org_access(auth, worker.organization_id)
        return worker

    async def _statuses_for(
        self,
        year: int,
        month: int,
        worker_ids: set[UUID],
    ) -> dict[UUID, str]:
        if not worker_ids:
            return {}
        result = await self.session.execute(
            select(PayrollSnapshot.worker_id, PayrollSnapshot.status).where(
                PayrollSnapshot.year == year,
                PayrollSnapshot.month == month,
                PayrollSnapshot.worker_id.in_(worker_ids),
            )
        )
        return {worker_id: status for worker_id, status in result.all()}

    def _snapshot_from(self, preview: PayrollPreview) -> PayrollSnapshot:
        return PayrollSnapshot(
            worker_id=preview.worker_id,
            year=preview.year,
            month=preview.month,
            employment_type=preview.employment_type.value,
            work_days=preview.work_days,
            total_labor_hours=preview.total_labor_hours,
            total_gross_pay=preview.total_gross_pay,
            total_deductions=preview.total_deductions,
            net_pay=preview.net_pay,
            deductions_json={
                "hourly_rate": str(preview.hourly_rate),
                "overtime_hours": str(preview.total_overtime_hours),
                "lines": [d.to_dict() for d in preview.deductions],
            },
            status=SnapshotStatus.ISSUED.value,
            issued_at=self.now(),
        )

    @staticmethod
    def _coerce_batch(worker_ids: Iterable[UUID | str]) -> list[UUID]:
        if worker_ids is None:
            raise ValidationError("worker_ids is required")
        ids = list(dict.fromkeys(coerce_id(wid, "worker_id") for wid in worker_ids))
        if not ids:
            raise ValidationError("worker_ids must not be empty")
        return ids
