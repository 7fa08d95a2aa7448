"""Type definitions for the payroll aggregation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from workforce_engine.models.enums import EmploymentType

ZERO = Decimal("0")
WHOLE_UNIT = Decimal("1")


@dataclass(frozen=True)
class WorkLine:
    """One work record as seen by the calculator."""

    work_date: date
    site_id: UUID | None
    labor_hours: Decimal
    hourly_rate: Decimal | None = None  # per-record override


@dataclass(frozen=True)
class DeductionLine:
    """A computed deduction component."""

    code: str
    label: str
    percent: Decimal
    amount: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "label": self.label,
            "percent": str(self.percent),
            "amount": str(self.amount),
        }


@dataclass
class PayrollPreview:
    """Draft payroll for one worker and month. Never persisted as-is."""

    worker_id: UUID
    year: int
    month: int
    employment_type: EmploymentType
    daily_wage: Decimal | None
    hourly_rate: Decimal
    work_days: int = 0
    total_labor_hours: Decimal = ZERO
    total_overtime_hours: Decimal = ZERO
    total_gross_pay: Decimal = ZERO
    total_deductions: Decimal = ZERO
    net_pay: Decimal = ZERO
    deductions: list[DeductionLine] = field(default_factory=list)
    site_ids: list[UUID] = field(default_factory=list)

    @property
    def deduction_percent(self) -> Decimal:
        return sum((d.percent for d in self.deductions), ZERO)

    def rounded(self) -> dict[str, Any]:
        """Presentation view with money rounded to whole currency units.

        Only for display; stored snapshots keep full precision.
        """

        def whole(value: Decimal) -> Decimal:
            return value.quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)

        return {
            "worker_id": str(self.worker_id),
            "year": self.year,
            "month": self.month,
            "employment_type": self.employment_type.value,
            "work_days": self.work_days,
            "total_labor_hours": str(self.total_labor_hours),
            "total_overtime_hours": str(self.total_overtime_hours),
            "total_gross_pay": whole(self.total_gross_pay),
            "total_deductions": whole(self.total_deductions),
            "net_pay": whole(self.net_pay),
            "deductions": [
                {"code": d.code, "label": d.label, "percent": d.percent, "amount": whole(d.amount)}
                for d in self.deductions
            ],
        }
